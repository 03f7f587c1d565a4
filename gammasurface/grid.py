"""
Grid binning: map enriched records onto a fixed (strike x days) grid.

Axes are laid out from the observed data: the display-space strike range
and the days-to-expiry range, each padded by 5% of its span and rounded
outward to whole numbers (days never below 0). A record lands in the
cell found by floor-dividing its offset from the axis minimum by the
axis step, clamped to the grid.

Each cell keeps a running mean of iv and of gamma exposure,

    new_mean = (old_mean * count + value) / (count + 1)

so its value is the plain average of everything that landed there,
whatever the arrival order. iv and gamma are tracked in parallel arrays
with their own counts; NaN marks a value nothing has been binned into.
"""

import math
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from . import config as cfg
from .config import SurfaceConfig
from .market_generator import EnrichedRecord, display_strike


class GridCell(NamedTuple):
    iv: Optional[float]
    gamma: Optional[float]
    sample_count: int


@dataclass(frozen=True)
class AxisRange:
    """One grid axis: [minimum, maximum] split into `resolution` cells."""

    minimum: float
    maximum: float
    resolution: int

    @property
    def span(self) -> float:
        return self.maximum - self.minimum

    @property
    def step(self) -> float:
        # a zero span or a single cell would divide by zero
        if self.span <= 0 or self.resolution < 2:
            return 1.0
        return self.span / (self.resolution - 1)

    def index(self, value: float) -> int:
        """Bucket for a continuous value, clamped to [0, resolution - 1]."""
        i = math.floor((value - self.minimum) / self.step)
        return min(self.resolution - 1, max(0, i))

    def values(self) -> np.ndarray:
        """Coordinate of every cell along this axis."""
        return self.minimum + np.arange(self.resolution) * self.step


def padded_range(values: Sequence[float], resolution: int,
                 floor_at_zero: bool = False) -> AxisRange:
    """Axis covering the data padded by 5% of the span, rounded outward."""
    lo, hi = float(min(values)), float(max(values))
    pad = (hi - lo) * cfg.RANGE_PADDING
    lo = math.floor(lo - pad)
    hi = math.ceil(hi + pad)
    if floor_at_zero:
        lo = max(0, lo)
    return AxisRange(float(lo), float(hi), resolution)


def compute_axis_ranges(
    records: Sequence[EnrichedRecord],
    spot: Optional[float],
    config: SurfaceConfig,
) -> Tuple[AxisRange, AxisRange]:
    """
    Strike and days axes for a record set.

    Strikes are measured in display space, so with normalize_strikes on
    the axis is in percent of spot.
    """
    if not records:
        raise ValueError("Cannot lay out a grid for an empty record set")
    strikes = [display_strike(r.strike, spot, config.normalize_strikes) for r in records]
    days = [r.days_to_expiry for r in records]
    return (
        padded_range(strikes, config.strike_resolution),
        padded_range(days, config.days_resolution, floor_at_zero=True),
    )


class Grid:
    """
    Fixed-size (strike_resolution x days_resolution) grid of iv / gamma.

    Row index is the strike bucket, column index the days bucket.
    """

    def __init__(self, strike_resolution: int, days_resolution: int):
        shape = (strike_resolution, days_resolution)
        self.iv = np.full(shape, np.nan)
        self.gamma = np.full(shape, np.nan)
        self.iv_count = np.zeros(shape, dtype=int)
        self.gamma_count = np.zeros(shape, dtype=int)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.iv.shape

    def add_sample(self, i: int, j: int, iv: float, gamma: Optional[float] = None) -> None:
        """Fold one record into cell (i, j) with the running-mean update."""
        n = self.iv_count[i, j]
        old = self.iv[i, j] if n else 0.0
        self.iv[i, j] = (old * n + iv) / (n + 1)
        self.iv_count[i, j] = n + 1

        if gamma is None or np.isnan(gamma):
            return
        n = self.gamma_count[i, j]
        old = self.gamma[i, j] if n else 0.0
        self.gamma[i, j] = (old * n + gamma) / (n + 1)
        self.gamma_count[i, j] = n + 1

    def cell(self, i: int, j: int) -> GridCell:
        iv = self.iv[i, j]
        gamma = self.gamma[i, j]
        return GridCell(
            iv=None if np.isnan(iv) else float(iv),
            gamma=None if np.isnan(gamma) else float(gamma),
            sample_count=int(self.iv_count[i, j]),
        )

    def is_empty(self, i: int, j: int) -> bool:
        return bool(np.isnan(self.iv[i, j]) and np.isnan(self.gamma[i, j]))

    def is_complete(self) -> bool:
        """True once every cell has both iv and gamma defined."""
        return not (np.isnan(self.iv).any() or np.isnan(self.gamma).any())

    def populated_mask(self) -> np.ndarray:
        return ~(np.isnan(self.iv) & np.isnan(self.gamma))

    def copy(self) -> "Grid":
        other = Grid(*self.shape)
        other.iv = self.iv.copy()
        other.gamma = self.gamma.copy()
        other.iv_count = self.iv_count.copy()
        other.gamma_count = self.gamma_count.copy()
        return other

    def __repr__(self):
        filled = int(self.populated_mask().sum())
        return f"Grid(shape={self.shape}, populated={filled})"


def bin_records(
    records: Iterable[EnrichedRecord],
    strike_axis: AxisRange,
    days_axis: AxisRange,
    spot: Optional[float] = None,
    normalize: bool = False,
) -> Grid:
    """
    Average records into a sparse grid.

    Parameters
    ----------
    records : enriched records from the generator
    strike_axis, days_axis : axes from compute_axis_ranges
    spot : spot estimate, needed to place strikes when normalize is on
    normalize : bin on display-space (percent of spot) strikes

    Returns
    -------
    Grid : iv from every record, gamma exposure where defined
    """
    grid = Grid(strike_axis.resolution, days_axis.resolution)
    for record in records:
        i = strike_axis.index(display_strike(record.strike, spot, normalize))
        j = days_axis.index(record.days_to_expiry)
        grid.add_sample(i, j, record.iv, record.gamma_exposure)
    return grid
