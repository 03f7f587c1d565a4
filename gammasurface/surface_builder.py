"""
Surface construction: from a contract listing to a dense, regular
(strike x days) grid of implied vol and gamma exposure.

The pipeline:
    1. Synthesize one enriched record per contract (market_generator)
    2. Lay out strike / days axes from the data (grid)
    3. Average records into a sparse grid (grid)
    4. Fill holes locally, then globally (interpolation)
    5. Optionally smooth the result with a Gaussian filter

The output is a SurfaceResult: the dense grid with its axes and the flat
record list. That is everything the renderers and the options-chain
table need; they never see contracts or the sparse grid.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import SurfaceConfig
from .data_feed import Contract
from .grid import AxisRange, Grid, bin_records, compute_axis_ranges
from .interpolation import interpolate_grid, smooth_grid
from .market_generator import (
    EnrichedRecord, MarketSnapshot, display_strike, generate_synthetic_data,
)
from .utils import get_logger, timeit


log = get_logger(__name__)


@dataclass(frozen=True)
class SurfaceResult:
    """Everything downstream consumers get from one pipeline run."""

    ticker: str
    spot: float
    records: Tuple[EnrichedRecord, ...]
    grid: Grid
    strike_axis: AxisRange
    days_axis: AxisRange
    iv_range: Tuple[float, float]
    gamma_range: Tuple[float, float]
    normalized: bool = False

    @property
    def iv_grid(self) -> np.ndarray:
        return self.grid.iv

    @property
    def gamma_grid(self) -> np.ndarray:
        return self.grid.gamma

    def display_strike(self, strike: float) -> float:
        return display_strike(strike, self.spot, self.normalized)


def _value_range(values) -> Tuple[float, float]:
    arr = np.asarray([v for v in values if v is not None], dtype=float)
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return (np.nan, np.nan)
    return (float(arr.min()), float(arr.max()))


@timeit
def surface_from_snapshot(
    snapshot: MarketSnapshot,
    config: SurfaceConfig,
) -> Optional[SurfaceResult]:
    """
    Bin and interpolate a generator snapshot.

    Returns None when the snapshot holds no records (nothing to lay an
    axis out from).
    """
    records = snapshot.records
    if not records:
        log.warning("No valid data to visualize for %s", config.ticker)
        return None

    strike_axis, days_axis = compute_axis_ranges(records, snapshot.spot, config)
    sparse = bin_records(records, strike_axis, days_axis,
                         spot=snapshot.spot, normalize=config.normalize_strikes)
    log.debug("Binned %d records into %r", len(records), sparse)

    dense = interpolate_grid(sparse)
    if config.smooth_sigma:
        dense = smooth_grid(dense, config.smooth_sigma)

    return SurfaceResult(
        ticker=config.ticker,
        spot=snapshot.spot,
        records=records,
        grid=dense,
        strike_axis=strike_axis,
        days_axis=days_axis,
        iv_range=_value_range(r.iv for r in records),
        gamma_range=_value_range(r.gamma_exposure for r in records),
        normalized=config.normalize_strikes,
    )


def build_surface(
    contracts: Sequence[Contract],
    config: Optional[SurfaceConfig] = None,
    rng: Optional[np.random.Generator] = None,
    now: Optional[datetime] = None,
) -> Optional[SurfaceResult]:
    """
    Run the whole core pipeline on a contract listing.

    Parameters
    ----------
    contracts : contract listing from data_feed
    config : pipeline configuration (default: SurfaceConfig())
    rng : numpy Generator for the synthetic draws (default: seeded from config.seed)
    now : valuation time (default: current UTC time)

    Returns
    -------
    SurfaceResult, or None if no contract survives generation
    """
    if config is None:
        config = SurfaceConfig()
    snapshot = generate_synthetic_data(contracts, config, rng=rng, now=now)
    return surface_from_snapshot(snapshot, config)


CHAIN_COLUMNS = [
    "expiration_date", "contract_type", "strike", "display_strike",
    "days_to_expiry", "last_price", "bid_price", "ask_price", "iv",
    "delta", "gamma", "gamma_exposure", "theta", "vega",
    "open_interest", "volume", "moneyness", "ticker",
]


def records_to_frame(
    records: Sequence[EnrichedRecord],
    spot: Optional[float] = None,
    normalize: bool = False,
) -> pd.DataFrame:
    """
    Options-chain table: one row per record, sorted by expiry then strike.
    """
    if not records:
        return pd.DataFrame(columns=CHAIN_COLUMNS)
    df = pd.DataFrame([asdict(r) for r in records])
    df["display_strike"] = [display_strike(k, spot, normalize) for k in df["strike"]]
    df = df.sort_values(["expiration_date", "strike", "contract_type"], kind="stable")
    return df[CHAIN_COLUMNS].reset_index(drop=True)


def compute_surface_statistics(result: SurfaceResult) -> dict:
    """
    Summary statistics for a built surface.

    Returns
    -------
    dict with keys:
        n_points      : number of enriched records
        n_expiries    : number of distinct expiration dates
        spot          : spot estimate the records were priced at
        strike_range  : (min, max) raw strike
        days_range    : (min, max) days to expiry
        iv_range      : (min, max) record iv
        gamma_range   : (min, max) record gamma exposure
        atm_iv_mean   : mean iv of records within 1% of the ATM strike
        grid_shape    : (strike cells, days cells)
        populated     : True if every grid cell is defined
    """
    df = records_to_frame(result.records, result.spot, result.normalized)
    stats = {
        "n_points": len(df),
        "n_expiries": df["expiration_date"].nunique(),
        "spot": result.spot,
        "strike_range": (df["strike"].min(), df["strike"].max()),
        "days_range": (df["days_to_expiry"].min(), df["days_to_expiry"].max()),
        "iv_range": result.iv_range,
        "gamma_range": result.gamma_range,
        "grid_shape": result.grid.shape,
        "populated": result.grid.is_complete(),
    }

    atm_mask = df["moneyness"].abs() <= 0.01
    stats["atm_iv_mean"] = df.loc[atm_mask, "iv"].mean() if atm_mask.any() else np.nan
    return stats
