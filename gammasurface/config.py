"""
Configuration for the IV / gamma surface pipeline.

Module-level constants keep the magic numbers in one place. The
pipeline itself never reads them directly: every stage receives a
SurfaceConfig value, whose defaults are these constants. Override via
CLI args in main.py or by building a SurfaceConfig by hand.
"""

import os
from dataclasses import dataclass, field, replace as _dc_replace
from pathlib import Path
from typing import Optional


# ── paths ────────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"


# ── market parameters ────────────────────────────────────────────────────
TICKER = "AAPL"
RISK_FREE_RATE = 0.035          # annualized, used for every synthetic price
CONTRACT_MULTIPLIER = 100       # shares per contract, scales gamma exposure
BASE_IV = 0.3                   # 30-day ATM vol the smile is built around
IV_FLOOR = 0.01                 # smile + noise can dip below zero on junk strikes
EXPIRY_RANGE_DAYS = 90          # how far out to request expirations
FALLBACK_SPOT = 100.0           # spot estimate when no contract is usable


# ── synthetic smile ──────────────────────────────────────────────────────
SMILE_CURVATURE = 0.06          # iv += 0.06 * m^2
PUT_SKEW = 0.02                 # iv += 0.02 * |m| for m < 0
IV_NOISE = 0.01                 # uniform(-0.01, 0.01)
TERM_SLOPE = 0.1                # base iv drift per log(12) of term
OPEN_INTEREST_MAX = 1000
OPEN_INTEREST_MIN = 50
VOLUME_TO_OI = 0.8
BID_BAND = (0.95, 0.98)
ASK_BAND = (1.02, 1.05)
LAST_BAND = (0.97, 1.03)


# ── surface grid ─────────────────────────────────────────────────────────
STRIKE_RESOLUTION = 50          # cells along strike axis
DAYS_RESOLUTION = 20            # cells along days-to-expiry axis
RANGE_PADDING = 0.05            # pad observed extremes by 5% of the span
NEIGHBOR_RADIUS = 2             # 5x5 neighbourhood for local fill
DEFAULT_GRID_IV = 0.3           # global fallback when nothing is binned
DEFAULT_GRID_GAMMA = 0.01


# ── upstream data ────────────────────────────────────────────────────────
POLYGON_URL = "https://api.polygon.io/v3/reference/options/contracts"
POLYGON_LIMIT = 1000
FETCH_TIMEOUT = 10.0            # seconds; requests has no default timeout
API_KEY_ENV = "POLYGON_API_KEY"


# ── visualization ────────────────────────────────────────────────────────
DARK_BG = "#111111"
GRID_COLOR_ALPHA = 0.12
DPI = 200
FIG_WIDTH_2D = 14
FIG_HEIGHT_2D = 6
DESIRED_VOL_HEIGHT = 100.0      # max iv maps to this height
GAMMA_PLANE_OFFSET = -10.0      # gamma plane sits below the surface
GAMMA_POINTS_OFFSET = -5.0
GAMMA_LINE_HEIGHT = 50.0
COLOR_SCHEMES = ("rainbow", "heatmap", "monochrome")
GAMMA_DISPLAY_MODES = ("plane", "points", "lines")

# plotly camera
PLOTLY_CAMERA = dict(eye=dict(x=1.6, y=1.4, z=0.9))


# ── random seed ──────────────────────────────────────────────────────────
SEED = 42  # reproducibility for the sample source and CLI runs


@dataclass(frozen=True)
class SurfaceConfig:
    """
    Explicit configuration for one pipeline invocation.

    Passed to the generator, binner, interpolator and mapper in turn;
    nothing in the pipeline reads module globals at run time.
    """

    ticker: str = TICKER
    expiry_range_days: int = EXPIRY_RANGE_DAYS
    risk_free_rate: float = RISK_FREE_RATE
    contract_multiplier: int = CONTRACT_MULTIPLIER
    base_iv: float = BASE_IV
    strike_resolution: int = STRIKE_RESOLUTION
    days_resolution: int = DAYS_RESOLUTION
    normalize_strikes: bool = False
    iv_floor: float = IV_FLOOR
    seed: Optional[int] = None
    fetch_timeout: float = FETCH_TIMEOUT
    api_key: Optional[str] = field(default_factory=lambda: os.environ.get(API_KEY_ENV))
    smooth_sigma: Optional[float] = None
    color_scheme: str = "rainbow"
    desired_vol_height: float = DESIRED_VOL_HEIGHT
    show_gamma: bool = True
    gamma_display_mode: str = "plane"

    def __post_init__(self):
        if not self.ticker:
            raise ValueError("ticker must be a non-empty string")
        if int(self.expiry_range_days) <= 0:
            raise ValueError(f"expiry_range_days must be positive, got {self.expiry_range_days}")
        if int(self.contract_multiplier) <= 0:
            raise ValueError(f"contract_multiplier must be positive, got {self.contract_multiplier}")
        if self.strike_resolution < 1 or self.days_resolution < 1:
            raise ValueError(
                f"grid resolution must be positive, got "
                f"{self.strike_resolution}x{self.days_resolution}"
            )
        if self.base_iv <= 0:
            raise ValueError(f"base_iv must be positive, got {self.base_iv}")
        if self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be positive, got {self.fetch_timeout}")
        if self.color_scheme not in COLOR_SCHEMES:
            raise ValueError(f"Unknown color_scheme: {self.color_scheme}. Use one of {COLOR_SCHEMES}.")
        if self.gamma_display_mode not in GAMMA_DISPLAY_MODES:
            raise ValueError(
                f"Unknown gamma_display_mode: {self.gamma_display_mode}. "
                f"Use one of {GAMMA_DISPLAY_MODES}."
            )

    @property
    def grid_shape(self):
        return (self.strike_resolution, self.days_resolution)

    def replace(self, **changes) -> "SurfaceConfig":
        """Return a copy with the given fields changed (re-validated)."""
        return _dc_replace(self, **changes)
