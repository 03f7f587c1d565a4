"""
Synthetic market generation: from a bare contract listing to one
enriched record per contract, with a volatility smile per expiry and
Black-Scholes gamma scaled into dealer gamma exposure.

Per expiry the smile is

    iv = baseIV(T) + 0.06 m² + 0.02 |m| [m < 0] + U(-0.01, 0.01)

where m = (K - K_atm) / K_atm and baseIV(T) drifts with log-term:

    baseIV(T) = baseIV * (1 + 0.1 * ln(days/30) / ln(12))

Open interest, volume and the bid/ask/last spread are random draws.
All randomness comes from an injected numpy Generator so a fixed seed
reproduces the whole snapshot exactly.

The spot estimate is not a market price. It is the strike of the
middle element of the contract list sorted by expiration (index n // 2),
which is what the rest of the tooling has always keyed off. Sorting by
expiration and then indexing by position mixes time- and price-order;
it is kept as-is so surfaces stay comparable with earlier runs.
"""

import math
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from . import config as cfg
from .black_scholes import (
    gamma as bs_gamma, bs_price, approx_delta, approx_theta, approx_vega,
)
from .config import SurfaceConfig
from .data_feed import Contract, is_valid_expiration, parse_expiration
from .utils import get_logger, timeit


log = get_logger(__name__)

_MS_PER_DAY = 1000 * 60 * 60 * 24


@dataclass(frozen=True)
class EnrichedRecord:
    """One synthetic quote. Created once per generator pass, never mutated."""

    ticker: str
    strike: float
    expiration_date: str
    contract_type: str
    days_to_expiry: float
    moneyness: float
    iv: float
    gamma: float
    gamma_exposure: float
    delta: float
    theta: float
    vega: float
    bid_price: float
    ask_price: float
    last_price: float
    open_interest: int
    volume: int


@dataclass(frozen=True)
class MarketSnapshot:
    """Generator output: the flat record list plus the spot it was priced at."""

    records: Tuple[EnrichedRecord, ...]
    spot: float

    def __len__(self):
        return len(self.records)


# ════════════════════════════════════════════════════════════════════════
#  HELPERS
# ════════════════════════════════════════════════════════════════════════

def days_until(expiration: str, now: datetime) -> float:
    """Fractional days from now to expiration (negative once expired)."""
    delta = parse_expiration(expiration) - now
    return delta.total_seconds() * 1000 / _MS_PER_DAY


def filter_valid_contracts(contracts: Iterable[Contract]) -> List[Contract]:
    """Keep contracts with a positive strike, a contract type and a parseable expiration."""
    return [
        c for c in contracts
        if c.strike is not None and c.strike > 0 and c.contract_type
        and is_valid_expiration(c.expiration_date)
    ]


def estimate_spot(contracts: Sequence[Contract]) -> float:
    """
    Spot proxy: strike of element n // 2 after a stable sort by expiration.

    Falls back to config.FALLBACK_SPOT when nothing is valid.
    """
    valid = filter_valid_contracts(contracts)
    if not valid:
        return cfg.FALLBACK_SPOT
    by_expiry = sorted(valid, key=lambda c: parse_expiration(c.expiration_date))
    return float(by_expiry[len(by_expiry) // 2].strike)


def group_by_expiry(contracts: Iterable[Contract]) -> Dict[str, List[Contract]]:
    """Group contracts by exact expiration string, first-seen order."""
    groups = OrderedDict()
    for contract in contracts:
        groups.setdefault(contract.expiration_date, []).append(contract)
    return groups


def find_closest_index(values: Sequence[float], target: float) -> int:
    """Index of the value closest to target. Ties go to the lower index."""
    best_index = 0
    best_diff = math.inf
    for i, value in enumerate(values):
        diff = abs(value - target)
        if diff < best_diff:
            best_diff = diff
            best_index = i
    return best_index


def term_base_iv(base_iv: float, days_to_expiry: float) -> float:
    """ATM vol for a given term: flat at 30 days, +10% per ln(12) of term."""
    return base_iv * (1 + cfg.TERM_SLOPE * (math.log(days_to_expiry / 30) / math.log(12)))


def smile_iv(base_for_term: float, moneyness: float) -> float:
    """Deterministic part of the smile: parabola plus downside put skew."""
    iv = base_for_term + cfg.SMILE_CURVATURE * moneyness ** 2
    if moneyness < 0:
        iv += cfg.PUT_SKEW * abs(moneyness)
    return iv


def display_strike(strike: float, spot: Optional[float], normalize: bool) -> float:
    """
    Strike in display space.

    With normalize on, strikes are rebased so spot reads 100. Without a
    spot (None or 0) the raw strike is returned regardless of the flag.
    """
    if normalize and spot:
        return (strike / spot) * 100
    return strike


def make_rng(config: SurfaceConfig, rng: Optional[np.random.Generator] = None) -> np.random.Generator:
    """Return rng if given, else a Generator seeded from config.seed."""
    if rng is not None:
        return rng
    return np.random.default_rng(config.seed)


# ════════════════════════════════════════════════════════════════════════
#  GENERATOR
# ════════════════════════════════════════════════════════════════════════

def _enrich(
    contract: Contract,
    spot: float,
    atm_strike: float,
    base_for_term: float,
    days_to_expiry: float,
    config: SurfaceConfig,
    rng: np.random.Generator,
) -> EnrichedRecord:
    strike = contract.strike
    moneyness = (strike - atm_strike) / atm_strike

    iv = smile_iv(base_for_term, moneyness) + rng.uniform(-cfg.IV_NOISE, cfg.IV_NOISE)
    if iv < config.iv_floor:
        log.debug("Flooring iv %.4f at %.4f for %s", iv, config.iv_floor, contract.ticker)
        iv = config.iv_floor

    T = days_to_expiry / 365
    r = config.risk_free_rate

    gamma_value = bs_gamma(spot, strike, r, iv, T)
    open_interest = int(math.floor(rng.uniform(0, cfg.OPEN_INTEREST_MAX))) + cfg.OPEN_INTEREST_MIN
    gamma_exposure = gamma_value * open_interest * config.contract_multiplier

    price = bs_price(spot, strike, r, iv, T, contract.contract_type)
    bid = price * rng.uniform(*cfg.BID_BAND)
    ask = price * rng.uniform(*cfg.ASK_BAND)
    last = price * rng.uniform(*cfg.LAST_BAND)
    volume = int(math.floor(rng.uniform(0, open_interest * cfg.VOLUME_TO_OI)))

    return EnrichedRecord(
        ticker=contract.ticker,
        strike=strike,
        expiration_date=contract.expiration_date,
        contract_type=contract.contract_type,
        days_to_expiry=days_to_expiry,
        moneyness=moneyness,
        iv=iv,
        gamma=gamma_value,
        gamma_exposure=gamma_exposure,
        delta=approx_delta(moneyness, contract.contract_type),
        theta=approx_theta(spot, gamma_value, days_to_expiry),
        vega=approx_vega(spot, gamma_value, days_to_expiry),
        bid_price=bid,
        ask_price=ask,
        last_price=last,
        open_interest=open_interest,
        volume=volume,
    )


@timeit
def generate_synthetic_data(
    contracts: Sequence[Contract],
    config: Optional[SurfaceConfig] = None,
    rng: Optional[np.random.Generator] = None,
    now: Optional[datetime] = None,
) -> MarketSnapshot:
    """
    Generate one enriched record per valid, unexpired contract.

    Parameters
    ----------
    contracts : raw contract listing (untrusted; invalid entries skipped)
    config : pipeline configuration (default: SurfaceConfig())
    rng : numpy Generator for all random draws (default: seeded from config.seed)
    now : valuation time, timezone-aware (default: current UTC time)

    Returns
    -------
    MarketSnapshot : records plus the spot estimate they were priced at.
                     Never raises on degenerate input; an empty listing
                     yields no records and the fallback spot.
    """
    if config is None:
        config = SurfaceConfig()
    rng = make_rng(config, rng)
    if now is None:
        now = datetime.now(timezone.utc)

    valid = filter_valid_contracts(contracts)
    spot = estimate_spot(valid)
    log.info("Estimated current stock price: %.2f (%d valid contracts)", spot, len(valid))

    records = []
    for expiration, group in group_by_expiry(valid).items():
        days_to_expiry = days_until(expiration, now)
        if days_to_expiry <= 0:
            continue

        strikes = sorted(c.strike for c in group)
        atm_strike = strikes[find_closest_index(strikes, spot)]
        base_for_term = term_base_iv(config.base_iv, days_to_expiry)

        for contract in group:
            records.append(_enrich(
                contract, spot, atm_strike, base_for_term, days_to_expiry, config, rng,
            ))

    return MarketSnapshot(records=tuple(records), spot=spot)
