"""
Contract list retrieval.

The pipeline only needs a listing of contracts: strike, expiration,
call/put and the contract ticker. Prices, IV and greeks are synthesized
downstream by the market generator. Three sources are supported:

    1. polygon:  Polygon.io reference contracts endpoint (needs an API key)
    2. yfinance: listed expiries/strikes from Yahoo (optional dependency)
    3. sample:   an offline, reproducible ladder of strikes around a spot

Upstream payloads are untrusted: entries with a missing or non-numeric
strike, or no expiration date, are dropped here rather than in the
generator. Anything that prevents a usable listing from arriving
(network error, timeout, HTTP error status, empty result) surfaces as
FetchError so the refresh controller can report it and keep the
previous surface on screen.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

import numpy as np
import requests

from . import config as cfg
from .config import SurfaceConfig
from .utils import get_logger


log = get_logger(__name__)


class FetchError(RuntimeError):
    """Raised when no usable contract listing could be retrieved."""


@dataclass(frozen=True)
class Contract:
    """One listed option contract, as received from upstream."""

    strike: float
    expiration_date: str
    contract_type: Optional[str]
    ticker: str = ""


# ════════════════════════════════════════════════════════════════════════
#  PARSING
# ════════════════════════════════════════════════════════════════════════

def _coerce_strike(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        strike = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(strike) or math.isinf(strike):
        return None
    return strike


def parse_expiration(expiration: str) -> datetime:
    """Parse an ISO date (or datetime) string; bare dates are UTC midnight."""
    parsed = datetime.fromisoformat(expiration.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_valid_expiration(expiration) -> bool:
    """True for a non-empty string parse_expiration accepts."""
    if not expiration or not isinstance(expiration, str):
        return False
    try:
        parse_expiration(expiration)
    except ValueError:
        return False
    return True


def parse_contracts(results: Iterable[dict]) -> List[Contract]:
    """
    Convert raw upstream dicts into Contract records.

    Expected keys: strike_price, expiration_date, contract_type, ticker.
    Entries without a numeric strike or an ISO expiration date are dropped.
    Zero/negative strikes and missing contract types are kept; the
    generator applies its own validity filter to those.
    """
    contracts = []
    dropped = 0
    for item in results:
        if not isinstance(item, dict):
            dropped += 1
            continue
        strike = _coerce_strike(item.get("strike_price"))
        expiration = item.get("expiration_date")
        if strike is None or not is_valid_expiration(expiration):
            dropped += 1
            continue
        contract_type = item.get("contract_type")
        contracts.append(Contract(
            strike=strike,
            expiration_date=str(expiration),
            contract_type=str(contract_type).lower() if contract_type else None,
            ticker=str(item.get("ticker") or ""),
        ))
    if dropped:
        log.warning("Dropped %d malformed contract entries", dropped)
    return contracts


def expiry_window(expiry_range_days: int, today: Optional[date] = None):
    """Return (from, to) ISO dates covering today .. today + range."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today.isoformat(), (today + timedelta(days=int(expiry_range_days))).isoformat()


# ════════════════════════════════════════════════════════════════════════
#  POLYGON
# ════════════════════════════════════════════════════════════════════════

def fetch_polygon_contracts(
    config: SurfaceConfig,
    session: Optional[requests.Session] = None,
    today: Optional[date] = None,
) -> List[Contract]:
    """
    Fetch the contract listing for config.ticker from Polygon.io.

    Parameters
    ----------
    config : pipeline configuration (ticker, expiry window, timeout, api key)
    session : optional requests.Session (tests pass a stub)
    today : first day of the expiry window (default: today, UTC)

    Returns
    -------
    list of Contract

    Raises
    ------
    FetchError : missing API key, transport failure or timeout, non-2xx
                 status, undecodable body, or an empty result set
    """
    if not config.api_key:
        raise FetchError(
            f"No Polygon API key configured. Set {cfg.API_KEY_ENV} or pass --api-key."
        )

    from_date, to_date = expiry_window(config.expiry_range_days, today)
    params = {
        "underlying_ticker": config.ticker,
        "expiration_date.gte": from_date,
        "expiration_date.lte": to_date,
        "limit": cfg.POLYGON_LIMIT,
        "apiKey": config.api_key,
    }

    http = session if session is not None else requests
    log.info("Fetching contracts for %s expiring %s..%s", config.ticker, from_date, to_date)

    try:
        response = http.get(cfg.POLYGON_URL, params=params, timeout=config.fetch_timeout)
    except requests.Timeout as e:
        raise FetchError(
            f"Request for {config.ticker} timed out after {config.fetch_timeout:.0f}s"
        ) from e
    except requests.RequestException as e:
        raise FetchError(f"Network error while fetching {config.ticker}: {e}") from e

    if not response.ok:
        raise FetchError(f"API error: {response.status_code} {response.reason}")

    try:
        payload = response.json()
    except ValueError as e:
        raise FetchError(f"Malformed response for {config.ticker}: {e}") from e

    results = payload.get("results") if isinstance(payload, dict) else None
    if not results:
        raise FetchError(
            f"No options data available for {config.ticker}. Try another ticker."
        )

    contracts = parse_contracts(results)
    if not contracts:
        raise FetchError(f"No usable contracts in response for {config.ticker}.")
    return contracts


# ════════════════════════════════════════════════════════════════════════
#  YFINANCE
# ════════════════════════════════════════════════════════════════════════

def pull_yfinance_contracts(
    config: SurfaceConfig,
    today: Optional[date] = None,
) -> List[Contract]:
    """
    List contracts from Yahoo Finance via yfinance.

    Only the strike ladder and expiries are used; Yahoo's quotes are
    ignored since the generator synthesizes its own.

    Raises
    ------
    ImportError : if yfinance is not installed
    FetchError : if no expiries fall inside the window or the pull fails
    """
    try:
        import yfinance as yf
    except ImportError:
        raise ImportError(
            "yfinance is required for this source. Install with: pip install yfinance\n"
            "Or use --source sample for offline mode."
        )

    from_date, to_date = expiry_window(config.expiry_range_days, today)
    try:
        tk = yf.Ticker(config.ticker)
        expiries = [e for e in tk.options if from_date <= e <= to_date]
    except Exception as e:
        raise FetchError(f"Failed to list expiries for {config.ticker}: {e}") from e
    if not expiries:
        raise FetchError(f"No option expiries found for {config.ticker} within the window.")

    contracts = []
    for expiry_str in expiries:
        try:
            chain = tk.option_chain(expiry_str)
            frames = [(chain.calls, "call"), (chain.puts, "put")]
        except Exception as e:
            raise FetchError(
                f"Failed to pull the {expiry_str} chain for {config.ticker}: {e}"
            ) from e
        for opt_df, opt_type in frames:
            for _, row in opt_df.iterrows():
                strike = _coerce_strike(row.get("strike"))
                if strike is None:
                    continue
                contracts.append(Contract(
                    strike=strike,
                    expiration_date=expiry_str,
                    contract_type=opt_type,
                    ticker=str(row.get("contractSymbol") or ""),
                ))

    if not contracts:
        raise FetchError(f"No contracts listed for {config.ticker}.")
    return contracts


# ════════════════════════════════════════════════════════════════════════
#  SAMPLE (offline)
# ════════════════════════════════════════════════════════════════════════

def sample_contracts(
    ticker: str = cfg.TICKER,
    spot: float = 100.0,
    expiries_days: Sequence[int] = (7, 14, 30, 45, 60, 90),
    strike_step: Optional[float] = None,
    moneyness_bound: float = 0.25,
    today: Optional[date] = None,
) -> List[Contract]:
    """
    Build an offline contract listing around a spot price.

    Calls and puts at every strike of a ladder spanning
    spot * (1 ± moneyness_bound), for each expiry offset in days.

    Parameters
    ----------
    ticker : underlying symbol used in contract tickers
    spot : centre of the strike ladder
    expiries_days : calendar-day offsets from today for each expiry
    strike_step : ladder spacing (default: ~1% of spot, rounded to 0.5)
    moneyness_bound : half-width of the ladder as a fraction of spot
    today : reference date (default: today, UTC)
    """
    if today is None:
        today = datetime.now(timezone.utc).date()
    if strike_step is None:
        strike_step = max(0.5, round(spot * 0.01 * 2) / 2)

    strikes = np.arange(
        spot * (1 - moneyness_bound),
        spot * (1 + moneyness_bound) + strike_step / 2,
        strike_step,
    )
    strikes = np.round(strikes / strike_step) * strike_step

    contracts = []
    for days in expiries_days:
        expiry = today + timedelta(days=int(days))
        code = expiry.strftime("%y%m%d")
        for K in strikes:
            K = float(K)
            if K <= 0:
                continue
            for opt_type, flag in (("call", "C"), ("put", "P")):
                contracts.append(Contract(
                    strike=K,
                    expiration_date=expiry.isoformat(),
                    contract_type=opt_type,
                    ticker=f"O:{ticker}{code}{flag}{int(round(K * 1000)):08d}",
                ))
    return contracts


# ════════════════════════════════════════════════════════════════════════
#  UNIFIED INTERFACE
# ════════════════════════════════════════════════════════════════════════

def get_contracts(
    source: str = "sample",
    config: Optional[SurfaceConfig] = None,
    spot: float = 100.0,
) -> List[Contract]:
    """
    Main entry point for getting a contract listing.

    Parameters
    ----------
    source : "polygon", "yfinance" or "sample"
    config : pipeline configuration (default: SurfaceConfig())
    spot : centre of the ladder for the sample source (ignored otherwise)
    """
    if config is None:
        config = SurfaceConfig()
    if source == "polygon":
        return fetch_polygon_contracts(config)
    elif source == "yfinance":
        return pull_yfinance_contracts(config)
    elif source == "sample":
        horizon = [d for d in (7, 14, 30, 45, 60, 90, 120, 180) if d <= config.expiry_range_days]
        return sample_contracts(config.ticker, spot, expiries_days=horizon or [config.expiry_range_days])
    else:
        raise ValueError(f"Unknown source: {source}. Use 'polygon', 'yfinance' or 'sample'.")
