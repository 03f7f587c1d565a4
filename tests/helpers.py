"""
Plain builders shared by the test modules.
"""

from datetime import date, datetime, timezone

from gammasurface.data_feed import Contract
from gammasurface.market_generator import EnrichedRecord


NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)
TODAY = date(2024, 1, 1)


def make_record(strike=100.0, days=30.0, iv=0.3, gamma_exposure=1.0, **overrides):
    """Hand-built EnrichedRecord for binning / interpolation tests."""
    fields = dict(
        ticker="O:TEST",
        strike=strike,
        expiration_date="2024-01-31",
        contract_type="call",
        days_to_expiry=days,
        moneyness=0.0,
        iv=iv,
        gamma=0.01,
        gamma_exposure=gamma_exposure,
        delta=0.5,
        theta=-0.01,
        vega=0.01,
        bid_price=1.0,
        ask_price=1.1,
        last_price=1.05,
        open_interest=100,
        volume=10,
    )
    fields.update(overrides)
    return EnrichedRecord(**fields)


def make_contract(strike, expiration="2024-01-31", contract_type="call", ticker="O:TEST"):
    return Contract(strike=strike, expiration_date=expiration,
                    contract_type=contract_type, ticker=ticker)
