"""
Tests for synthetic market generation.
"""

from datetime import datetime, timezone

import numpy as np
import pytest

from gammasurface.black_scholes import bs_price, gamma as bs_gamma
from gammasurface.config import SurfaceConfig
from gammasurface.market_generator import (
    days_until, display_strike, estimate_spot, filter_valid_contracts,
    find_closest_index, generate_synthetic_data, group_by_expiry,
    smile_iv, term_base_iv,
)
from helpers import NOW, make_contract


EPS = 1e-9


class TestHelpers:

    def test_days_until_whole_days(self):
        assert days_until("2024-01-31", NOW) == pytest.approx(30.0)

    def test_days_until_fractional(self):
        noon = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        assert days_until("2024-01-31", noon) == pytest.approx(29.5)

    def test_days_until_past(self):
        assert days_until("2023-12-31", NOW) < 0

    def test_filter_valid_contracts(self):
        contracts = [
            make_contract(100.0),
            make_contract(0.0),
            make_contract(-5.0),
            make_contract(100.0, contract_type=None),
            make_contract(100.0, expiration=""),
            make_contract(100.0, expiration="01/31/2024"),
        ]
        assert filter_valid_contracts(contracts) == [contracts[0]]

    def test_find_closest_index(self):
        assert find_closest_index([90, 95, 100, 105], 101) == 2
        assert find_closest_index([90, 95, 100, 105], 1000) == 3

    def test_find_closest_index_tie_goes_low(self):
        assert find_closest_index([95, 105], 100) == 0

    def test_group_by_expiry_keeps_first_seen_order(self):
        contracts = [
            make_contract(100, "2024-03-15"),
            make_contract(100, "2024-01-31"),
            make_contract(105, "2024-03-15"),
        ]
        groups = group_by_expiry(contracts)
        assert list(groups) == ["2024-03-15", "2024-01-31"]
        assert [c.strike for c in groups["2024-03-15"]] == [100, 105]

    def test_term_base_iv(self):
        assert term_base_iv(0.3, 30) == pytest.approx(0.3)
        assert term_base_iv(0.3, 360) == pytest.approx(0.33)
        assert term_base_iv(0.3, 10) < 0.3

    def test_smile_put_skew(self):
        """Downside strikes carry the extra skew term."""
        assert smile_iv(0.3, 0.0) == 0.3
        assert smile_iv(0.3, 0.1) == pytest.approx(0.3 + 0.06 * 0.01)
        assert smile_iv(0.3, -0.1) == pytest.approx(0.3 + 0.06 * 0.01 + 0.02 * 0.1)


class TestSpotEstimate:

    def test_fallback_when_empty(self):
        assert estimate_spot([]) == 100.0

    def test_fallback_when_all_invalid(self):
        assert estimate_spot([make_contract(0.0), make_contract(0.0)]) == 100.0

    def test_middle_element_by_expiry(self):
        """Index n // 2 of the expiry-sorted list, not the median strike."""
        contracts = [
            make_contract(300.0, "2024-03-15"),
            make_contract(10.0, "2024-01-19"),
            make_contract(50.0, "2024-02-16"),
            make_contract(20.0, "2024-01-19"),
        ]
        # sorted: 10 (01-19), 20 (01-19), 50 (02-16), 300 (03-15) -> index 2
        assert estimate_spot(contracts) == 50.0

    def test_stable_within_same_expiry(self):
        contracts = [make_contract(95.0), make_contract(105.0)]
        assert estimate_spot(contracts) == 105.0


class TestDisplayStrike:

    def test_passthrough_without_normalize(self):
        assert display_strike(150.0, 120.0, False) == 150.0

    def test_normalized_to_percent_of_spot(self):
        assert display_strike(150.0, 120.0, True) == pytest.approx(125.0)
        assert display_strike(120.0, 120.0, True) == pytest.approx(100.0)

    def test_missing_spot_skips_normalization(self):
        assert display_strike(150.0, 0.0, True) == 150.0
        assert display_strike(150.0, None, True) == 150.0

    def test_repeated_calls_do_not_compound(self):
        first = display_strike(150.0, 120.0, True)
        for _ in range(5):
            assert display_strike(150.0, 120.0, True) == first


class TestGenerator:

    def test_one_record_per_valid_contract(self, contracts, surface_config, rng):
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        assert len(snapshot.records) == len(contracts)

    def test_atm_tie_breaks_to_lower_strike(self, surface_config, rng):
        """
        Spot resolves to 100 from the middle group; the 30-day group only
        lists 95 and 105, equally far, so 95 becomes its ATM strike.
        """
        contracts = [
            make_contract(90.0, "2024-01-11"),
            make_contract(90.0, "2024-01-11", "put"),
            make_contract(100.0, "2024-01-21"),
            make_contract(95.0, "2024-01-31"),
            make_contract(105.0, "2024-01-31"),
        ]
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        assert snapshot.spot == 100.0

        by_strike = {r.strike: r for r in snapshot.records if r.expiration_date == "2024-01-31"}
        assert by_strike[95.0].moneyness == 0.0
        assert by_strike[105.0].moneyness == pytest.approx(10 / 95)

    def test_symmetric_moneyness_around_listed_atm(self, surface_config, rng):
        contracts = [make_contract(k) for k in (95.0, 100.0, 105.0)]
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        assert snapshot.spot == 100.0
        moneyness = {r.strike: r.moneyness for r in snapshot.records}
        assert moneyness[95.0] == pytest.approx(-0.05)
        assert moneyness[100.0] == 0.0
        assert moneyness[105.0] == pytest.approx(0.05)

    def test_days_and_term(self, surface_config, rng):
        snapshot = generate_synthetic_data([make_contract(100.0)], surface_config, rng=rng, now=NOW)
        record = snapshot.records[0]
        assert record.days_to_expiry == pytest.approx(30.0)
        assert abs(record.iv - 0.3) <= 0.01 + 1e-12

    def test_expired_groups_skipped(self, surface_config, rng):
        contracts = [
            make_contract(100.0, "2023-12-15"),
            make_contract(100.0, "2024-01-01"),
            make_contract(100.0, "2024-01-31"),
        ]
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        assert [r.expiration_date for r in snapshot.records] == ["2024-01-31"]

    def test_invalid_contracts_dropped(self, surface_config, rng):
        contracts = [make_contract(0.0), make_contract(100.0, contract_type=None), make_contract(100.0)]
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        assert len(snapshot.records) == 1

    def test_empty_input_falls_back(self, surface_config, rng):
        snapshot = generate_synthetic_data([], surface_config, rng=rng, now=NOW)
        assert snapshot.records == ()
        assert snapshot.spot == 100.0

    def test_iv_noise_band(self, contracts, surface_config, rng):
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        for rec in snapshot.records:
            strikes = sorted(c.strike for c in contracts if c.expiration_date == rec.expiration_date)
            atm = strikes[find_closest_index(strikes, snapshot.spot)]
            base = smile_iv(term_base_iv(0.3, rec.days_to_expiry), (rec.strike - atm) / atm)
            assert abs(rec.iv - base) <= 0.01 + 1e-12

    def test_iv_floor(self, contracts, rng):
        config = SurfaceConfig(ticker="TEST", base_iv=0.001, iv_floor=0.01)
        snapshot = generate_synthetic_data(contracts, config, rng=rng, now=NOW)
        assert min(r.iv for r in snapshot.records) >= 0.01

    def test_gamma_exposure_scaling(self, contracts, surface_config, rng):
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        for rec in snapshot.records:
            expected_gamma = bs_gamma(snapshot.spot, rec.strike, 0.035, rec.iv, rec.days_to_expiry / 365)
            assert rec.gamma == pytest.approx(expected_gamma)
            assert rec.gamma_exposure == pytest.approx(rec.gamma * rec.open_interest * 100)

    def test_quote_bands(self, contracts, surface_config, rng):
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        for rec in snapshot.records:
            price = bs_price(snapshot.spot, rec.strike, 0.035, rec.iv,
                             rec.days_to_expiry / 365, rec.contract_type)
            if price < 1e-6:
                continue
            assert 0.95 - EPS <= rec.bid_price / price <= 0.98 + EPS
            assert 1.02 - EPS <= rec.ask_price / price <= 1.05 + EPS
            assert 0.97 - EPS <= rec.last_price / price <= 1.03 + EPS

    def test_open_interest_and_volume(self, contracts, surface_config, rng):
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        for rec in snapshot.records:
            assert 50 <= rec.open_interest <= 1049
            assert 0 <= rec.volume <= rec.open_interest * 0.8
            assert isinstance(rec.open_interest, int)
            assert isinstance(rec.volume, int)

    def test_delta_sign_by_type(self, contracts, surface_config, rng):
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        for rec in snapshot.records:
            if rec.contract_type == "call":
                assert (rec.delta >= 0.5) == (rec.moneyness >= 0)
            else:
                assert (rec.delta <= -0.5) == (rec.moneyness <= 0)

    def test_theta_negative_vega_positive(self, contracts, surface_config, rng):
        snapshot = generate_synthetic_data(contracts, surface_config, rng=rng, now=NOW)
        assert all(r.theta < 0 for r in snapshot.records)
        assert all(r.vega > 0 for r in snapshot.records)

    def test_seeded_runs_are_identical(self, contracts, surface_config):
        a = generate_synthetic_data(contracts, surface_config, rng=np.random.default_rng(7), now=NOW)
        b = generate_synthetic_data(contracts, surface_config, rng=np.random.default_rng(7), now=NOW)
        assert a == b

    def test_config_seed_used_without_rng(self, contracts, surface_config):
        a = generate_synthetic_data(contracts, surface_config, now=NOW)
        b = generate_synthetic_data(contracts, surface_config, now=NOW)
        assert a.records == b.records

    def test_different_seeds_differ(self, contracts, surface_config):
        a = generate_synthetic_data(contracts, surface_config, rng=np.random.default_rng(1), now=NOW)
        b = generate_synthetic_data(contracts, surface_config, rng=np.random.default_rng(2), now=NOW)
        assert [r.iv for r in a.records] != [r.iv for r in b.records]
