"""
Tests for surface construction, the options-chain table and statistics.
"""

import numpy as np
import pandas as pd
import pytest

from gammasurface.config import SurfaceConfig
from gammasurface.market_generator import generate_synthetic_data
from gammasurface.surface_builder import (
    CHAIN_COLUMNS, build_surface, compute_surface_statistics,
    records_to_frame, surface_from_snapshot,
)
from helpers import NOW, make_contract, make_record


@pytest.fixture
def result(contracts, surface_config, rng):
    return build_surface(contracts, surface_config, rng=rng, now=NOW)


class TestBuildSurface:

    def test_output_shapes(self, result):
        assert result.grid.shape == (50, 20)
        assert result.iv_grid.shape == (50, 20)
        assert result.gamma_grid.shape == (50, 20)
        assert result.strike_axis.resolution == 50
        assert result.days_axis.resolution == 20

    def test_no_nans_in_output(self, result):
        assert not np.isnan(result.iv_grid).any()
        assert not np.isnan(result.gamma_grid).any()
        assert result.grid.is_complete()

    def test_one_record_per_contract(self, result, contracts):
        assert len(result.records) == len(contracts)
        assert result.ticker == "TEST"

    def test_grid_bounds(self, result):
        """Axes cover every record (padding only widens them)."""
        strikes = [r.strike for r in result.records]
        days = [r.days_to_expiry for r in result.records]
        assert result.strike_axis.minimum <= min(strikes)
        assert result.strike_axis.maximum >= max(strikes)
        assert result.days_axis.minimum <= min(days)
        assert result.days_axis.maximum >= max(days)
        assert result.days_axis.minimum >= 0

    def test_grid_values_within_record_range(self, result):
        lo, hi = result.iv_range
        assert result.iv_grid.min() >= lo - 1e-12
        assert result.iv_grid.max() <= hi + 1e-12

    def test_iv_values_reasonable(self, result):
        assert result.iv_grid.min() > 0.0
        assert result.iv_grid.max() < 1.0

    def test_empty_listing_returns_none(self, surface_config, rng):
        assert build_surface([], surface_config, rng=rng, now=NOW) is None

    def test_all_expired_returns_none(self, surface_config, rng):
        contracts = [make_contract(100.0, "2023-12-01")]
        assert build_surface(contracts, surface_config, rng=rng, now=NOW) is None

    def test_single_contract(self, surface_config, rng):
        result = build_surface([make_contract(100.0)], surface_config, rng=rng, now=NOW)
        assert result.grid.is_complete()
        np.testing.assert_allclose(result.iv_grid, result.records[0].iv)

    def test_normalized_axis(self, contracts, surface_config, rng):
        config = surface_config.replace(normalize_strikes=True)
        result = build_surface(contracts, config, rng=rng, now=NOW)
        assert result.normalized
        display = [result.display_strike(r.strike) for r in result.records]
        assert result.strike_axis.minimum <= min(display)
        assert result.strike_axis.maximum >= max(display)
        assert result.display_strike(result.spot) == pytest.approx(100.0)

    def test_smoothing(self, contracts, surface_config):
        raw = build_surface(contracts, surface_config, rng=np.random.default_rng(5), now=NOW)
        smooth = build_surface(contracts, surface_config.replace(smooth_sigma=2.0),
                               rng=np.random.default_rng(5), now=NOW)
        grad_raw = np.max(np.abs(np.diff(raw.iv_grid, axis=0)))
        grad_smooth = np.max(np.abs(np.diff(smooth.iv_grid, axis=0)))
        assert grad_smooth < grad_raw

    def test_surface_from_snapshot_matches_build(self, contracts, surface_config):
        snapshot = generate_synthetic_data(contracts, surface_config,
                                           rng=np.random.default_rng(9), now=NOW)
        a = surface_from_snapshot(snapshot, surface_config)
        b = build_surface(contracts, surface_config, rng=np.random.default_rng(9), now=NOW)
        np.testing.assert_array_equal(a.iv_grid, b.iv_grid)
        np.testing.assert_array_equal(a.gamma_grid, b.gamma_grid)

    def test_custom_resolution(self, contracts, rng):
        config = SurfaceConfig(ticker="TEST", strike_resolution=12, days_resolution=7)
        result = build_surface(contracts, config, rng=rng, now=NOW)
        assert result.grid.shape == (12, 7)
        assert result.grid.is_complete()


class TestChainFrame:

    def test_columns(self, result):
        df = records_to_frame(result.records, result.spot)
        assert list(df.columns) == CHAIN_COLUMNS
        assert len(df) == len(result.records)

    def test_sorted_by_expiry_then_strike(self):
        records = [
            make_record(105.0, expiration_date="2024-02-15"),
            make_record(95.0, expiration_date="2024-02-15", contract_type="put"),
            make_record(100.0, expiration_date="2024-01-31", contract_type="put"),
            make_record(100.0, expiration_date="2024-01-31"),
        ]
        df = records_to_frame(records)
        assert list(df["expiration_date"]) == ["2024-01-31", "2024-01-31", "2024-02-15", "2024-02-15"]
        assert list(df["strike"]) == [100.0, 100.0, 95.0, 105.0]
        assert list(df["contract_type"][:2]) == ["call", "put"]
        assert list(df.index) == [0, 1, 2, 3]

    def test_display_strike_column(self):
        df = records_to_frame([make_record(150.0)], spot=120.0, normalize=True)
        assert df.loc[0, "display_strike"] == pytest.approx(125.0)
        df = records_to_frame([make_record(150.0)], spot=120.0, normalize=False)
        assert df.loc[0, "display_strike"] == 150.0

    def test_empty(self):
        df = records_to_frame([])
        assert isinstance(df, pd.DataFrame)
        assert df.empty
        assert list(df.columns) == CHAIN_COLUMNS


class TestStatistics:

    def test_keys(self, result):
        stats = compute_surface_statistics(result)
        for key in ("n_points", "n_expiries", "spot", "strike_range", "days_range",
                    "iv_range", "gamma_range", "grid_shape", "populated", "atm_iv_mean"):
            assert key in stats

    def test_values(self, result, contracts):
        stats = compute_surface_statistics(result)
        assert stats["n_points"] == len(contracts)
        assert stats["n_expiries"] == 6
        assert stats["grid_shape"] == (50, 20)
        assert stats["populated"]
        assert stats["strike_range"] == (75.0, 125.0)
        assert stats["iv_range"][0] <= stats["atm_iv_mean"] <= stats["iv_range"][1]
