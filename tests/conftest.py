"""
Shared test fixtures and pytest configuration.
"""

import numpy as np
import pytest

from gammasurface.config import SurfaceConfig
from gammasurface.data_feed import sample_contracts

from helpers import NOW, TODAY


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def rng():
    """Ensure test reproducibility."""
    return np.random.default_rng(42)


@pytest.fixture
def surface_config():
    return SurfaceConfig(ticker="TEST", seed=42, api_key="test-key")


@pytest.fixture
def contracts():
    """Offline ladder around 100, six expiries out to 90 days."""
    return sample_contracts("TEST", spot=100.0, today=TODAY)
