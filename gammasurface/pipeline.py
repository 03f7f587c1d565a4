"""
Refresh controller: fetch -> build -> commit, one generation at a time.

A refresh recomputes everything from scratch. Two rules keep the shown
surface consistent:

    - failure (fetch error, empty listing, nothing survives generation)
      reports a status message and leaves the last committed surface in
      place; nothing partial is ever committed
    - every refresh takes a new generation number before fetching, and
      only commits if no newer refresh has started by the time it is
      done, so a slow, stale response can't overwrite a newer surface

The fetch timeout lives in the fetcher (SurfaceConfig.fetch_timeout for
the built-in sources). Nothing is retried; the caller refreshes again.
"""

import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional

import numpy as np

from .config import SurfaceConfig
from .data_feed import Contract, FetchError, fetch_polygon_contracts
from .market_generator import generate_synthetic_data, make_rng
from .surface_builder import SurfaceResult, surface_from_snapshot
from .utils import get_logger


log = get_logger(__name__)

Fetcher = Callable[[SurfaceConfig], List[Contract]]
StatusCallback = Callable[[str], None]


class SurfacePipeline:
    """
    Owns the currently displayed surface and produces new ones on demand.

    Parameters
    ----------
    config : pipeline configuration
    fetcher : callable(config) -> list of Contract; raises FetchError on
              failure (default: fetch_polygon_contracts)
    on_status : callable(str) receiving progress / error text
                (default: log at INFO)
    rng : numpy Generator shared by successive refreshes
          (default: seeded from config.seed)
    clock : callable() -> aware datetime used as valuation time

    Refreshes are expected to run one at a time (a newer one may start
    from inside a slow fetcher, as a UI re-entering on user input would).
    The lock only keeps the generation check and the commit atomic; the
    shared rng is not safe to draw from on several threads at once.
    """

    def __init__(
        self,
        config: Optional[SurfaceConfig] = None,
        fetcher: Optional[Fetcher] = None,
        on_status: Optional[StatusCallback] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config if config is not None else SurfaceConfig()
        self.fetcher = fetcher if fetcher is not None else fetch_polygon_contracts
        self.on_status = on_status if on_status is not None else log.info
        self.rng = make_rng(self.config, rng)
        self.clock = clock if clock is not None else (lambda: datetime.now(timezone.utc))

        self._lock = threading.Lock()
        self._generation = 0
        self._current: Optional[SurfaceResult] = None

    @property
    def current(self) -> Optional[SurfaceResult]:
        """Last committed surface, or None before the first success."""
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def _status(self, message: str) -> None:
        self.on_status(message)

    def _begin(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _commit(self, generation: int, result: SurfaceResult) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            self._current = result
            return True

    def is_stale(self, generation: int) -> bool:
        with self._lock:
            return generation != self._generation

    def refresh(self, config: Optional[SurfaceConfig] = None) -> Optional[SurfaceResult]:
        """
        Rebuild the surface.

        Parameters
        ----------
        config : replaces the pipeline's configuration for this and
                 later refreshes (e.g. a new ticker)

        Returns
        -------
        SurfaceResult if this refresh committed, None if it failed or
        was superseded by a newer refresh.
        """
        if config is not None:
            self.config = config
        cfg = self.config
        generation = self._begin()

        self._status(f"Fetching options data for {cfg.ticker}...")
        try:
            contracts = self.fetcher(cfg)
        except FetchError as e:
            log.error("Fetch failed for %s: %s", cfg.ticker, e)
            self._status(f"Error: {e}")
            return None

        if self.is_stale(generation):
            log.info("Discarding stale response for %s (generation %d)", cfg.ticker, generation)
            return None
        if not contracts:
            self._status(f"No options data available for {cfg.ticker}. Try another ticker.")
            return None

        self._status(f"Received {len(contracts)} contracts for {cfg.ticker}")
        snapshot = generate_synthetic_data(contracts, cfg, rng=self.rng, now=self.clock())
        self._status(f"Creating visualization with {len(snapshot)} data points...")

        result = surface_from_snapshot(snapshot, cfg)
        if result is None:
            self._status("No valid data to visualize.")
            return None

        if not self._commit(generation, result):
            log.info("Discarding stale surface for %s (generation %d)", cfg.ticker, generation)
            return None

        self._status(f"Volatility surface for {cfg.ticker} created successfully.")
        return result
