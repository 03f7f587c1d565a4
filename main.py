#!/usr/bin/env python3
"""
main.py: build an IV / gamma exposure surface for one ticker.

Usage:
    python main.py                                   # offline sample listing (default)
    python main.py --source polygon --ticker TSLA    # needs POLYGON_API_KEY
    python main.py --normalize --grid 60 30 --smooth 1.0
"""

import argparse
import sys
import time

import numpy as np

from gammasurface import config
from gammasurface.config import SurfaceConfig
from gammasurface.data_feed import get_contracts
from gammasurface.pipeline import SurfacePipeline
from gammasurface.surface_builder import compute_surface_statistics, records_to_frame
from gammasurface.visualization import plot_grids_matplotlib, plot_surface_plotly


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Build implied volatility / gamma exposure surfaces.")
    p.add_argument("--source", choices=["sample", "polygon", "yfinance"], default="sample")
    p.add_argument("--ticker", type=str, default=None)
    p.add_argument("--spot", type=float, default=100.0, help="ladder centre for --source sample")
    p.add_argument("--expiry-days", type=int, default=config.EXPIRY_RANGE_DAYS)
    p.add_argument("--rate", type=float, default=config.RISK_FREE_RATE)
    p.add_argument("--multiplier", type=int, default=config.CONTRACT_MULTIPLIER)
    p.add_argument("--base-iv", type=float, default=config.BASE_IV)
    p.add_argument("--grid", type=int, nargs=2, metavar=("STRIKES", "DAYS"),
                   default=[config.STRIKE_RESOLUTION, config.DAYS_RESOLUTION])
    p.add_argument("--normalize", action="store_true", help="show strikes as %% of spot")
    p.add_argument("--seed", type=int, default=config.SEED)
    p.add_argument("--smooth", type=float, default=None)
    p.add_argument("--timeout", type=float, default=config.FETCH_TIMEOUT)
    p.add_argument("--api-key", type=str, default=None)
    p.add_argument("--color-scheme", choices=config.COLOR_SCHEMES, default="rainbow")
    p.add_argument("--gamma-mode", choices=config.GAMMA_DISPLAY_MODES, default="plane")
    p.add_argument("--no-html", action="store_true")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    overrides = dict(
        ticker=args.ticker or config.TICKER,
        expiry_range_days=args.expiry_days,
        risk_free_rate=args.rate,
        contract_multiplier=args.multiplier,
        base_iv=args.base_iv,
        strike_resolution=args.grid[0],
        days_resolution=args.grid[1],
        normalize_strikes=args.normalize,
        seed=args.seed,
        fetch_timeout=args.timeout,
        smooth_sigma=args.smooth,
        color_scheme=args.color_scheme,
        gamma_display_mode=args.gamma_mode,
    )
    if args.api_key:
        overrides["api_key"] = args.api_key
    try:
        surface_config = SurfaceConfig(**overrides)
    except ValueError as e:
        print(f"\n  ERROR: {e}")
        sys.exit(2)

    print(f"\n{'='*60}")
    print(f"  IV / Gamma Exposure Surface Builder")
    print(f"  Source: {args.source}  |  Ticker: {surface_config.ticker}")
    print(f"{'='*60}\n")

    t0 = time.time()

    def fetcher(cfg):
        return get_contracts(args.source, cfg, spot=args.spot)

    def on_status(message):
        print(f"       {message}")

    # step 1: fetch and build
    print("[1/3] Fetching contracts and building surface...")
    pipeline = SurfacePipeline(surface_config, fetcher=fetcher, on_status=on_status)
    try:
        result = pipeline.refresh()
    except ImportError as e:
        print(f"\n  ERROR: {e}")
        sys.exit(1)
    if result is None:
        sys.exit(1)

    stats = compute_surface_statistics(result)
    print(f"       Spot estimate: ${stats['spot']:.2f}")
    print(f"       Data points: {stats['n_points']}")
    print(f"       Expiries: {stats['n_expiries']}")
    print(f"       Strike range: ${stats['strike_range'][0]:.0f} - ${stats['strike_range'][1]:.0f}")
    print(f"       IV range: {stats['iv_range'][0]:.1%} - {stats['iv_range'][1]:.1%}")
    print(f"       Gamma exposure range: {stats['gamma_range'][0]:.2f} - {stats['gamma_range'][1]:.2f}")
    if not np.isnan(stats.get("atm_iv_mean", np.nan)):
        print(f"       ATM IV (mean): {stats['atm_iv_mean']:.1%}")
    print(f"       Grid: {stats['grid_shape'][0]} x {stats['grid_shape'][1]}")

    # step 2: static charts (matplotlib)
    print("\n[2/3] Generating static charts...")
    png = plot_grids_matplotlib(result)
    print(f"       -> {png}")

    # step 3: interactive HTML (plotly)
    if not args.no_html:
        print("\n[3/3] Generating interactive HTML...")
        html = plot_surface_plotly(result, surface_config)
        print(f"       -> {html}")
    else:
        print("\n[3/3] Skipping HTML (--no-html flag)")

    # save options chain
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    csv_path = config.DATA_DIR / f"{surface_config.ticker.lower()}_options_chain.csv"
    records_to_frame(result.records, result.spot, result.normalized).to_csv(csv_path, index=False)
    print(f"\n       Options chain saved to {csv_path}")

    elapsed = time.time() - t0
    print(f"\n  Done in {elapsed:.1f}s. Charts are in output/\n")


if __name__ == "__main__":
    main()
