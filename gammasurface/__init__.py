"""
gamma-surface
=============
Implied volatility and gamma exposure surfaces from option contract listings.

Modules:
    black_scholes      - Closed-form pricing, gamma, simplified greeks
    data_feed          - Contract listing retrieval (Polygon, yfinance, sample)
    market_generator   - Synthetic smile, prices and greeks per contract
    grid               - Axis layout and running-mean binning
    interpolation      - Neighbour and global hole filling, smoothing
    surface_builder    - End-to-end surface construction and statistics
    mapper             - Render-ready coordinates and colours
    pipeline           - Refresh controller with request fencing
    visualization      - 3D HTML surface (plotly) and PNG heatmaps (matplotlib)
    config             - Defaults and the SurfaceConfig value
"""

__version__ = "0.3.0"
__author__ = "Leo"
