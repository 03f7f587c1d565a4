"""
Coordinate mapping for renderers.

Turns a SurfaceResult into plain (N, 3) position and colour arrays:

    x = strike (display space), y = height, z = days to expiry

Surface heights are iv scaled so the largest record iv sits at
config.desired_vol_height. Colours are RGB floats in [0, 1]. Nothing in
here knows about a particular plotting library; visualization.py and any
other front end consume these arrays as-is.
"""

import colorsys
from typing import Tuple

import numpy as np

from . import config as cfg
from .config import SurfaceConfig
from .surface_builder import SurfaceResult


def _normalize(value: float, lo: float, hi: float) -> float:
    return (value - lo) / ((hi - lo) or 1)


def _hsl(h: float, s: float, l: float) -> Tuple[float, float, float]:
    return colorsys.hls_to_rgb(h % 1.0, l, s)


def color_for_value(value: float, scheme: str = "rainbow") -> Tuple[float, float, float]:
    """
    Map a normalized value in [0, 1] to RGB.

    rainbow    : blue (low) to red (high) around the hue wheel
    heatmap    : blue -> green -> red
    monochrome : black -> white
    Unknown schemes fall back to rainbow.
    """
    if scheme == "heatmap":
        if value < 0.5:
            return (0.0, value * 2, 1 - value * 2)
        return ((value - 0.5) * 2, 1 - (value - 0.5) * 2, 0.0)
    if scheme == "monochrome":
        return (value, value, value)
    return _hsl(0.7 - value * 0.7, 1.0, 0.5)


def gamma_color(value: float) -> Tuple[float, float, float]:
    """Green (low) to red (high) for gamma exposure."""
    return _hsl(0.3 - value * 0.3, 1.0, 0.5)


def vol_scale(result: SurfaceResult, config: SurfaceConfig) -> float:
    """Height per unit of iv, so the max record iv reaches desired_vol_height."""
    max_iv = result.iv_range[1]
    return config.desired_vol_height / max_iv if max_iv else 1.0


def surface_vertices(result: SurfaceResult, config: SurfaceConfig) -> Tuple[np.ndarray, np.ndarray]:
    """
    One vertex per grid cell, days-major (all strikes of day 0 first).

    Returns
    -------
    positions : (strike_res * days_res, 3)
    colors    : (strike_res * days_res, 3)
    """
    strikes = result.strike_axis.values()
    days = result.days_axis.values()
    scale = vol_scale(result, config)
    lo, hi = result.iv_range

    positions = []
    colors = []
    for j, d in enumerate(days):
        for i, k in enumerate(strikes):
            iv = result.grid.iv[i, j]
            positions.append((k, iv * scale, d))
            colors.append(color_for_value(_normalize(iv, lo, hi), config.color_scheme))
    return np.asarray(positions, dtype=float), np.asarray(colors, dtype=float)


def point_cloud(result: SurfaceResult, config: SurfaceConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Raw records as points at (display strike, scaled iv, days)."""
    scale = vol_scale(result, config)
    lo, hi = result.iv_range
    positions = [
        (result.display_strike(r.strike), r.iv * scale, r.days_to_expiry)
        for r in result.records
    ]
    colors = [color_for_value(_normalize(r.iv, lo, hi), config.color_scheme)
              for r in result.records]
    return np.asarray(positions, dtype=float).reshape(-1, 3), np.asarray(colors, dtype=float).reshape(-1, 3)


def gamma_overlay(result: SurfaceResult, config: SurfaceConfig) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gamma exposure geometry for the configured display mode.

    plane  : one vertex per grid cell at a fixed height below the surface
    points : one point per record below the surface
    lines  : two vertices per record (base, top), height ∝ gamma / max gamma
    """
    lo, hi = result.gamma_range
    mode = config.gamma_display_mode

    if mode == "plane":
        strikes = result.strike_axis.values()
        days = result.days_axis.values()
        positions, colors = [], []
        for j, d in enumerate(days):
            for i, k in enumerate(strikes):
                positions.append((k, cfg.GAMMA_PLANE_OFFSET, d))
                colors.append(gamma_color(_normalize(result.grid.gamma[i, j], lo, hi)))
    elif mode == "points":
        positions = [(result.display_strike(r.strike), cfg.GAMMA_POINTS_OFFSET, r.days_to_expiry)
                     for r in result.records]
        colors = [gamma_color(_normalize(r.gamma_exposure, lo, hi)) for r in result.records]
    elif mode == "lines":
        positions, colors = [], []
        for r in result.records:
            x = result.display_strike(r.strike)
            rel = r.gamma_exposure / hi if hi else 0.0
            positions.append((x, 0.0, r.days_to_expiry))
            positions.append((x, rel * cfg.GAMMA_LINE_HEIGHT, r.days_to_expiry))
            colors.append((0.0, 1.0, 0.0))
            colors.append(gamma_color(rel))
    else:
        raise ValueError(f"Unknown gamma_display_mode: {mode}")

    return np.asarray(positions, dtype=float).reshape(-1, 3), np.asarray(colors, dtype=float).reshape(-1, 3)


def axis_tick_step(minimum: float, maximum: float) -> float:
    """Tick spacing that keeps an axis to roughly ten labels."""
    span = maximum - minimum
    if span <= 5:
        return 1
    if span <= 20:
        return 2
    if span <= 50:
        return 5
    if span <= 100:
        return 10
    if span <= 500:
        return 50
    return int(np.ceil(span / 10))
