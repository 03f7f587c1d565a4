"""
Hole filling for the binned grid.

Two passes guarantee that no undefined value reaches the renderers:

    1. Local: every empty cell takes the inverse-Manhattan-distance
       weighted mean, 1 / (|di| + |dj|), of the populated cells in its
       5x5 neighbourhood. Neighbours are read from the binned grid as it
       was before the pass, so cells filled here never feed other fills.
    2. Global: cells still missing iv and/or gamma get the mean of all
       defined values of that field (0.3 / 0.01 if there are none).

Optionally the complete grid can then be Gaussian-smoothed.
"""

from typing import Optional

import numpy as np
from scipy.ndimage import gaussian_filter

from . import config as cfg
from .grid import Grid


def _neighbor_offsets(radius: int):
    for di in range(-radius, radius + 1):
        for dj in range(-radius, radius + 1):
            if di == 0 and dj == 0:
                continue
            yield di, dj, 1.0 / (abs(di) + abs(dj))


def fill_from_neighbors(grid: Grid, radius: int = cfg.NEIGHBOR_RADIUS) -> Grid:
    """
    Pass 1: weighted-neighbour fill of empty cells.

    Each field is averaged over the neighbours that define it. A cell
    with no populated neighbour at all stays empty.
    """
    src_iv = grid.iv
    src_gamma = grid.gamma
    rows, cols = grid.shape
    out = grid.copy()
    offsets = list(_neighbor_offsets(radius))

    for i in range(rows):
        for j in range(cols):
            if not grid.is_empty(i, j):
                continue

            iv_sum = iv_w = gamma_sum = gamma_w = 0.0
            found = False
            for di, dj, w in offsets:
                ni, nj = i + di, j + dj
                if not (0 <= ni < rows and 0 <= nj < cols):
                    continue
                iv, gamma = src_iv[ni, nj], src_gamma[ni, nj]
                if not np.isnan(iv):
                    iv_sum += iv * w
                    iv_w += w
                    found = True
                if not np.isnan(gamma):
                    gamma_sum += gamma * w
                    gamma_w += w
                    found = True

            if not found:
                continue
            if iv_w > 0:
                out.iv[i, j] = iv_sum / iv_w
            if gamma_w > 0:
                out.gamma[i, j] = gamma_sum / gamma_w

    return out


def fill_global(grid: Grid) -> Grid:
    """Pass 2: fill every remaining gap with the field's global mean."""
    out = grid.copy()

    iv_defined = ~np.isnan(out.iv)
    gamma_defined = ~np.isnan(out.gamma)
    avg_iv = out.iv[iv_defined].mean() if iv_defined.any() else cfg.DEFAULT_GRID_IV
    avg_gamma = out.gamma[gamma_defined].mean() if gamma_defined.any() else cfg.DEFAULT_GRID_GAMMA

    out.iv[~iv_defined] = avg_iv
    out.gamma[~gamma_defined] = avg_gamma
    return out


def interpolate_grid(grid: Grid, radius: int = cfg.NEIGHBOR_RADIUS) -> Grid:
    """
    Return a fully populated copy of a sparse grid.

    The input grid is left untouched. Post-condition: every cell has
    both iv and gamma defined.
    """
    return fill_global(fill_from_neighbors(grid, radius))


def smooth_grid(grid: Grid, sigma: Optional[float]) -> Grid:
    """
    Gaussian-smooth a complete grid (iv and gamma independently).

    Useful when the binned data is sparse and the local fill leaves
    visible steps. sigma is in cells; None or <= 0 returns a copy.
    """
    out = grid.copy()
    if sigma is None or sigma <= 0:
        return out
    out.iv = gaussian_filter(out.iv, sigma=sigma, mode="nearest")
    out.gamma = gaussian_filter(out.gamma, sigma=sigma, mode="nearest")
    return out
