"""
Visualization module: 3D IV surface with gamma overlay, and 2D heatmaps.

Two backends:
    - plotly: interactive HTML with rotation, zoom, hover tooltips
    - matplotlib: static PNG heatmaps of the dense iv and gamma grids

Both draw from the arrays produced by mapper.py / the SurfaceResult, so
the geometry (heights, colours, gamma plane offset) is identical to what
any other front end would show.
"""

from pathlib import Path
from typing import Optional

import numpy as np

import matplotlib
matplotlib.use("Agg")  # non-interactive backend for server/CI environments
import matplotlib.pyplot as plt

import plotly.graph_objects as go

from . import config as cfg
from .config import SurfaceConfig
from .mapper import gamma_overlay, point_cloud, vol_scale
from .surface_builder import SurfaceResult


def _rgb_strings(colors: np.ndarray):
    return [f"rgb({int(r * 255)},{int(g * 255)},{int(b * 255)})" for r, g, b in colors]


def _output_path(output_path: Optional[str], default_name: str) -> str:
    if output_path is None:
        cfg.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        return str(cfg.OUTPUT_DIR / default_name)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    return str(output_path)


def _strike_label(result: SurfaceResult) -> str:
    return "Strike (% of spot)" if result.normalized else "Strike (K)"


# ════════════════════════════════════════════════════════════════════════
#  PLOTLY: 3D SURFACE (interactive HTML)
# ════════════════════════════════════════════════════════════════════════

def build_surface_figure(result: SurfaceResult, config: SurfaceConfig) -> go.Figure:
    """
    Assemble the interactive figure: iv surface, raw points, gamma overlay.

    x is strike, y is days to expiry, z is scaled iv height.
    """
    scale = vol_scale(result, config)
    strikes = result.strike_axis.values()
    days = result.days_axis.values()
    # plotly wants z[row=y, col=x]
    z = (result.grid.iv * scale).T
    colorscale = {"rainbow": "Jet", "heatmap": "RdYlBu_r", "monochrome": "Greys_r"}[config.color_scheme]

    traces = [go.Surface(
        x=strikes, y=days, z=z,
        surfacecolor=result.grid.iv.T,
        colorscale=colorscale,
        cmin=result.iv_range[0], cmax=result.iv_range[1],
        colorbar=dict(
            title=dict(text="IV (σ)", font=dict(size=13, color="white")),
            thickness=18, len=0.55, tickformat=".0%",
            tickfont=dict(color="white", size=11),
        ),
        opacity=0.9,
        name="IV surface",
        hovertemplate="Strike: %{x:.1f}<br>Days: %{y:.0f}<br>IV: %{surfacecolor:.1%}<extra></extra>",
    )]

    pts, pt_colors = point_cloud(result, config)
    if len(pts):
        traces.append(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 2], z=pts[:, 1],
            mode="markers",
            marker=dict(size=2.5, color=_rgb_strings(pt_colors)),
            name="Contracts",
            hoverinfo="skip",
        ))

    if config.show_gamma:
        g_pos, g_colors = gamma_overlay(result, config)
        if config.gamma_display_mode == "plane":
            traces.append(go.Surface(
                x=strikes, y=days,
                z=np.full((len(days), len(strikes)), cfg.GAMMA_PLANE_OFFSET),
                surfacecolor=result.grid.gamma.T,
                colorscale="RdYlGn_r",
                showscale=False,
                opacity=0.6,
                name="Gamma exposure",
                hovertemplate="Strike: %{x:.1f}<br>Days: %{y:.0f}<br>GEX: %{surfacecolor:.2f}<extra></extra>",
            ))
        elif config.gamma_display_mode == "points":
            traces.append(go.Scatter3d(
                x=g_pos[:, 0], y=g_pos[:, 2], z=g_pos[:, 1],
                mode="markers",
                marker=dict(size=4, color=_rgb_strings(g_colors)),
                name="Gamma exposure",
            ))
        else:
            # line segments: (base, top) pairs separated by None
            xs, ys, zs = [], [], []
            for base, top in zip(g_pos[0::2], g_pos[1::2]):
                xs += [base[0], top[0], None]
                ys += [base[2], top[2], None]
                zs += [base[1], top[1], None]
            traces.append(go.Scatter3d(
                x=xs, y=ys, z=zs, mode="lines",
                line=dict(color="rgb(80,220,120)", width=2),
                name="Gamma exposure",
            ))

    axis_style = dict(
        tickfont=dict(size=10, color="#ccc"),
        gridcolor=f"rgba(200,200,200,{cfg.GRID_COLOR_ALPHA})",
        backgroundcolor=cfg.DARK_BG,
    )
    fig = go.Figure(data=traces)
    fig.update_layout(
        title=dict(
            text=f"<b>{result.ticker} IV Surface</b>  (spot ≈ {result.spot:.2f})",
            font=dict(size=22, color="white"), x=0.5,
        ),
        scene=dict(
            xaxis=dict(title=dict(text=_strike_label(result), font=dict(size=14, color="#ddd")), **axis_style),
            yaxis=dict(title=dict(text="Days to Expiry", font=dict(size=14, color="#ddd")), **axis_style),
            zaxis=dict(title=dict(text="Scaled IV", font=dict(size=14, color="#ddd")), **axis_style),
            camera=cfg.PLOTLY_CAMERA,
            bgcolor=cfg.DARK_BG,
        ),
        paper_bgcolor=cfg.DARK_BG,
        font=dict(color="white"),
        width=1100, height=750,
        margin=dict(l=10, r=10, t=60, b=10),
    )
    return fig


def plot_surface_plotly(
    result: SurfaceResult,
    config: SurfaceConfig,
    output_path: str = None,
) -> str:
    """Write the interactive surface to HTML and return the path."""
    path = _output_path(output_path, "iv_gamma_surface_3d.html")
    build_surface_figure(result, config).write_html(path)
    return path


# ════════════════════════════════════════════════════════════════════════
#  MATPLOTLIB: GRID HEATMAPS (static PNG)
# ════════════════════════════════════════════════════════════════════════

def plot_grids_matplotlib(
    result: SurfaceResult,
    output_path: str = None,
) -> str:
    """
    Side-by-side heatmaps of the dense iv and gamma-exposure grids.

    Returns the PNG path.
    """
    path = _output_path(output_path, "iv_gamma_grids.png")
    extent = [
        result.days_axis.minimum, result.days_axis.maximum,
        result.strike_axis.minimum, result.strike_axis.maximum,
    ]

    fig, axes = plt.subplots(1, 2, figsize=(cfg.FIG_WIDTH_2D, cfg.FIG_HEIGHT_2D))
    fig.patch.set_facecolor(cfg.DARK_BG)

    panels = [
        (result.grid.iv * 100, "Implied Volatility (%)", "viridis"),
        (result.grid.gamma, "Gamma Exposure", "RdYlGn_r"),
    ]
    for ax, (data, title, cmap) in zip(axes, panels):
        im = ax.imshow(data, origin="lower", aspect="auto", extent=extent, cmap=cmap)
        ax.set_facecolor(cfg.DARK_BG)
        ax.set_title(f"{result.ticker}: {title}", fontsize=14, color="white")
        ax.set_xlabel("Days to Expiry", fontsize=12, color="white")
        ax.set_ylabel(_strike_label(result), fontsize=12, color="white")
        ax.tick_params(colors="white", labelsize=9)
        for spine in ax.spines.values():
            spine.set_color("#333355")
        cbar = fig.colorbar(im, ax=ax, shrink=0.85)
        cbar.ax.tick_params(colors="white", labelsize=9)

    plt.tight_layout()
    plt.savefig(path, dpi=cfg.DPI, bbox_inches="tight",
                facecolor=cfg.DARK_BG, edgecolor="none")
    plt.close(fig)
    return path
