"""
nn_plots.py - Nearest-neighbor plots for phenotype pairs

Draws the cells of a phenotype pair with a line from each cell to its
nearest neighbor. Cells that take part in a drawn relation are opaque,
the others are faded.
"""

import os
from typing import Dict, List, Mapping, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.collections import LineCollection
from matplotlib.colors import to_rgba

from ..data.config import PhenodistConfig
from ..spatial.nearest import PhenotypePoints
from ..spatial.pairs import PairResult, pair_phenotypes, validate_colors

# Alpha for (unpaired, paired) cells
_ALPHAS = (0.3, 1.0)


def _add_scale_bar(ax, xlim: float, ylim: float, length: float,
                   pixels_per_micron: Optional[float], units: str) -> None:
    """Scale bar of `length` distance units in the lower right corner (y axis is inverted)."""
    native = length * pixels_per_micron if pixels_per_micron is not None else length
    x_end = xlim - 0.05 * xlim
    x_start = x_end - native
    y = ylim - 0.05 * ylim
    ax.plot([x_start, x_end], [y, y], color='black', linewidth=2)
    suffix = {'microns': 'µm', 'pixels': 'px'}.get(units, 'units')
    label = f"{length:g} {suffix}"
    ax.text((x_start + x_end) / 2, y - 0.01 * ylim, label,
            ha='center', va='bottom', fontsize=9, color='black')


def _default_limit(values: np.ndarray) -> float:
    """Just past the largest position; 1.0 when there is no positive extent."""
    top = float(values.max()) * 1.05 if len(values) else 0.0
    return top if top > 0 else 1.0


def _draw_points(ax, points: PhenotypePoints, paired_ids, color: str,
                 dot_size: float) -> None:
    cfg = points.config
    data = points.data
    if len(data) == 0:
        return
    paired = data[cfg.cell_id_col].isin(paired_ids).to_numpy()
    rgba = np.tile(np.array(to_rgba(color)), (len(data), 1))
    rgba[:, 3] = np.where(paired, _ALPHAS[1], _ALPHAS[0])
    ax.scatter(data[cfg.x_col], data[cfg.y_col], s=dot_size, c=rgba,
               edgecolors='none', label=points.name)


def _nn_plot_impl(distances: pd.DataFrame,
                  result: PairResult,
                  colors: Mapping[str, str],
                  title: str,
                  background: Optional[np.ndarray],
                  xlim: Optional[float],
                  ylim: Optional[float],
                  line_color: str,
                  dot_size: float,
                  scale_bar: Optional[float],
                  figsize: Tuple[float, float],
                  config: PhenodistConfig) -> plt.Figure:
    from_pts, to_pts = result.from_points, result.to_points
    cfg = config
    to_id, to_x, to_y = (cfg.to_column(c) for c in
                         (cfg.cell_id_col, cfg.x_col, cfg.y_col))

    all_coords = np.vstack([from_pts.coords, to_pts.coords]) \
        if len(from_pts) + len(to_pts) else np.zeros((0, 2))
    if xlim is None:
        xlim = _default_limit(all_coords[:, 0])
    if ylim is None:
        ylim = _default_limit(all_coords[:, 1])

    fig, ax = plt.subplots(figsize=figsize)

    if background is not None:
        ax.imshow(background, extent=(0, xlim, ylim, 0))

    matched = distances.dropna(subset=['Distance'])
    if len(matched) > 0:
        segments = np.stack([
            matched[[cfg.x_col, cfg.y_col]].to_numpy(dtype=float),
            matched[[to_x, to_y]].to_numpy(dtype=float),
        ], axis=1)
        ax.add_collection(LineCollection(segments, colors=line_color, linewidths=0.8))

    _draw_points(ax, from_pts, matched[cfg.cell_id_col],
                 colors[result.pair.from_phenotype], dot_size)
    _draw_points(ax, to_pts, matched[to_id],
                 colors[result.pair.to_phenotype], dot_size)

    # Image coordinates: origin top left
    ax.set_xlim(0, xlim)
    ax.set_ylim(ylim, 0)
    ax.set_aspect('equal')
    ax.set_xlabel(cfg.x_col)
    ax.set_ylabel(cfg.y_col)
    ax.set_title(title, fontsize=12)

    if scale_bar:
        _add_scale_bar(ax, xlim, ylim, scale_bar, result.pixels_per_micron, result.units)

    handles, _ = ax.get_legend_handles_labels()
    if handles:
        ax.legend(loc='center left', bbox_to_anchor=(1.01, 0.5), fontsize=10)
    plt.tight_layout()
    return fig


def _finish(fig: plt.Figure, save_path: Optional[str], dpi: int, show_plot: bool) -> plt.Figure:
    if save_path:
        os.makedirs(os.path.dirname(os.path.abspath(save_path)), exist_ok=True)
        fig.savefig(save_path, dpi=dpi, bbox_inches='tight')
        print(f"Saved figure to {save_path}")
    if show_plot:
        plt.show()
    else:
        plt.close(fig)
    return fig


def nn_plot(result: PairResult,
            colors: Mapping[str, str],
            background: Optional[np.ndarray] = None,
            xlim: Optional[float] = None,
            ylim: Optional[float] = None,
            line_color: str = 'gray',
            dot_size: float = 12,
            scale_bar: Optional[float] = 200,
            figsize: tuple = (8, 8),
            fig_title: Optional[str] = None,
            save_path: Optional[str] = None,
            dpi: int = 300,
            show_plot: bool = False,
            config: Optional[PhenodistConfig] = None) -> plt.Figure:
    """
    Plot each from-cell joined to its nearest to-cell.

    Parameters
    ----------
    result : PairResult
        One entry of `spatial_distribution`.
    colors : dict
        Phenotype -> color. Must cover both phenotypes of the pair.
    background : np.ndarray, optional
        Image of the field (composite or tissue segmentation), drawn
        under the cells with its top-left corner at the origin.
    xlim, ylim : float, optional
        Field size in position units. Default: just past the largest
        position.
    line_color : str, optional
        Color of the nearest-neighbor lines, by default 'gray'
    dot_size : float, optional
        Size of cell dots, by default 12
    scale_bar : float, optional
        Length of the scale bar in distance units, None for no bar.
    figsize : tuple, optional
        Figure size, by default (8, 8)
    fig_title : str, optional
        Title, by default 'Nearest neighbor from <from> to <to>'
    save_path : str, optional
        If given, save the figure here.
    dpi : int, optional
        Resolution for saved figure, by default 300
    show_plot : bool, optional
        Whether to display the figure, by default False
    config : PhenodistConfig, optional
        Column names; defaults to those of the result's point sets.

    Returns
    -------
    plt.Figure
    """
    validate_colors(result.pair, colors)
    config = config or result.from_points.config
    title = fig_title or (f"Nearest neighbor from {result.pair.from_phenotype} "
                          f"to {result.pair.to_phenotype}")
    fig = _nn_plot_impl(result.nearest, result, colors, title, background,
                        xlim, ylim, line_color, dot_size, scale_bar, figsize, config)
    return _finish(fig, save_path, dpi, show_plot)


def nn_plot_mutual(result: PairResult,
                   colors: Mapping[str, str],
                   background: Optional[np.ndarray] = None,
                   xlim: Optional[float] = None,
                   ylim: Optional[float] = None,
                   line_color: str = 'gray',
                   dot_size: float = 12,
                   scale_bar: Optional[float] = 200,
                   figsize: tuple = (8, 8),
                   fig_title: Optional[str] = None,
                   save_path: Optional[str] = None,
                   dpi: int = 300,
                   show_plot: bool = False,
                   config: Optional[PhenodistConfig] = None) -> plt.Figure:
    """
    Plot mutual nearest neighbors: pairs of cells that are each other's
    nearest neighbor.

    Same parameters as `nn_plot`. The result must have been computed with
    mutual=True.
    """
    if result.mutual is None:
        raise ValueError("Result has no mutual nearest neighbors; "
                         "run spatial_distribution with mutual=True")
    validate_colors(result.pair, colors)
    config = config or result.from_points.config
    title = fig_title or (f"Mutual nearest neighbors for {result.pair.from_phenotype} "
                          f"and {result.pair.to_phenotype}")
    fig = _nn_plot_impl(result.mutual, result, colors, title, background,
                        xlim, ylim, line_color, dot_size, scale_bar, figsize, config)
    return _finish(fig, save_path, dpi, show_plot)


def spatial_distribution_plots(results: List[PairResult],
                               colors: Mapping[str, str],
                               save_dir: Optional[str] = None,
                               **kwargs) -> Dict[str, Dict[str, plt.Figure]]:
    """
    Nearest-neighbor (and mutual) plots for every pair.

    Parameters
    ----------
    results : list of PairResult
        Output of `spatial_distribution`.
    colors : dict
        Phenotype -> color for every phenotype in `results`.
    save_dir : str, optional
        If given, figures are saved here as
        'nn_<from>_to_<to>.png' and 'mutual_<from>_<to>.png'.
    **kwargs
        Passed to `nn_plot` / `nn_plot_mutual`.

    Returns
    -------
    dict
        str(pair) -> {'nearest': Figure, 'mutual': Figure}
    """
    validate_colors(pair_phenotypes(r.pair for r in results), colors)

    figures = {}
    for r in results:
        safe = [p.replace(' ', '_').replace('/', '_') for p in r.pair]
        nn_path = mutual_path = None
        if save_dir is not None:
            nn_path = os.path.join(save_dir, f"nn_{safe[0]}_to_{safe[1]}.png")
            mutual_path = os.path.join(save_dir, f"mutual_{safe[0]}_{safe[1]}.png")

        entry = {'nearest': nn_plot(r, colors, save_path=nn_path, **kwargs)}
        if r.mutual is not None:
            entry['mutual'] = nn_plot_mutual(r, colors, save_path=mutual_path, **kwargs)
        figures[str(r.pair)] = entry

    print(f"  ✓ Created plots for {len(results)} phenotype pairs")
    return figures
