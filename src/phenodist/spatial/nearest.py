"""
nearest.py - Nearest-neighbor distances between phenotype point sets

Point sets are the selected rows of a cell table reduced to identifier and
position. Rows without an identifier or position are dropped when the point
set is built; they cannot take part in distance computations.

Distances are planar Euclidean distances in the units of the positions.
Unit conversion is left to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy.spatial import KDTree
from sklearn.neighbors import NearestNeighbors

from ..data.config import PhenodistConfig, ValidationError
from ..data.core import CellTable, as_cell_table
from ..selection.selectors import Selector, SelectorLike, as_selector, evaluate

# Relative tolerance for treating two candidate distances as a tie
_TIE_RTOL = 1e-12


@dataclass
class PhenotypePoints:
    """
    Cells of one phenotype, reduced to identifier and position.

    Attributes
    ----------
    name : str
        Phenotype name (literal or virtual).
    data : pd.DataFrame
        Id, x, y (and phenotype, when known) columns of the selected cells,
        in table order, with a fresh RangeIndex.
    selector : Selector
        Selector that produced the points.
    n_selected : int
        Rows matched by the selector, before dropping rows without position.
    config : PhenodistConfig
        Column names.
    """
    name: str
    data: pd.DataFrame
    selector: Selector
    n_selected: int
    config: PhenodistConfig = field(default_factory=PhenodistConfig)

    @property
    def coords(self) -> np.ndarray:
        """(n, 2) array of positions."""
        x_col, y_col = self.config.get_coordinate_columns()
        return self.data[[x_col, y_col]].to_numpy(dtype=float)

    @property
    def cell_ids(self) -> np.ndarray:
        return self.data[self.config.cell_id_col].to_numpy()

    @property
    def n_dropped(self) -> int:
        """Selected rows dropped for a missing id or position."""
        return self.n_selected - len(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"PhenotypePoints({self.name!r}, {len(self)} cells)"


def phenotype_points(table: Union[CellTable, pd.DataFrame],
                     spec: SelectorLike,
                     name: Optional[str] = None,
                     config: Optional[PhenodistConfig] = None) -> PhenotypePoints:
    """
    Select cells and reduce them to a point set.

    Parameters
    ----------
    table : CellTable or DataFrame
        Cell data.
    spec : selector
        Which cells to keep (see `phenodist.selection.as_selector`).
    name : str, optional
        Name for the point set. Defaults to the selector's description.
    config : PhenodistConfig, optional
        Column names, used when `table` is a DataFrame.

    Returns
    -------
    PhenotypePoints
    """
    table = as_cell_table(table, config)
    cfg = table.config
    selector = as_selector(spec)
    mask = evaluate(table, selector)

    columns = cfg.required_columns()
    selected = table.data.loc[mask, columns]
    data = selected.dropna(subset=[cfg.cell_id_col, cfg.x_col, cfg.y_col])

    return PhenotypePoints(
        name=name if name is not None else str(selector),
        data=data.reset_index(drop=True),
        selector=selector,
        n_selected=int(mask.sum()),
        config=cfg,
    )


PointsLike = Union[PhenotypePoints, CellTable, pd.DataFrame]


def _as_points(points: PointsLike, config: Optional[PhenodistConfig]) -> PhenotypePoints:
    """Accept PhenotypePoints, or use every row of a table as points."""
    if isinstance(points, PhenotypePoints):
        return points

    if isinstance(points, CellTable):
        return phenotype_points(points, None)

    if isinstance(points, pd.DataFrame):
        cfg = config or PhenodistConfig()
        columns = [cfg.cell_id_col, cfg.x_col, cfg.y_col]
        missing = [c for c in columns if c not in points.columns]
        if missing:
            raise ValidationError(f"Missing columns in point data: {missing}")
        data = points[columns].dropna()
        return PhenotypePoints(
            name='points',
            data=data.reset_index(drop=True),
            selector=as_selector(None),
            n_selected=len(points),
            config=cfg,
        )

    raise TypeError(
        f"Expected PhenotypePoints, CellTable or DataFrame, got {type(points).__name__}")


def _nearest_indices(from_coords: np.ndarray,
                     to_coords: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Index of, and distance to, the nearest to-point for each from-point.

    Ties go to the lowest to-index. Both inputs must be non-empty.
    """
    tree = KDTree(to_coords)
    dists, indices = tree.query(from_coords, k=1)
    indices = np.asarray(indices, dtype=np.int64)

    # Every to-point at the nearest distance is returned by the ball query;
    # keep the first of them in to-order.
    candidates = tree.query_ball_point(from_coords, r=dists * (1 + 1e-9))
    for i, cand in enumerate(candidates):
        if len(cand) < 2:
            continue
        cand = np.sort(np.asarray(cand, dtype=np.int64))
        d = np.sqrt(((to_coords[cand] - from_coords[i]) ** 2).sum(axis=1))
        ties = cand[np.isclose(d, d.min(), rtol=_TIE_RTOL, atol=0.0)]
        indices[i] = ties[0]

    delta = to_coords[indices] - from_coords
    dists = np.sqrt((delta ** 2).sum(axis=1))
    return indices, dists


def _distance_table(from_pts: PhenotypePoints,
                    to_pts: PhenotypePoints,
                    indices: np.ndarray,
                    dists: np.ndarray) -> pd.DataFrame:
    """Assemble a distance table; index -1 marks a from-point with no match."""
    cfg = from_pts.config
    from_cols = [cfg.cell_id_col, cfg.x_col, cfg.y_col]

    from_part = from_pts.data[from_cols].reset_index(drop=True)

    to_cols = [to_pts.config.cell_id_col, to_pts.config.x_col, to_pts.config.y_col]
    to_part = to_pts.data[to_cols].reset_index(drop=True).reindex(indices)
    to_part.columns = [cfg.to_column(c) for c in from_cols]
    to_part = to_part.reset_index(drop=True)

    distance = pd.Series(dists, name='Distance', dtype=float)

    result = pd.concat([from_part, distance, to_part], axis=1)
    return result[cfg.distance_columns()]


def nearest_neighbors(from_points: PointsLike,
                      to_points: PointsLike,
                      config: Optional[PhenodistConfig] = None) -> pd.DataFrame:
    """
    Nearest to-cell for every from-cell.

    Parameters
    ----------
    from_points : PhenotypePoints, CellTable or DataFrame
        Cells to measure from.
    to_points : PhenotypePoints, CellTable or DataFrame
        Candidate neighbors.
    config : PhenodistConfig, optional
        Column names, used for DataFrame inputs.

    Returns
    -------
    pd.DataFrame
        One row per from-cell, in from order, with columns
        'Cell ID', 'Cell X Position', 'Cell Y Position', 'Distance',
        'To Cell ID', 'To X Position', 'To Y Position'.
        Distance and the 'To' columns are NaN when there are no to-cells.
        Equidistant neighbors resolve to the first in to order.
    """
    from_pts = _as_points(from_points, config)
    to_pts = _as_points(to_points, config)

    n_from = len(from_pts)
    if n_from == 0 or len(to_pts) == 0:
        indices = np.full(n_from, -1, dtype=np.int64)
        dists = np.full(n_from, np.nan)
    else:
        indices, dists = _nearest_indices(from_pts.coords, to_pts.coords)

    return _distance_table(from_pts, to_pts, indices, dists)


def mutual_nearest_neighbors(from_points: PointsLike,
                             to_points: PointsLike,
                             config: Optional[PhenodistConfig] = None) -> pd.DataFrame:
    """
    Pairs of cells that are each other's nearest neighbor.

    A row of `nearest_neighbors(from_points, to_points)` is kept when its
    to-cell's nearest from-cell is the row's from-cell.

    Returns
    -------
    pd.DataFrame
        Same columns as `nearest_neighbors`; rows in from order. Never
        contains missing matches.
    """
    from_pts = _as_points(from_points, config)
    to_pts = _as_points(to_points, config)

    n_from = len(from_pts)
    if n_from == 0 or len(to_pts) == 0:
        return nearest_neighbors(from_pts, to_pts).iloc[0:0].reset_index(drop=True)

    fwd_idx, fwd_dist = _nearest_indices(from_pts.coords, to_pts.coords)
    back_idx, _ = _nearest_indices(to_pts.coords, from_pts.coords)

    keep = back_idx[fwd_idx] == np.arange(n_from)
    full = _distance_table(from_pts, to_pts, fwd_idx, fwd_dist)
    return full[keep].reset_index(drop=True)


def count_within(from_points: PointsLike,
                 to_points: PointsLike,
                 radius: float,
                 exclude_self: bool = False,
                 config: Optional[PhenodistConfig] = None) -> np.ndarray:
    """
    Number of to-cells within `radius` of each from-cell.

    Parameters
    ----------
    from_points, to_points : PhenotypePoints, CellTable or DataFrame
        Point sets.
    radius : float
        Distance threshold, inclusive, in position units.
    exclude_self : bool
        Do not count a to-cell with the same cell id as the from-cell.

    Returns
    -------
    np.ndarray
        Integer count per from-cell, in from order.
    """
    if radius is None or not np.isfinite(radius) or radius < 0:
        raise ValueError(f"radius must be a non-negative number, got {radius}")

    from_pts = _as_points(from_points, config)
    to_pts = _as_points(to_points, config)

    if len(from_pts) == 0 or len(to_pts) == 0:
        return np.zeros(len(from_pts), dtype=np.int64)

    nn = NearestNeighbors(radius=radius, metric='euclidean')
    nn.fit(to_pts.coords)
    neighbors = nn.radius_neighbors(from_pts.coords, radius=radius,
                                    return_distance=False)
    if not exclude_self:
        return np.array([len(n) for n in neighbors], dtype=np.int64)

    to_ids = to_pts.cell_ids
    return np.array([int(np.sum(to_ids[idx] != from_id))
                     for idx, from_id in zip(neighbors, from_pts.cell_ids)],
                    dtype=np.int64)


nearest = nearest_neighbors
mutual = mutual_nearest_neighbors
