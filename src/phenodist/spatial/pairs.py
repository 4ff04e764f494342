"""
pairs.py - Nearest-neighbor analysis for pairs of phenotypes

For each (from, to) phenotype pair this resolves phenotype names through the
phenotype rules, selects the cells of both phenotypes, and computes the
nearest-neighbor (and mutual nearest-neighbor) relations between them.

Everything that can be checked up front (pair shape, colors, rules, column
references) is checked before any distance is computed. Pairs are
independent of each other and may be processed in parallel.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..data.config import ConfigError, PhenodistConfig
from ..data.core import CellTable, as_cell_table
from ..selection.rules import make_phenotype_rules
from ..selection.selectors import SelectorLike
from .nearest import (
    PhenotypePoints,
    count_within,
    mutual_nearest_neighbors,
    nearest_neighbors,
    phenotype_points,
)


class PhenotypePair(NamedTuple):
    """Ordered (from, to) pair of phenotype names."""
    from_phenotype: str
    to_phenotype: str

    def __str__(self) -> str:
        return f"{self.from_phenotype} → {self.to_phenotype}"


@dataclass
class PairResult:
    """
    Nearest-neighbor results for one phenotype pair.

    Attributes
    ----------
    pair : PhenotypePair
        The (from, to) names.
    from_points, to_points : PhenotypePoints
        Cells of each phenotype.
    nearest : pd.DataFrame
        Nearest to-cell for every from-cell.
    mutual : pd.DataFrame or None
        Mutual nearest neighbors, if requested.
    pixels_per_micron : float or None
        Factor the distances were divided by; None if left in position units.
    units : str
        Units of the 'Distance' column: 'microns', 'pixels' or 'unknown'.
    """
    pair: PhenotypePair
    from_points: PhenotypePoints
    to_points: PhenotypePoints
    nearest: pd.DataFrame
    mutual: Optional[pd.DataFrame]
    pixels_per_micron: Optional[float]
    units: str = 'unknown'

    def summary(self) -> Dict[str, Any]:
        dists = self.nearest['Distance'].dropna()
        return {
            'from': self.pair.from_phenotype,
            'to': self.pair.to_phenotype,
            'n_from': len(self.from_points),
            'n_to': len(self.to_points),
            'n_matched': len(dists),
            'n_mutual': len(self.mutual) if self.mutual is not None else None,
            'mean_distance': dists.mean() if len(dists) else np.nan,
            'median_distance': dists.median() if len(dists) else np.nan,
            'min_distance': dists.min() if len(dists) else np.nan,
            'max_distance': dists.max() if len(dists) else np.nan,
            'units': self.units,
        }

    def __repr__(self) -> str:
        return (f"PairResult ({self.pair}, {len(self.from_points)} from, "
                f"{len(self.to_points)} to)")


PairLike = Union[PhenotypePair, Sequence[str]]


def validate_pairs(pairs: Iterable[PairLike]) -> List[PhenotypePair]:
    """
    Check that every pair has exactly two phenotype names.

    Raises
    ------
    ConfigError
    """
    if isinstance(pairs, str):
        raise ConfigError("pairs must be a list of (from, to) pairs, not a string")

    result = []
    for pair in pairs:
        if isinstance(pair, str) or len(pair) != 2:
            raise ConfigError(f"Each pair must have two phenotype names, got {pair!r}")
        if not all(isinstance(p, str) for p in pair):
            raise ConfigError(f"Phenotype names must be strings, got {pair!r}")
        result.append(PhenotypePair(*pair))
    if not result:
        raise ConfigError("No phenotype pairs given")
    return result


def pair_phenotypes(pairs: Iterable[PhenotypePair]) -> List[str]:
    """Unique phenotype names of `pairs`, in first-seen order."""
    return list(dict.fromkeys(name for pair in pairs for name in pair))


def validate_colors(phenotypes: Iterable[str], colors: Mapping[str, str]) -> None:
    """
    Check that every phenotype has a color.

    Raises
    ------
    ConfigError
        Naming the phenotypes without a color.
    """
    missing = [p for p in phenotypes if p not in colors]
    if missing:
        raise ConfigError(f"No color given for phenotypes: {missing}")


def _resolve_pixels_per_micron(pixels_per_micron, table: CellTable) -> Optional[float]:
    """
    Conversion factor to apply to distances, or None for no conversion.

    'config' converts with config.pixels_per_micron only when the table's
    positions are known to be pixels. An explicit factor is refused for a
    table already in microns.
    """
    if isinstance(pixels_per_micron, str):
        if pixels_per_micron != 'config':
            raise ConfigError(f"Invalid pixels_per_micron: {pixels_per_micron!r}")
        if table.position_units != 'pixels':
            return None
        pixels_per_micron = table.config.pixels_per_micron
    if pixels_per_micron is None:
        return None
    if not np.isfinite(pixels_per_micron) or pixels_per_micron <= 0:
        raise ConfigError(f"pixels_per_micron must be positive, got {pixels_per_micron}")
    if table.position_units == 'microns':
        raise ConfigError(
            "Cell positions are already in microns; use pixels_per_micron=None "
            "or 'config'")
    return float(pixels_per_micron)


def _distance_units(pixels_per_micron: Optional[float], table: CellTable) -> str:
    if pixels_per_micron is not None:
        return 'microns'
    return table.position_units or 'unknown'


def _select_all(table: CellTable,
                phenotypes: Sequence[str],
                rules: Mapping[str, SelectorLike]) -> Dict[str, PhenotypePoints]:
    return {name: phenotype_points(table, rules[name], name=name) for name in phenotypes}


def _process_pair(pair: PhenotypePair,
                  points: Mapping[str, PhenotypePoints],
                  pixels_per_micron: Optional[float],
                  units: str,
                  include_mutual: bool) -> PairResult:
    from_pts = points[pair.from_phenotype]
    to_pts = points[pair.to_phenotype]

    nn = nearest_neighbors(from_pts, to_pts)
    mnn = mutual_nearest_neighbors(from_pts, to_pts) if include_mutual else None

    if pixels_per_micron is not None:
        nn['Distance'] = nn['Distance'] / pixels_per_micron
        if mnn is not None:
            mnn['Distance'] = mnn['Distance'] / pixels_per_micron

    return PairResult(
        pair=pair,
        from_points=from_pts,
        to_points=to_pts,
        nearest=nn,
        mutual=mnn,
        pixels_per_micron=pixels_per_micron,
        units=units,
    )


def spatial_distribution(table: Union[CellTable, pd.DataFrame],
                         pairs: Iterable[PairLike],
                         colors: Optional[Mapping[str, str]] = None,
                         phenotype_rules: Optional[Mapping[str, SelectorLike]] = None,
                         pixels_per_micron: Union[float, None, str] = 'config',
                         mutual: bool = True,
                         n_jobs: int = 1,
                         config: Optional[PhenodistConfig] = None,
                         verbose: bool = True) -> List[PairResult]:
    """
    Nearest-neighbor relations for each pair of phenotypes in a field.

    Parameters
    ----------
    table : CellTable or DataFrame
        Cell data for one field. Never modified.
    pairs : list of (from, to)
        Phenotype pairs. One result per pair, in the same order.
    colors : dict, optional
        Phenotype -> color, for plotting. When given, every phenotype in
        `pairs` must have a color.
    phenotype_rules : dict, optional
        Phenotype name -> selector, for phenotypes that are not literal
        phenotype labels.
    pixels_per_micron : float, None or 'config'
        Distances are divided by this factor. 'config' uses
        config.pixels_per_micron when the table's positions are in pixels
        and leaves distances unchanged otherwise; None never converts.
        A factor is refused for positions already in microns.
    mutual : bool
        Also compute mutual nearest neighbors.
    n_jobs : int
        Number of pairs processed concurrently.
    config : PhenodistConfig, optional
        Column names, used when `table` is a DataFrame.
    verbose : bool
        Print one summary line per pair.

    Returns
    -------
    list of PairResult

    Raises
    ------
    ConfigError
        Malformed pairs, missing colors or invalid pixels_per_micron.
    RuleError
        Malformed phenotype rule.
    SelectionError
        A rule refers to a column that is not in the table.
    """
    table = as_cell_table(table, config)
    pairs = validate_pairs(pairs)
    phenotypes = pair_phenotypes(pairs)

    if colors is not None:
        validate_colors(phenotypes, colors)

    rules = make_phenotype_rules(phenotypes, phenotype_rules)
    ppm = _resolve_pixels_per_micron(pixels_per_micron, table)
    units = _distance_units(ppm, table)

    # Selection errors surface here, before any distance is computed
    points = _select_all(table, phenotypes, rules)

    if n_jobs is not None and n_jobs > 1 and len(pairs) > 1:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            results = list(pool.map(
                lambda p: _process_pair(p, points, ppm, units, mutual), pairs))
    else:
        results = [_process_pair(p, points, ppm, units, mutual) for p in pairs]

    if verbose:
        print(f"  ✓ Nearest neighbors for {len(results)} phenotype pairs:")
        for r in results:
            s = r.summary()
            line = (f"    {r.pair}: n_from={s['n_from']}, n_to={s['n_to']}")
            if s['n_matched']:
                line += f", median={s['median_distance']:.2f} {s['units']}"
            if s['n_mutual'] is not None:
                line += f", mutual={s['n_mutual']}"
            print(line)

    return results


def count_within_pairs(table: Union[CellTable, pd.DataFrame],
                       pairs: Iterable[PairLike],
                       radius: Union[float, Sequence[float]],
                       phenotype_rules: Optional[Mapping[str, SelectorLike]] = None,
                       pixels_per_micron: Union[float, None, str] = 'config',
                       config: Optional[PhenodistConfig] = None) -> pd.DataFrame:
    """
    Count to-cells within a radius of from-cells, for each pair and radius.

    A cell is never counted as its own neighbor, so pairs whose phenotypes
    overlap count only other cells.

    Parameters
    ----------
    table : CellTable or DataFrame
        Cell data for one field.
    pairs : list of (from, to)
        Phenotype pairs.
    radius : float or list of float
        Radii in distance units: microns when positions are converted or
        already in microns, else position units.
    phenotype_rules : dict, optional
        Phenotype name -> selector.
    pixels_per_micron : float, None or 'config'
        Conversion between radius units and position units.
    config : PhenodistConfig, optional
        Column names, used when `table` is a DataFrame.

    Returns
    -------
    pd.DataFrame
        One row per (pair, radius) with columns
        'from', 'to', 'radius', 'from_count', 'to_count',
        'from_with' (from-cells with at least one to-cell within radius) and
        'within_mean' (mean number of to-cells within radius per from-cell,
        NaN when there are no from-cells).
    """
    table = as_cell_table(table, config)
    pairs = validate_pairs(pairs)
    phenotypes = pair_phenotypes(pairs)
    rules = make_phenotype_rules(phenotypes, phenotype_rules)
    ppm = _resolve_pixels_per_micron(pixels_per_micron, table)

    radii = np.atleast_1d(np.asarray(radius, dtype=float))
    if radii.size == 0 or np.any(~np.isfinite(radii)) or np.any(radii < 0):
        raise ConfigError(f"radius must be non-negative numbers, got {radius}")

    points = _select_all(table, phenotypes, rules)

    rows = []
    for pair in pairs:
        from_pts = points[pair.from_phenotype]
        to_pts = points[pair.to_phenotype]
        for r in radii:
            native_r = r * ppm if ppm is not None else r
            counts = count_within(from_pts, to_pts, native_r, exclude_self=True)
            rows.append({
                'from': pair.from_phenotype,
                'to': pair.to_phenotype,
                'radius': r,
                'from_count': len(from_pts),
                'to_count': len(to_pts),
                'from_with': int((counts > 0).sum()),
                'within_mean': counts.mean() if len(counts) else np.nan,
            })

    return pd.DataFrame(rows, columns=['from', 'to', 'radius', 'from_count',
                                       'to_count', 'from_with', 'within_mean'])
