# src/phenodist/spatial/__init__.py

"""
spatial - Nearest-neighbor analysis between phenotypes

Modules
-------
- nearest: Point sets, nearest / mutual nearest neighbors, radius counts
- pairs: Phenotype-pair analysis driven by phenotype rules

Quick Start
-----------
>>> from phenodist.selection import col
>>> from phenodist.spatial import phenotype_points, nearest_neighbors, spatial_distribution
>>>
>>> ck = phenotype_points(table, 'CK+')
>>> cd8 = phenotype_points(table, 'CD8+')
>>> nn = nearest_neighbors(ck, cd8)
>>>
>>> # Several pairs at once, with a virtual phenotype
>>> results = spatial_distribution(
...     table,
...     pairs=[('CK+ PDL1+', 'CD8+'), ('CK+ PDL1+', 'CD68+')],
...     phenotype_rules={'CK+ PDL1+': ['CK+', col('PDL1') > 3]},
... )
>>> results[0].nearest.head()
"""

from .nearest import (
    PhenotypePoints,
    phenotype_points,
    nearest_neighbors,
    mutual_nearest_neighbors,
    count_within,
    nearest,
    mutual,
)
from .pairs import (
    PhenotypePair,
    PairResult,
    validate_pairs,
    validate_colors,
    spatial_distribution,
    count_within_pairs,
)

__all__ = [
    'PhenotypePoints',
    'phenotype_points',
    'nearest_neighbors',
    'mutual_nearest_neighbors',
    'count_within',
    'nearest',
    'mutual',
    'PhenotypePair',
    'PairResult',
    'validate_pairs',
    'validate_colors',
    'spatial_distribution',
    'count_within_pairs',
]
