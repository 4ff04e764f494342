# src/phenodist/__init__.py

"""
phenodist - Phenotype selection and nearest-neighbor distances for cell
segmentation data
"""

# Core data structures
from .data.core import CellTable
from .data.config import (
    PhenodistConfig,
    PhenodistError,
    ValidationError,
    SelectionError,
    RuleError,
    ConfigError,
)
from .data.loaders import read_cell_seg_table

# Selection
from .selection import col, evaluate, select_rows, make_phenotype_rules

# Distances
from .spatial import (
    phenotype_points,
    nearest_neighbors,
    mutual_nearest_neighbors,
    count_within,
    spatial_distribution,
    count_within_pairs,
)

# Import submodules
from . import data
from . import selection
from . import spatial
from . import visualization

__version__ = '0.1.0'

__all__ = [
    # Core classes
    'CellTable',
    'PhenodistConfig',
    'read_cell_seg_table',

    # Errors
    'PhenodistError',
    'ValidationError',
    'SelectionError',
    'RuleError',
    'ConfigError',

    # Functions
    'col',
    'evaluate',
    'select_rows',
    'make_phenotype_rules',
    'phenotype_points',
    'nearest_neighbors',
    'mutual_nearest_neighbors',
    'count_within',
    'spatial_distribution',
    'count_within_pairs',

    # Submodules
    'data',
    'selection',
    'spatial',
    'visualization',
]
