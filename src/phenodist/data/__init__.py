# src/phenodist/data/__init__.py

"""
data - Cell table, configuration and readers
"""

from .config import (
    PhenodistConfig,
    PhenodistError,
    ValidationError,
    SelectionError,
    RuleError,
    ConfigError,
)
from .core import CellTable, as_cell_table
from .loaders import read_cell_seg_table, remove_units

__all__ = [
    'PhenodistConfig',
    'PhenodistError',
    'ValidationError',
    'SelectionError',
    'RuleError',
    'ConfigError',
    'CellTable',
    'as_cell_table',
    'read_cell_seg_table',
    'remove_units',
]
