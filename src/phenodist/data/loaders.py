"""
loaders.py - Read cell segmentation tables

Reads the tab-delimited `*_cell_seg_data.txt` export of inForm-style
phenotyping software into a CellTable.
"""
import logging
import re
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from .config import PhenodistConfig, ValidationError
from .core import CellTable

logger = logging.getLogger(__name__)

# Unit suffixes that inForm appends to column names
_UNIT_PATTERN = re.compile(
    r"\s+\((?:Normalized Counts, Total Weighting|Normalized Counts|"
    r"Total Weighting|Percent|percent|pixels|microns|square microns|"
    r"sq\. microns|px)\)$"
)

_PIXEL_UNIT = re.compile(r"\s+\((?:pixels|px)\)$")
_MICRON_UNIT = re.compile(r"\s+\(microns\)$")

NA_VALUES = ["#N/A", "NA", "N/A", ""]


def remove_units(name: str) -> str:
    """
    Strip a trailing unit suffix from a column name.

    >>> remove_units('Entire Cell PDL1 (Opal 520) Mean (Normalized Counts, Total Weighting)')
    'Entire Cell PDL1 (Opal 520) Mean'
    """
    return _UNIT_PATTERN.sub("", name)


def read_cell_seg_table(path: Union[str, Path],
                        pixels_per_micron: Optional[float] = None,
                        strip_units: bool = True,
                        config: Optional[PhenodistConfig] = None,
                        verbose: bool = True) -> CellTable:
    """
    Read a cell seg data file into a CellTable.

    Parameters
    ----------
    path : str or Path
        Path to a `*_cell_seg_data.txt` file (tab-delimited).
    pixels_per_micron : float, optional
        If given and the position columns are in pixels, positions are
        divided by this factor so they are in microns. The table records
        the resulting position units either way.
    strip_units : bool
        Remove unit suffixes such as ' (Normalized Counts, Total Weighting)'
        from column names so selectors can use the short names.
    config : PhenodistConfig, optional
        Column names.
    verbose : bool
        Print a summary of the loaded table.

    Returns
    -------
    CellTable
    """
    config = config or PhenodistConfig()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    data = pd.read_csv(path, sep="\t", na_values=NA_VALUES,
                       keep_default_na=False, low_memory=False)

    x_col, y_col = config.get_coordinate_columns()
    position_units = _position_units(data.columns, (x_col, y_col))

    if strip_units:
        renamed = {c: remove_units(c) for c in data.columns}
        collisions = pd.Series(list(renamed.values())).duplicated()
        if collisions.any():
            dups = sorted(set(pd.Series(list(renamed.values()))[collisions]))
            raise ValidationError(
                f"Removing units gives duplicate column names: {dups}")
        data = data.rename(columns=renamed)

    if pixels_per_micron is not None:
        if pixels_per_micron <= 0:
            raise ValueError("pixels_per_micron must be positive")
        if position_units == 'pixels':
            for col in (x_col, y_col):
                if col in data.columns:
                    data[col] = data[col].astype(float) / pixels_per_micron
            position_units = 'microns'
        else:
            logger.warning(
                "Positions in %s are not in pixels; pixels_per_micron ignored",
                path.name)

    n_missing = 0
    if x_col in data.columns and y_col in data.columns:
        positions = data[[x_col, y_col]].to_numpy(dtype=float)
        n_missing = int(np.isnan(positions).any(axis=1).sum())
    if n_missing:
        logger.warning("%d cells in %s have no position", n_missing, path.name)

    if verbose:
        print(f"  ✓ Read {len(data):,} cells from {path.name}")

    return CellTable(data, config=config, position_units=position_units,
                     verbose=verbose)


def _position_units(columns, position_cols) -> Optional[str]:
    """Units of the position columns from their header suffix, None if absent."""
    headers = [c for c in columns if remove_units(c) in position_cols]
    if headers and all(_PIXEL_UNIT.search(c) for c in headers):
        return 'pixels'
    if headers and all(_MICRON_UNIT.search(c) for c in headers):
        return 'microns'
    return None
