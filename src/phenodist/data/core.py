"""
core.py - CellTable, the per-cell table used throughout phenodist

A CellTable wraps a pandas DataFrame of cell segmentation data: one row per
cell with an identifier, an X/Y position and a phenotype label, plus any
number of extra columns (expression means, scores, ...).

Row order is the implicit index of every selection mask, so the table is
never reordered or modified in place. Subsets are new CellTables.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd

from .config import PhenodistConfig, ValidationError

# Known units for cell positions; None means the units were not recorded
POSITION_UNITS = ('pixels', 'microns')


class CellTable:
    """
    Read-only view of cell segmentation data.

    Core Principles:
    - Stable row order: masks index rows by position
    - No mutation: the wrapped DataFrame is never written to
    - Configurable columns: names come from PhenodistConfig

    Attributes
    ----------
    _data : pd.DataFrame
        The wrapped cell data (owned by the caller)
    config : PhenodistConfig
        Column names and unit settings
    position_units : str or None
        'pixels', 'microns' or None when unknown
    """

    def __init__(self,
                 data: pd.DataFrame,
                 config: Optional[PhenodistConfig] = None,
                 position_units: Optional[str] = None,
                 verbose: bool = True):
        """
        Initialize a CellTable.

        Parameters
        ----------
        data : DataFrame
            Cell data with id, x, y and phenotype columns.
        config : PhenodistConfig, optional
            Configuration object
        position_units : str, optional
            Units of the X/Y positions, 'pixels' or 'microns'. Set by
            `read_cell_seg_table` from the column headers; None if unknown.
        verbose : bool
            If True, print a short summary.
        """
        self.config = config or PhenodistConfig()

        if not isinstance(data, pd.DataFrame):
            raise ValidationError(
                f"Cell data must be a DataFrame, got {type(data).__name__}")

        if position_units is not None and position_units not in POSITION_UNITS:
            raise ValidationError(
                f"position_units must be one of {POSITION_UNITS} or None, "
                f"got {position_units!r}")
        self.position_units = position_units

        self._data = data
        self._validate()

        if verbose:
            self._print_summary()

    def _validate(self) -> None:
        """Check required columns and identifier uniqueness."""
        missing = [c for c in self.config.required_columns()
                   if c not in self._data.columns]
        if missing:
            raise ValidationError(f"Missing columns in cell table: {missing}")

        ids = self._data[self.config.cell_id_col].dropna()
        if not ids.is_unique:
            n_dup = int(ids.duplicated().sum())
            raise ValidationError(
                f"Cell IDs must be unique ({n_dup} duplicated)")

    # ========== Properties ==========

    @property
    def data(self) -> pd.DataFrame:
        """Get the wrapped DataFrame. Treat as read-only."""
        return self._data

    @property
    def n_cells(self) -> int:
        """Number of rows."""
        return len(self._data)

    @property
    def columns(self) -> pd.Index:
        return self._data.columns

    @property
    def cell_ids(self) -> np.ndarray:
        """Cell identifiers in row order."""
        return self._data[self.config.cell_id_col].to_numpy()

    @property
    def phenotypes(self) -> np.ndarray:
        """Phenotype labels in row order."""
        return self._data[self.config.phenotype_col].to_numpy()

    def __len__(self) -> int:
        return len(self._data)

    # ========== Access ==========

    def get_spatial_coords(self,
                           mask: Optional[np.ndarray] = None,
                           as_dataframe: bool = False) -> Union[np.ndarray, pd.DataFrame]:
        """
        Get X/Y positions.

        Parameters
        ----------
        mask : np.ndarray, optional
            Boolean row mask. If None, all cells.
        as_dataframe : bool
            If True, return as DataFrame

        Returns
        -------
        np.ndarray or pd.DataFrame
            Spatial coordinates (N × 2)
        """
        x_col, y_col = self.config.get_coordinate_columns()
        frame = self._data if mask is None else self._data[np.asarray(mask, dtype=bool)]

        if as_dataframe:
            return frame[[x_col, y_col]]

        return frame[[x_col, y_col]].to_numpy(dtype=float)

    def phenotype_counts(self) -> pd.Series:
        """Number of cells per phenotype label."""
        return self._data[self.config.phenotype_col].value_counts()

    def subset(self, mask: np.ndarray) -> 'CellTable':
        """
        Subset by boolean mask.

        Parameters
        ----------
        mask : np.ndarray
            Boolean mask with one entry per row.

        Returns
        -------
        CellTable
            New table with the selected rows, original order kept
        """
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (self.n_cells,):
            raise ValidationError(
                f"Mask has length {mask.shape[0] if mask.ndim else 0}, "
                f"expected {self.n_cells}")
        return CellTable(self._data[mask], config=self.config,
                         position_units=self.position_units, verbose=False)

    def summary(self) -> Dict[str, Any]:
        """
        Get summary of the table.

        Returns
        -------
        dict
            Summary statistics
        """
        coords = self.get_spatial_coords()
        n_valid = int((~np.isnan(coords).any(axis=1)).sum()) if len(coords) else 0
        return {
            'n_cells': self.n_cells,
            'n_phenotypes': int(self._data[self.config.phenotype_col].nunique()),
            'n_valid_positions': n_valid,
            'position_units': self.position_units,
            'columns': list(self._data.columns),
        }

    def _print_summary(self) -> None:
        """Print initialization summary."""
        s = self.summary()
        print("\nCellTable Summary:")
        print(f"  Cells:            {s['n_cells']:,}")
        print(f"  Phenotypes:       {s['n_phenotypes']}")
        print(f"  Valid positions:  {s['n_valid_positions']:,}")
        print(f"  Position units:   {s['position_units'] or 'unknown'}")
        print(f"  Extra columns:    {len(s['columns']) - 4}")
        print()

    def __repr__(self) -> str:
        """String representation."""
        return (f"CellTable\n"
                f"  Cells: {self.n_cells:,}\n"
                f"  Phenotypes: {self._data[self.config.phenotype_col].nunique()}")


def as_cell_table(table: Union[CellTable, pd.DataFrame],
                  config: Optional[PhenodistConfig] = None) -> CellTable:
    """
    Wrap a DataFrame as a CellTable; CellTables pass through unchanged.

    Parameters
    ----------
    table : CellTable or DataFrame
        Cell data.
    config : PhenodistConfig, optional
        Used only when wrapping a DataFrame.

    Returns
    -------
    CellTable
    """
    if isinstance(table, CellTable):
        return table
    return CellTable(table, config=config, verbose=False)

