"""
config.py - Configuration and error types for phenodist

Contains:
- PhenodistConfig: Column names and unit settings
- PhenodistError and subclasses: the error taxonomy shared by all modules
"""

from dataclasses import dataclass


@dataclass
class PhenodistConfig:
    """Configuration for cell table column names and units."""

    # Column names
    cell_id_col: str = "Cell ID"
    x_col: str = "Cell X Position"
    y_col: str = "Cell Y Position"
    phenotype_col: str = "Phenotype"

    # Prefix used for the neighbor columns of a distance table
    to_prefix: str = "To "

    # Unit settings: 2 pixels/micron is the resolution of 20x MSI fields
    pixels_per_micron: float | None = 2.0

    def get_coordinate_columns(self) -> tuple[str, str]:
        """
        Get x, y column names.

        Returns
        -------
        Tuple[str, str]
            (x_column, y_column)
        """
        return self.x_col, self.y_col

    def required_columns(self) -> list[str]:
        """Columns every cell table must have."""
        return [self.cell_id_col, self.x_col, self.y_col, self.phenotype_col]

    def to_column(self, column: str) -> str:
        """
        Name of the neighbor ('to') counterpart of a from-column.

        'Cell ID' -> 'To Cell ID', 'Cell X Position' -> 'To X Position'.
        """
        if column == self.cell_id_col:
            return self.to_prefix + column
        if column.startswith("Cell "):
            return self.to_prefix + column[len("Cell "):]
        return self.to_prefix + column

    def distance_columns(self) -> list[str]:
        """
        Column layout of a distance table.

        Returns
        -------
        list of str
            from id, from x, from y, 'Distance', to id, to x, to y
        """
        from_cols = [self.cell_id_col, self.x_col, self.y_col]
        return from_cols + ["Distance"] + [self.to_column(c) for c in from_cols]


class PhenodistError(Exception):
    """Base exception for phenodist errors."""

    pass


class ValidationError(PhenodistError):
    """Raised when cell table validation fails."""

    pass


class SelectionError(PhenodistError):
    """Raised for a malformed selector or a reference to an unknown column."""

    def __init__(self, message: str, column: str | None = None):
        self.column = column
        super().__init__(message)


class RuleError(PhenodistError):
    """Raised when a phenotype rule is not a legal selector."""

    def __init__(self, message: str, name: str | None = None):
        self.name = name
        super().__init__(message)


class ConfigError(PhenodistError):
    """Raised when pairs, colors or units are inconsistent."""

    pass
