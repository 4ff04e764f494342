"""
selectors.py - Row selection by phenotype and column conditions

A selector describes which rows of a cell table to keep. Selectors nest:

- Phenotype('CK+')            : phenotype label equals 'CK+'
- AnyOf({'CD8+', 'CD4+'})     : phenotype is any of the names (OR)
- Predicate / col('PDL1') > 3 : condition on column values
- AllOf(['CK+', col('PDL1') > 3]) : every member matches (AND)

Plain Python values are accepted everywhere a selector is expected and
coerced with `as_selector`: a string is a Phenotype, a set of strings is an
AnyOf, a list or tuple is an AllOf, a callable is a Predicate and None
selects every row.

Predicates built from `col()` use three-valued logic: a comparison against a
missing value is unknown, `&`, `|` and `~` propagate unknowns, and unknown
rows are finally treated as not selected.

Examples
--------
>>> from phenodist.selection import evaluate, col
>>> mask = evaluate(table, ['CK+', col('PDL1') > 3])
>>> table.data[mask]
"""
from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ..data.config import PhenodistConfig, SelectionError
from ..data.core import CellTable, as_cell_table


class Selector:
    """Base class for all selector variants."""

    def _evaluate(self, table: CellTable) -> pd.Series:
        """Evaluate to a nullable boolean Series aligned with the table rows."""
        raise NotImplementedError

    def referenced_columns(self) -> Tuple[str, ...]:
        """Columns, other than the phenotype column, this selector reads."""
        return ()

    def __and__(self, other) -> 'AllOf':
        return AllOf((self, as_selector(other)))

    def __rand__(self, other) -> 'AllOf':
        return AllOf((as_selector(other), self))


@dataclass(frozen=True)
class Phenotype(Selector):
    """Rows whose phenotype label equals `name`."""
    name: str

    def __post_init__(self):
        if not isinstance(self.name, str):
            raise SelectionError(
                f"Phenotype name must be a string, got {self.name!r}")

    def _evaluate(self, table: CellTable) -> pd.Series:
        pheno = table.data[table.config.phenotype_col]
        return (pheno == self.name).fillna(False).astype('boolean')

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class AnyOf(Selector):
    """Rows whose phenotype label is any of `names`."""
    names: Tuple[str, ...]

    def __init__(self, names: Iterable[str]):
        if isinstance(names, str):
            names = (names,)
        names = tuple(names)
        bad = [n for n in names if not isinstance(n, str)]
        if bad:
            raise SelectionError(
                f"AnyOf accepts phenotype names only, got {bad!r}")
        # dict.fromkeys keeps first-seen order while dropping duplicates
        object.__setattr__(self, 'names', tuple(dict.fromkeys(names)))

    def _evaluate(self, table: CellTable) -> pd.Series:
        pheno = table.data[table.config.phenotype_col]
        return pheno.isin(self.names).astype('boolean')

    def __str__(self) -> str:
        return ' or '.join(self.names)


@dataclass(frozen=True, eq=False)
class Predicate(Selector):
    """
    Condition on column values.

    Attributes
    ----------
    fn : callable
        Called with the table's DataFrame; returns one boolean per row.
        Missing (NA) results count as not selected.
    columns : tuple of str
        Columns `fn` reads. They are checked before `fn` is called so a
        missing column is reported by name.
    label : str
        Human readable description, e.g. 'PDL1 > 3'.
    """
    fn: Callable[[pd.DataFrame], Any]
    columns: Tuple[str, ...] = ()
    label: str = ''

    def referenced_columns(self) -> Tuple[str, ...]:
        return self.columns

    def _evaluate(self, table: CellTable) -> pd.Series:
        missing = [c for c in self.columns if c not in table.columns]
        if missing:
            raise SelectionError(
                f"Column '{missing[0]}' not found in cell table", column=missing[0])

        df = table.data
        try:
            result = self.fn(df)
        except KeyError as e:
            column = e.args[0] if e.args else None
            raise SelectionError(
                f"Column '{column}' not found in cell table", column=column) from e
        except TypeError as e:
            raise SelectionError(f"Predicate {self} cannot be evaluated: {e}") from e

        return _as_boolean_series(result, df.index, self)

    def __or__(self, other) -> 'Predicate':
        other = _require_predicate(other, '|')
        return Predicate(
            lambda df: self._evaluate_frame(df) | other._evaluate_frame(df),
            columns=_merge_columns(self.columns, other.columns),
            label=f"({self.label}) | ({other.label})",
        )

    def __invert__(self) -> 'Predicate':
        return Predicate(
            lambda df: ~self._evaluate_frame(df),
            columns=self.columns,
            label=f"~({self.label})",
        )

    def __and__(self, other):
        if isinstance(other, Predicate):
            return Predicate(
                lambda df: self._evaluate_frame(df) & other._evaluate_frame(df),
                columns=_merge_columns(self.columns, other.columns),
                label=f"({self.label}) & ({other.label})",
            )
        return super().__and__(other)

    def _evaluate_frame(self, df: pd.DataFrame) -> pd.Series:
        """Nullable boolean result on a bare DataFrame (used when composing)."""
        return _as_boolean_series(self.fn(df), df.index, self)

    def __repr__(self) -> str:
        return f"Predicate({self.label or self.fn!r})"

    def __str__(self) -> str:
        return self.label or repr(self)


@dataclass(frozen=True)
class AllOf(Selector):
    """Rows matching every member. An empty AllOf matches every row."""
    members: Tuple[Selector, ...]

    def __init__(self, members: Iterable[Any] = ()):
        object.__setattr__(self, 'members', tuple(as_selector(m) for m in members))

    def referenced_columns(self) -> Tuple[str, ...]:
        cols: Tuple[str, ...] = ()
        for m in self.members:
            cols = _merge_columns(cols, m.referenced_columns())
        return cols

    def _evaluate(self, table: CellTable) -> pd.Series:
        result = pd.Series(True, index=table.data.index, dtype='boolean')
        for member in self.members:
            result = result & member._evaluate(table).fillna(False)
        return result

    def __and__(self, other) -> 'AllOf':
        return AllOf(self.members + (as_selector(other),))

    def __str__(self) -> str:
        if not self.members:
            return 'all cells'
        return ' and '.join(str(m) for m in self.members)


SelectorLike = Union[Selector, str, set, frozenset, list, tuple, Callable, None]


def as_selector(spec: SelectorLike) -> Selector:
    """
    Coerce a plain Python selector description to a Selector.

    Parameters
    ----------
    spec : Selector, str, set, list, tuple, callable or None
        - str: phenotype name
        - set/frozenset of str: any of these phenotypes
        - list/tuple: all of the (recursively coerced) members
        - callable: predicate called with the cell DataFrame
        - None: all rows

    Returns
    -------
    Selector

    Raises
    ------
    SelectionError
        If `spec` (or any nested member) is not a legal selector.
    """
    if isinstance(spec, Selector):
        return spec
    if spec is None:
        return AllOf(())
    if isinstance(spec, str):
        return Phenotype(spec)
    if isinstance(spec, (set, frozenset)):
        return AnyOf(sorted(spec) if all(isinstance(s, str) for s in spec) else spec)
    if isinstance(spec, (list, tuple)):
        return AllOf(spec)
    if callable(spec):
        return Predicate(spec, label=getattr(spec, '__name__', ''))
    raise SelectionError(
        f"Not a valid selector: {spec!r} (type {type(spec).__name__})")


def evaluate(table: Union[CellTable, pd.DataFrame],
             spec: SelectorLike,
             config: Optional[PhenodistConfig] = None) -> np.ndarray:
    """
    Evaluate a selector against a cell table.

    Parameters
    ----------
    table : CellTable or DataFrame
        Cell data. Never modified.
    spec : selector
        Anything accepted by `as_selector`.
    config : PhenodistConfig, optional
        Column names, used when `table` is a DataFrame.

    Returns
    -------
    np.ndarray
        Boolean mask, one entry per row, in row order.

    Raises
    ------
    SelectionError
        Malformed selector or reference to a column not in the table.
    """
    table = as_cell_table(table, config)
    selector = as_selector(spec)
    result = selector._evaluate(table)
    return result.fillna(False).to_numpy(dtype=bool)


select_rows = evaluate


# ========== Column expression builder ==========

class Column:
    """
    Reference to a column for building predicates.

    >>> col('PDL1') > 3
    Predicate(PDL1 > 3)
    >>> (col('PDL1') > 3) & col('Tissue Category').isin(['Tumor'])
    """

    def __init__(self, name: str):
        if not isinstance(name, str):
            raise SelectionError(f"Column name must be a string, got {name!r}")
        self.name = name

    def _compare(self, op: Callable, symbol: str, value: Any) -> Predicate:
        name = self.name

        def fn(df: pd.DataFrame) -> pd.Series:
            values = df[name]
            result = op(values, value).astype('boolean')
            return result.mask(values.isna())

        return Predicate(fn, columns=(name,), label=f"{name} {symbol} {value!r}")

    def __gt__(self, value) -> Predicate:
        return self._compare(operator.gt, '>', value)

    def __ge__(self, value) -> Predicate:
        return self._compare(operator.ge, '>=', value)

    def __lt__(self, value) -> Predicate:
        return self._compare(operator.lt, '<', value)

    def __le__(self, value) -> Predicate:
        return self._compare(operator.le, '<=', value)

    def __eq__(self, value) -> Predicate:  # type: ignore[override]
        return self._compare(operator.eq, '==', value)

    def __ne__(self, value) -> Predicate:  # type: ignore[override]
        return self._compare(operator.ne, '!=', value)

    __hash__ = None

    def isin(self, values: Iterable[Any]) -> Predicate:
        values = list(values)
        name = self.name

        def fn(df: pd.DataFrame) -> pd.Series:
            col_values = df[name]
            return col_values.isin(values).astype('boolean').mask(col_values.isna())

        return Predicate(fn, columns=(name,), label=f"{name} in {values!r}")

    def between(self, low: Any, high: Any) -> Predicate:
        """Inclusive range test."""
        return (self >= low) & (self <= high)

    def isna(self) -> Predicate:
        name = self.name
        return Predicate(lambda df: df[name].isna(), columns=(name,),
                         label=f"{name} is missing")

    def notna(self) -> Predicate:
        name = self.name
        return Predicate(lambda df: df[name].notna(), columns=(name,),
                         label=f"{name} is present")

    def __repr__(self) -> str:
        return f"col({self.name!r})"


def col(name: str) -> Column:
    """Start a predicate on column `name`."""
    return Column(name)


# ========== Helpers ==========

def _as_boolean_series(result: Any, index: pd.Index, predicate: Predicate) -> pd.Series:
    """Convert a predicate result to a nullable boolean Series on `index`."""
    if isinstance(result, pd.Series) and pd.api.types.is_bool_dtype(result.dtype):
        if len(result) != len(index):
            raise SelectionError(
                f"Predicate {predicate} returned {len(result)} values "
                f"for {len(index)} rows")
        return pd.Series(result.astype('boolean').array, index=index)

    if isinstance(result, pd.Series):
        if len(result) != len(index):
            raise SelectionError(
                f"Predicate {predicate} returned {len(result)} values "
                f"for {len(index)} rows")
        values = result.to_numpy(dtype=object)
    else:
        values = np.asarray(result, dtype=object)
        if values.ndim == 0:
            values = np.full(len(index), values.item(), dtype=object)
        if values.shape != (len(index),):
            raise SelectionError(
                f"Predicate {predicate} returned {values.shape[0] if values.ndim else 0} "
                f"values for {len(index)} rows")

    missing = pd.isna(values)
    values = np.where(missing, None, values)
    try:
        out = pd.Series(pd.array(list(values), dtype='boolean'), index=index)
    except (TypeError, ValueError) as e:
        raise SelectionError(
            f"Predicate {predicate} must return booleans: {e}") from e
    return out


def _require_predicate(other: Any, symbol: str) -> Predicate:
    if isinstance(other, Predicate):
        return other
    if callable(other) and not isinstance(other, Selector):
        return Predicate(other, label=getattr(other, '__name__', ''))
    raise SelectionError(
        f"'{symbol}' combines predicates only; use AnyOf for phenotype names "
        f"(got {other!r})")


def _merge_columns(a: Tuple[str, ...], b: Tuple[str, ...]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(a + b))
