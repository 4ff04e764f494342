# src/phenodist/selection/__init__.py

"""
selection - Choosing cells by phenotype and column values

Modules
-------
- selectors: Selector types, the `col()` predicate builder and `evaluate`
- rules: Phenotype rules mapping (virtual) phenotype names to selectors

Quick Start
-----------
>>> from phenodist.selection import evaluate, col, make_phenotype_rules
>>>
>>> # Literal phenotype
>>> mask = evaluate(table, 'CK+')
>>>
>>> # Any of several phenotypes
>>> mask = evaluate(table, {'CD8+', 'CD4+'})
>>>
>>> # Phenotype AND expression threshold
>>> mask = evaluate(table, ['CK+', col('Entire Cell PDL1 (Opal 520) Mean') > 3])
>>>
>>> # Virtual phenotypes
>>> rules = make_phenotype_rules(['CK+ PDL1+', 'CD8+'],
...                              {'CK+ PDL1+': ['CK+', col('PDL1') > 3]})
"""

from .selectors import (
    Selector,
    Phenotype,
    AnyOf,
    Predicate,
    AllOf,
    Column,
    col,
    as_selector,
    evaluate,
    select_rows,
)
from .rules import make_phenotype_rules, resolve

__all__ = [
    'Selector',
    'Phenotype',
    'AnyOf',
    'Predicate',
    'AllOf',
    'Column',
    'col',
    'as_selector',
    'evaluate',
    'select_rows',
    'make_phenotype_rules',
    'resolve',
]
