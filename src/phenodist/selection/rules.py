"""
rules.py - Phenotype rules

A phenotype rule set maps a phenotype name to the selector that picks its
cells. Names that are literal phenotype labels need no rule; virtual
phenotypes such as 'CK+ PDL1+' are defined by a rule:

>>> rules = {'CK+ PDL1+': ['CK+', col('PDL1') > 3]}
>>> make_phenotype_rules(['CK+ PDL1+', 'CD8+'], rules)
{'CK+ PDL1+': AllOf(members=(Phenotype(name='CK+'), Predicate(PDL1 > 3))),
 'CD8+': Phenotype(name='CD8+')}
"""
from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

from ..data.config import RuleError, SelectionError
from .selectors import Phenotype, Selector, SelectorLike, as_selector


def make_phenotype_rules(phenotypes: Iterable[str],
                         existing_rules: Optional[Mapping[str, SelectorLike]] = None
                         ) -> Dict[str, Selector]:
    """
    Build the effective rule set for a collection of phenotype names.

    Every name without a rule gets the trivial rule Phenotype(name), so
    literal phenotypes pass straight through. Whether the phenotype occurs in
    any table is not checked here; selecting an absent phenotype simply gives
    an empty selection.

    Parameters
    ----------
    phenotypes : iterable of str
        Phenotype names that must be resolvable.
    existing_rules : mapping, optional
        User rules, name -> selector. Not modified.

    Returns
    -------
    dict
        name -> Selector, in the order of `phenotypes` followed by any
        additional user rules.

    Raises
    ------
    RuleError
        If a name is not a string or a rule is not a legal selector.
    """
    existing_rules = dict(existing_rules or {})

    for name in existing_rules:
        if not isinstance(name, str):
            raise RuleError(f"Phenotype rule names must be strings, got {name!r}",
                            name=name)

    rules: Dict[str, Selector] = {}
    for name in phenotypes:
        if not isinstance(name, str):
            raise RuleError(f"Phenotype names must be strings, got {name!r}",
                            name=name)
        if name in rules:
            continue
        if name in existing_rules:
            rules[name] = _rule_selector(name, existing_rules[name])
        else:
            rules[name] = Phenotype(name)

    for name, spec in existing_rules.items():
        if name not in rules:
            rules[name] = _rule_selector(name, spec)

    return rules


resolve = make_phenotype_rules


def _rule_selector(name: str, spec: SelectorLike) -> Selector:
    try:
        return as_selector(spec)
    except SelectionError as e:
        raise RuleError(f"Invalid rule for phenotype '{name}': {e}", name=name) from e
