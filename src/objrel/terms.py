"""
Builders for structured searches.

A structured search is a sequence of ``(identifier, term)`` pairs and groups::

    [
        ("name", LIKE("fo%")),
        OR(("age", GE(21)), ("age", NOT(undef))),
    ]

A term is either a plain value (implying EQ), None (implying NULL), a list of
two values (implying BETWEEN), or one of the tagged term types built here.
"""

from dataclasses import dataclass, replace
from typing import Any, Optional, Sequence, Tuple, Union

from .errors import SearchSyntaxError
from .models import SortOrder

# ============================================================================
# Term Types
# ============================================================================


@dataclass(frozen=True)
class Comparison:
    """A single-valued comparison. ``operator`` is None when EQ is implied"""

    operator: Optional[str]
    value: Any
    negated: bool = False


@dataclass(frozen=True)
class Collection:
    """
    A multi-valued BETWEEN or ANY term.

    ``explicit`` is False for a bare negated list (``NOT([a, b])``), which lexes
    without the BETWEEN keyword.
    """

    keyword: str
    values: Tuple[Any, ...]
    negated: bool = False
    explicit: bool = True


@dataclass(frozen=True)
class SearchGroup:
    """AND/OR group of search items"""

    combinator: str
    items: Tuple[Any, ...]


Term = Union[Comparison, Collection, SearchGroup, Any]


# ============================================================================
# Builders
# ============================================================================


def _between_values(values: Sequence[Any]) -> Tuple[Any, ...]:
    values = tuple(values)
    if len(values) != 2:
        raise SearchSyntaxError(
            f"BETWEEN searches may only take two values. You have {len(values)}"
        )
    return values


def _compare(operator: str, value: Any) -> Union[Comparison, Collection]:
    if isinstance(value, (list, tuple)):
        if operator == "EQ":
            return BETWEEN(value)
        raise SearchSyntaxError(f"{operator} searches take a single value")
    return Comparison(operator, value)


def EQ(value: Any) -> Union[Comparison, Collection]:
    """Equal to ``value``; a two-element list becomes BETWEEN"""
    return _compare("EQ", value)


def NE(value: Any) -> Comparison:
    return _compare("NE", value)


def LIKE(value: Any) -> Comparison:
    return _compare("LIKE", value)


def GT(value: Any) -> Comparison:
    return _compare("GT", value)


def LT(value: Any) -> Comparison:
    return _compare("LT", value)


def GE(value: Any) -> Comparison:
    return _compare("GE", value)


def LE(value: Any) -> Comparison:
    return _compare("LE", value)


def MATCH(value: Any) -> Comparison:
    """Regular expression match"""
    return _compare("MATCH", value)


def BETWEEN(values: Sequence[Any]) -> Collection:
    """
    Inclusive range between exactly two values.

    Raises:
        SearchSyntaxError: If ``values`` does not hold exactly two values
    """
    return Collection("BETWEEN", _between_values(values))


def ANY(*values: Any) -> Collection:
    """Equal to any of ``values``"""
    return Collection("ANY", tuple(values))


def NOT(term: Any) -> Union[Comparison, Collection]:
    """
    Negate a term.

    ``NOT("foo")`` means not equal, ``NOT(None)`` means not NULL and
    ``NOT([a, b])`` means not between.
    """
    if isinstance(term, (Comparison, Collection)):
        return replace(term, negated=not term.negated)
    if isinstance(term, SearchGroup):
        raise SearchSyntaxError("NOT cannot be applied to an AND or OR group")
    if isinstance(term, (list, tuple)):
        return Collection("BETWEEN", _between_values(term), negated=True, explicit=False)
    return Comparison(None, term, negated=True)


def AND(*items: Any) -> SearchGroup:
    return SearchGroup("AND", items)


def OR(*items: Any) -> SearchGroup:
    return SearchGroup("OR", items)


ASC = SortOrder.ASC
DESC = SortOrder.DESC


__all__ = [
    "Comparison",
    "Collection",
    "SearchGroup",
    "Term",
    "EQ",
    "NE",
    "LIKE",
    "GT",
    "LT",
    "GE",
    "LE",
    "MATCH",
    "BETWEEN",
    "ANY",
    "NOT",
    "AND",
    "OR",
    "ASC",
    "DESC",
]
