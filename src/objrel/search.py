"""
Entry points that turn caller search input into a SearchRequest.

Searches may be given as structured terms or as a string; constraints control
ordering and paging.
"""

from typing import Any, List, Mapping, Optional, Sequence, Union

from .code_lexer import code_lexer_stream
from .errors import SearchSyntaxError
from .models import Group, SearchRequest, SortOrder
from .parser import SearchParser
from .registry import MetadataGateway
from .stream import Stream
from .string_lexer import string_lexer_stream

CONSTRAINT_KEYS = ("order_by", "sort_order", "limit", "offset")


def lexer_stream(search: Any) -> Optional[Stream]:
    """Pick the lexer matching the search's form"""
    if isinstance(search, str):
        return string_lexer_stream(search)
    return code_lexer_stream(search)


def parse_search(search: Any, gateway: Optional[MetadataGateway] = None, class_key: Optional[str] = None) -> Group:
    """
    Lex and parse a search in either form.

    Example:
        parse_search("name => LIKE 'fo%', OR(age => GE 21)", registry, "two")
    """
    return SearchParser(gateway, class_key).parse(lexer_stream(search))


def build_search_request(
    gateway: MetadataGateway,
    class_key: str,
    search: Any = None,
    constraints: Optional[Mapping[str, Any]] = None,
) -> SearchRequest:
    """
    Parse a search and its constraints against a class.

    Args:
        gateway: Metadata gateway for the search class
        class_key: Key of the class to search
        search: Structured search, search string, or None for everything
        constraints: Optional ``order_by``, ``sort_order``, ``limit`` and ``offset``

    Returns:
        SearchRequest ready for a QueryCompiler

    Raises:
        SearchSyntaxError: For malformed searches or unknown constraint keys
        UnknownAttributeError: For paths the class does not have
    """
    cls = gateway.resolve(class_key)
    ir = parse_search(search, gateway, class_key)
    constraints = dict(constraints or {})

    unknown = [key for key in constraints if key not in CONSTRAINT_KEYS]
    if unknown:
        raise SearchSyntaxError(f'I do not recognize the search parameter "{unknown[0]}"', unknown[0])

    order_by = _as_list(constraints.get("order_by"))
    sort_order = [_sort_order(value) for value in _as_list(constraints.get("sort_order"))]
    if len(sort_order) > len(order_by):
        raise SearchSyntaxError("sort_order has more entries than order_by")
    sort_order += [SortOrder.ASC] * (len(order_by) - len(sort_order))

    ordering = [
        (gateway.resolve_path(class_key, path).column, direction)
        for path, direction in zip(order_by, sort_order)
    ]
    return SearchRequest(
        class_key=class_key,
        view=cls.view,
        ir=ir,
        order_by=ordering,
        limit=_count(constraints.get("limit"), "limit"),
        offset=_count(constraints.get("offset"), "offset"),
    )


def _as_list(value: Union[None, str, SortOrder, Sequence[Any]]) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (str, SortOrder)):
        return [value]
    return list(value)


def _sort_order(value: Union[str, SortOrder]) -> SortOrder:
    if isinstance(value, SortOrder):
        return value
    try:
        return SortOrder(str(value).upper())
    except ValueError:
        raise SearchSyntaxError(f"sort_order must be ASC or DESC, not {value!r}", str(value)) from None


def _count(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SearchSyntaxError(f"{name} must be a non-negative integer, not {value!r}")
    return value


__all__ = ["CONSTRAINT_KEYS", "lexer_stream", "parse_search", "build_search_request"]
