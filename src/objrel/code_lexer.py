"""
Lexer for structured (in-memory) searches.

Turns the pairs, groups and terms built with ``objrel.terms`` into the same
token sequence the string lexer produces for the equivalent text.
"""

from typing import Any, Iterable, Iterator, Mapping, Optional

from .errors import LexError
from .models import Token, TokenKind
from .stream import Stream, iterator_to_stream
from .terms import Collection, Comparison, SearchGroup

_COMMA = Token(TokenKind.OP, ",")
_FAT_COMMA = Token(TokenKind.OP, "=>")
_UNDEF = Token(TokenKind.UNDEF, None)
_NOT = Token(TokenKind.KEYWORD, "NOT")


def code_lexer_stream(search: Any) -> Optional[Stream]:
    """
    Lex a structured search into a lazy token stream.

    Args:
        search: A sequence of items, a mapping of identifiers to terms, or a
            single group. Items are ``(identifier, term)`` pairs, mappings,
            groups, or nested lists (which are ANDed).

    Returns:
        The first stream node, or None for an empty search
    """
    return iterator_to_stream(lex_items(_items(search)))


def _items(search: Any) -> Iterable[Any]:
    if search is None:
        return ()
    if isinstance(search, (SearchGroup, Mapping)):
        return (search,)
    if isinstance(search, tuple) and len(search) == 2 and isinstance(search[0], str):
        return (search,)
    if isinstance(search, (list, tuple)):
        return search
    raise LexError([_describe(search)])


def lex_items(items: Iterable[Any]) -> Iterator[Token]:
    """Lex a sequence of search items, separated by commas"""
    first = True
    for item in items:
        if isinstance(item, Mapping):
            pairs: Iterable[Any] = item.items()
        else:
            pairs = (item,)
        for pair in pairs:
            if not first:
                yield _COMMA
            first = False
            yield from _lex_item(pair)


def _lex_item(item: Any) -> Iterator[Token]:
    if isinstance(item, SearchGroup):
        yield Token(TokenKind.KEYWORD, item.combinator)
        yield Token(TokenKind.OP, "(")
        yield from lex_items(item.items)
        yield Token(TokenKind.OP, ")")
    elif isinstance(item, list):
        yield Token(TokenKind.KEYWORD, "AND")
        yield Token(TokenKind.OP, "(")
        yield from lex_items(item)
        yield Token(TokenKind.OP, ")")
    elif isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], str):
        identifier, term = item
        yield Token(TokenKind.IDENTIFIER, identifier)
        yield _FAT_COMMA
        yield from lex_term(term)
    else:
        raise LexError([_describe(item)])


def lex_term(term: Any) -> Iterator[Token]:
    """Lex the right-hand side of a search pair"""
    if isinstance(term, Comparison):
        if term.negated:
            yield _NOT
        if term.operator is not None:
            yield Token(TokenKind.COMPARE, term.operator)
        yield from _lex_value(term.value)
    elif isinstance(term, Collection):
        yield from _lex_collection(term)
    elif isinstance(term, (list, tuple)):
        yield from _lex_collection(Collection("BETWEEN", tuple(term), explicit=False))
    elif isinstance(term, (SearchGroup, Mapping)):
        raise LexError([_describe(term)])
    else:
        yield from _lex_value(term)


def _lex_collection(term: Collection) -> Iterator[Token]:
    if term.negated:
        yield _NOT
    if term.keyword == "ANY":
        yield Token(TokenKind.KEYWORD, "ANY")
        opening, closing = "(", ")"
    else:
        if term.explicit:
            yield Token(TokenKind.KEYWORD, "BETWEEN")
        opening, closing = "[", "]"
    yield Token(TokenKind.OP, opening)
    for position, value in enumerate(term.values):
        if position:
            yield _COMMA
        yield from _lex_value(value)
    yield Token(TokenKind.OP, closing)


def _lex_value(value: Any) -> Iterator[Token]:
    if value is None:
        yield _UNDEF
    elif isinstance(value, (Comparison, Collection, SearchGroup)):
        raise LexError([_describe(value)])
    else:
        yield Token(TokenKind.VALUE, value)


def _describe(value: Any) -> str:
    return f"I don't know how to lex a {type(value).__name__}: {value!r}"


__all__ = ["code_lexer_stream", "lex_items", "lex_term"]
