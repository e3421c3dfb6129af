"""
Parser combinators over token streams.

A parser is a callable taking a stream node (or None at end of input) and
returning ``(value, rest)``. Parsers signal a mismatch by raising ParseFailure;
because streams memoize their tails, alternatives backtrack for free.
"""

from typing import Any, Callable, List, Optional, Tuple

from .models import Token, TokenKind
from .stream import Stream

Parser = Callable[[Optional[Stream]], Tuple[Any, Optional[Stream]]]


class ParseFailure(Exception):
    """Internal mismatch signal carrying the stream position that failed"""

    def __init__(self, stream: Optional[Stream]):
        super().__init__()
        self.stream = stream

    @property
    def position(self) -> float:
        return float("inf") if self.stream is None else self.stream.index


def lookfor(kind: TokenKind, value: Any = None) -> Parser:
    """Match one token of ``kind`` (and ``value``, if given), yielding its value"""

    def parser(stream):
        if stream is None:
            raise ParseFailure(stream)
        token: Token = stream.head
        if token.kind is not kind or (value is not None and token.value != value):
            raise ParseFailure(stream)
        return token.value, stream.tail

    return parser


def concatenate(*parsers: Parser) -> Parser:
    """Match each parser in turn, yielding the list of their values"""

    def parser(stream):
        values = []
        for sub in parsers:
            value, stream = sub(stream)
            values.append(value)
        return values, stream

    return parser


def alternate(*parsers: Parser) -> Parser:
    """Match the first parser that succeeds"""

    def parser(stream):
        furthest: Optional[ParseFailure] = None
        for sub in parsers:
            try:
                return sub(stream)
            except ParseFailure as failure:
                if furthest is None or failure.position > furthest.position:
                    furthest = failure
        raise furthest if furthest is not None else ParseFailure(stream)

    return parser


def optional(sub: Parser, default: Any = None) -> Parser:
    def parser(stream):
        try:
            return sub(stream)
        except ParseFailure:
            return default, stream

    return parser


def star(sub: Parser) -> Parser:
    """Match ``sub`` zero or more times, yielding a list"""

    def parser(stream):
        values: List[Any] = []
        while True:
            try:
                value, stream = sub(stream)
            except ParseFailure:
                return values, stream
            values.append(value)

    return parser


def transform(sub: Parser, function: Callable[[Any], Any]) -> Parser:
    def parser(stream):
        value, rest = sub(stream)
        return function(value), rest

    return parser


def deferred(factory: Callable[[], Parser]) -> Parser:
    """Look a parser up at match time, for recursive rules"""

    def parser(stream):
        return factory()(stream)

    return parser


def end_of_input(stream):
    if stream is not None:
        raise ParseFailure(stream)
    return None, None


__all__ = [
    "Parser",
    "ParseFailure",
    "lookfor",
    "concatenate",
    "alternate",
    "optional",
    "star",
    "transform",
    "deferred",
    "end_of_input",
]
