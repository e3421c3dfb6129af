"""
Lexer for textual searches, such as those sent over HTTP::

    name => LIKE 'fo%', OR(age => GE 21)

Token classes are tried in priority order at each position: values, ``undef``,
comparison operators, keywords, identifiers, whitespace, then punctuation.
"""

import re
from typing import Iterator, List, Optional, Pattern, Tuple

from .errors import LexError
from .models import COMPARE_OPERATORS, KEYWORDS, Token, TokenKind
from .stream import Stream, iterator_to_stream

_QUOTED = r"""(?:"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|`(?:[^`\\]|\\.)*`)"""
_NUMBER = r"(?:[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)"
_WORD_END = r"(?![\w.])"

_RULES: List[Tuple[Optional[TokenKind], Pattern]] = [
    (TokenKind.VALUE, re.compile(f"{_QUOTED}|{_NUMBER}{_WORD_END}", re.DOTALL)),
    (TokenKind.UNDEF, re.compile(rf"(?:undef|None){_WORD_END}")),
    (TokenKind.COMPARE, re.compile(rf"(?:{'|'.join(COMPARE_OPERATORS)}){_WORD_END}")),
    (TokenKind.KEYWORD, re.compile(rf"(?:{'|'.join(KEYWORDS)}){_WORD_END}")),
    (TokenKind.IDENTIFIER, re.compile(r"[^\W\d_][\w.]*")),
    (None, re.compile(r"\s+")),
    (TokenKind.OP, re.compile(r"=>|[,\[\]()]")),
]

_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


def string_lexer_stream(text: str) -> Optional[Stream]:
    """
    Lex a textual search into a lazy token stream.

    Raises:
        LexError: When the stream reaches input no token class recognizes. The
            error lists every unrecognized fragment in the rest of the text.
    """
    return iterator_to_stream(_tokens(text))


def _tokens(text: str) -> Iterator[Token]:
    position = 0
    while position < len(text):
        matched = _match(text, position)
        if matched is None:
            raise LexError(_bad_fragments(text, position))
        token, position = matched
        if token is not None:
            yield token


def _match(text: str, position: int) -> Optional[Tuple[Optional[Token], int]]:
    for kind, pattern in _RULES:
        match = pattern.match(text, position)
        if match is None or not match.group(0):
            continue
        if kind is None:
            return None, match.end()
        return Token(kind, _token_value(kind, match.group(0))), match.end()
    return None


def _token_value(kind: TokenKind, text: str):
    if kind is TokenKind.UNDEF:
        return None
    if kind is not TokenKind.VALUE:
        return text
    if text[0] in "'\"`":
        return _ESCAPE.sub(r"\1", text[1:-1])
    try:
        return int(text)
    except ValueError:
        return float(text)


def _bad_fragments(text: str, position: int) -> List[str]:
    fragments = []
    start = None
    while position < len(text):
        matched = _match(text, position)
        if matched is None:
            if start is None:
                start = position
            position += 1
            continue
        if start is not None:
            fragments.append(text[start:position])
            start = None
        position = matched[1]
    if start is not None:
        fragments.append(text[start:])
    return fragments


__all__ = ["string_lexer_stream"]
