"""
Grammar parser: turns a token stream into the search IR.

Grammar::

    statements := statement (',' statement)* ','?
    statement  := search | ('AND' | 'OR') '(' statements ')'
    search     := identifier '=>'? 'NOT'? (value | compare value | between | any)
    between    := 'BETWEEN'? '[' value (','|'=>') value ','? ']'
    any        := 'ANY' '(' value ((','|'=>') value)* ','? ')'

Each rule is built from the combinators in ``objrel.combinators``. Leaves are
validated against class metadata as soon as a search rule matches.
"""

import logging
from typing import Any, List, Optional

from .combinators import (
    ParseFailure,
    alternate,
    concatenate,
    deferred,
    end_of_input,
    lookfor,
    optional,
    star,
    transform,
)
from .datatypes import parse_date_value, value_kind
from .errors import SearchSyntaxError, TypeMismatchError
from .models import Combinator, Group, Leaf, Operator, SemanticType, TokenKind
from .registry import MetadataGateway
from .stream import Stream

logger = logging.getLogger(__name__)

_FRAGMENT_TOKENS = 8


class SearchParser:
    """
    Parses token streams into IR for one search class.

    Args:
        gateway: Metadata gateway used to validate attribute paths. When None,
            paths are accepted as-is and map to ``path.replace(".", "__")``.
        class_key: Key of the class being searched

    Example:
        parser = SearchParser(registry, "two")
        ir = parser.parse(string_lexer_stream("name => LIKE 'fo%'"))
    """

    def __init__(self, gateway: Optional[MetadataGateway] = None, class_key: Optional[str] = None):
        if gateway is not None and class_key is None:
            raise ValueError("class_key is required when a metadata gateway is given")
        self.gateway = gateway
        self.class_key = class_key
        self._statements = self._build_grammar()

    def parse(self, stream: Optional[Stream]) -> Group:
        """
        Parse a whole token stream.

        Returns:
            A top-level AND group

        Raises:
            SearchSyntaxError: If the stream does not match the grammar
        """
        try:
            members, rest = self._statements(stream)
            end_of_input(rest)
        except ParseFailure as failure:
            fragment = _render(failure.stream)
            raise SearchSyntaxError(f"Could not parse search request: {fragment}", fragment) from None
        logger.debug("Parsed %d top-level search terms for %s", len(members), self.class_key)
        return Group(Combinator.AND, members)

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def _build_grammar(self):
        comma = lookfor(TokenKind.OP, ",")
        separator = alternate(comma, lookfor(TokenKind.OP, "=>"))
        value = alternate(
            lookfor(TokenKind.VALUE),
            transform(lookfor(TokenKind.UNDEF), lambda _: None),
        )
        value_list = transform(
            concatenate(value, star(transform(concatenate(separator, value), lambda pair: pair[1])), optional(comma)),
            lambda parts: [parts[0]] + parts[1],
        )

        compare = transform(
            concatenate(lookfor(TokenKind.COMPARE), value),
            lambda parts: (Operator(parts[0]), parts[1]),
        )
        between = transform(
            concatenate(
                optional(lookfor(TokenKind.KEYWORD, "BETWEEN")),
                lookfor(TokenKind.OP, "["),
                value_list,
                lookfor(TokenKind.OP, "]"),
            ),
            lambda parts: (Operator.BETWEEN, parts[2]),
        )
        any_ = transform(
            concatenate(
                lookfor(TokenKind.KEYWORD, "ANY"),
                lookfor(TokenKind.OP, "("),
                value_list,
                lookfor(TokenKind.OP, ")"),
            ),
            lambda parts: (Operator.ANY, parts[2]),
        )
        equals = transform(value, lambda data: (Operator.EQ, data))

        search = transform(
            concatenate(
                lookfor(TokenKind.IDENTIFIER),
                optional(lookfor(TokenKind.OP, "=>")),
                optional(lookfor(TokenKind.KEYWORD, "NOT")),
                alternate(compare, between, any_, equals),
            ),
            lambda parts: self._leaf(parts[0], parts[2] is not None, *parts[3]),
        )
        group = transform(
            concatenate(
                alternate(lookfor(TokenKind.KEYWORD, "AND"), lookfor(TokenKind.KEYWORD, "OR")),
                lookfor(TokenKind.OP, "("),
                deferred(lambda: statements),
                lookfor(TokenKind.OP, ")"),
            ),
            lambda parts: Group(Combinator(parts[0]), parts[2]),
        )
        statement = alternate(search, group)
        statements = transform(
            optional(
                concatenate(
                    statement,
                    star(transform(concatenate(comma, statement), lambda pair: pair[1])),
                    optional(comma),
                ),
                default=None,
            ),
            lambda parts: [] if parts is None else [parts[0]] + parts[1],
        )
        return statements

    # ------------------------------------------------------------------
    # Leaf construction and validation
    # ------------------------------------------------------------------

    def _leaf(self, path: str, negated: bool, operator: Operator, data: Any) -> Leaf:
        column = None
        attr_type = None
        if self.gateway is not None:
            resolved = self.gateway.resolve_path(self.class_key, path)
            column = resolved.column
            attr_type = resolved.attribute.type

        if operator in (Operator.BETWEEN, Operator.ANY):
            values = [_coerce(value, attr_type) for value in data]
            self._check_collection(operator, values)
            data = tuple(values)
        else:
            data = _coerce(data, attr_type)
            if data is None and operator not in (Operator.EQ, Operator.NE):
                raise SearchSyntaxError(f"{operator.value} searches cannot compare with undef", path)

        return Leaf(path, operator, negated, data, column=column, type=attr_type)

    @staticmethod
    def _check_collection(operator: Operator, values: List[Any]):
        if any(value is None for value in values):
            raise SearchSyntaxError(f"{operator.value} searches cannot contain undef")
        if operator is Operator.BETWEEN:
            if len(values) != 2:
                raise SearchSyntaxError(
                    f"BETWEEN searches should have two terms. You have {len(values)} term(s)."
                )
            first, second = (value_kind(value) for value in values)
            if first != second:
                raise TypeMismatchError(
                    f"BETWEEN searches must be between identical types. You have ({first}) and ({second})"
                )
        else:
            if not values:
                raise SearchSyntaxError("ANY searches need at least one value")
            if len({value_kind(value) for value in values}) > 1:
                raise TypeMismatchError("All types to an ANY search must match")


def _coerce(value: Any, attr_type: Optional[str]) -> Any:
    """Interpret textual datetimes for datetime attributes"""
    if attr_type == SemanticType.DATETIME.value and isinstance(value, str):
        return parse_date_value(value)
    return value


def _render(stream: Optional[Stream]) -> str:
    if stream is None:
        return "<end of input>"
    parts: List[str] = []
    for position, token in enumerate(stream):
        if position == _FRAGMENT_TOKENS:
            parts.append("...")
            break
        parts.append("undef" if token.value is None else str(token.value))
    return " ".join(parts)


__all__ = ["SearchParser"]
