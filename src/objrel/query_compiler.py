"""
Query compiler: turns search IR into parameterized SQL.

Every leaf is dispatched on its operator, negation and value type to a
formatter that returns a SQL fragment and appends its bind values. Values never
appear in the SQL text.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from .backends import Backend
from .datatypes import IncompleteDate
from .errors import TypeMismatchError, UnsupportedComparisonError
from .models import CASE_FOLDED_TYPES, IRNode, Leaf, Operator, SearchRequest

logger = logging.getLogger(__name__)

# Operator -> (SQL operator, negated SQL operator)
COMPARISON_OPERATORS: Dict[Operator, Tuple[str, str]] = {
    Operator.EQ: ("=", "<>"),
    Operator.NE: ("<>", "="),
    Operator.GT: (">", "<="),
    Operator.LT: ("<", ">="),
    Operator.GE: (">=", "<"),
    Operator.LE: ("<=", ">"),
    Operator.LIKE: ("LIKE", "NOT LIKE"),
}

_RANGE_OPERATORS = (Operator.GT, Operator.LT, Operator.GE, Operator.LE)

# Separators between adjacent date segments
_DATE_SEPARATORS = {
    ("year", "month"): "-",
    ("month", "day"): "-",
    ("day", "hour"): "T",
    ("hour", "minute"): ":",
    ("minute", "second"): ":",
}


class CompiledWhere(NamedTuple):
    where: str
    binds: List[Any]


class QueryCompiler:
    """
    Base query compiler. Subclasses supply the dialect-specific pieces.

    Example:
        compiler = compiler_for("pg")
        where, binds = compiler.compile(parse_search("age => BETWEEN [2, 4]"))
        # where == "age BETWEEN ? AND ?", binds == [2, 4]
    """

    backend: Backend
    placeholder = "?"
    date_patterns: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compile(self, ir: IRNode) -> CompiledWhere:
        """Compile an IR tree into a WHERE fragment (without the keyword) and binds"""
        binds: List[Any] = []
        where = self._node(ir, binds, top=True)
        logger.debug("Compiled WHERE %r with %d binds", where, len(binds))
        return CompiledWhere(where, binds)

    def select(self, request: SearchRequest, columns: Optional[Sequence[str]] = None) -> Tuple[str, List[Any]]:
        """Build a complete SELECT against the request's class view"""
        where, binds = self.compile(request.ir)
        sql = f"SELECT {', '.join(columns) if columns else '*'} FROM {request.view}"
        if where:
            sql += f" WHERE {where}"
        if request.order_by:
            sql += " ORDER BY " + ", ".join(
                f"{column} {direction.value}" for column, direction in request.order_by
            )
        sql += self._paging(request.limit, request.offset, binds)
        return sql, binds

    def count(self, request: SearchRequest) -> Tuple[str, List[Any]]:
        """Build a COUNT(*) query; ordering and paging are ignored"""
        where, binds = self.compile(request.ir)
        sql = f"SELECT COUNT(*) FROM {request.view}"
        if where:
            sql += f" WHERE {where}"
        return sql, binds

    # ------------------------------------------------------------------
    # Dialect hooks
    # ------------------------------------------------------------------

    def fold(self, expression: str) -> str:
        return f"LOWER({expression})"

    def regex_operator(self, negated: bool) -> str:
        raise NotImplementedError

    def regex_pattern(self, pattern: str, folds: bool) -> str:
        return pattern

    def date_expression(self, column: str, pattern: str) -> str:
        """SQL formatting ``column`` with a date pattern built from date_patterns"""
        raise NotImplementedError

    def date_separator(self, separator: str) -> str:
        return separator

    def bind_value(self, value: Any) -> Any:
        return value

    def _paging(self, limit: Optional[int], offset: Optional[int], binds: List[Any]) -> str:
        sql = ""
        if limit is not None:
            sql += f" LIMIT {self.placeholder}"
            binds.append(limit)
        if offset is not None:
            sql += f" OFFSET {self.placeholder}"
            binds.append(offset)
        return sql

    # ------------------------------------------------------------------
    # Tree walking
    # ------------------------------------------------------------------

    def _node(self, node: IRNode, binds: List[Any], top: bool = False) -> str:
        if isinstance(node, Leaf):
            return self._formatter(node)(node, binds)
        fragments = [fragment for fragment in (self._node(m, binds) for m in node.members) if fragment]
        if not fragments:
            return ""
        joined = f" {node.combinator.value} ".join(fragments)
        return joined if top else f"({joined})"

    def _formatter(self, leaf: Leaf) -> Callable[[Leaf, List[Any]], str]:
        if leaf.data is None:
            return self._format_null
        values = leaf.data if leaf.operator in (Operator.BETWEEN, Operator.ANY) else (leaf.data,)
        if any(isinstance(value, IncompleteDate) for value in values):
            return self._format_incomplete_date
        if leaf.operator is Operator.BETWEEN:
            return self._format_between
        if leaf.operator is Operator.ANY:
            return self._format_any
        if leaf.operator is Operator.MATCH:
            return self._format_match
        return self._format_comparison

    def _folds(self, leaf: Leaf) -> bool:
        if leaf.type is not None:
            return leaf.type in [t.value for t in CASE_FOLDED_TYPES]
        values = leaf.data if isinstance(leaf.data, tuple) else (leaf.data,)
        return all(isinstance(value, str) for value in values)

    def _operands(self, leaf: Leaf) -> Tuple[str, str]:
        column = leaf.target_column
        if self._folds(leaf):
            return self.fold(column), self.fold(self.placeholder)
        return column, self.placeholder

    # ------------------------------------------------------------------
    # Formatters
    # ------------------------------------------------------------------

    def _format_null(self, leaf: Leaf, binds: List[Any]) -> str:
        is_null = (leaf.operator is Operator.EQ) != leaf.negated
        return f"{leaf.target_column} IS {'' if is_null else 'NOT '}NULL"

    def _format_comparison(self, leaf: Leaf, binds: List[Any]) -> str:
        column, placeholder = self._operands(leaf)
        operator = COMPARISON_OPERATORS[leaf.operator][leaf.negated]
        binds.append(self.bind_value(leaf.data))
        return f"{column} {operator} {placeholder}"

    def _format_match(self, leaf: Leaf, binds: List[Any]) -> str:
        binds.append(self.regex_pattern(leaf.data, self._folds(leaf)))
        return f"{leaf.target_column} {self.regex_operator(leaf.negated)} {self.placeholder}"

    def _format_between(self, leaf: Leaf, binds: List[Any]) -> str:
        column, placeholder = self._operands(leaf)
        binds.extend(self.bind_value(value) for value in leaf.data)
        negation = "NOT " if leaf.negated else ""
        return f"{column} {negation}BETWEEN {placeholder} AND {placeholder}"

    def _format_any(self, leaf: Leaf, binds: List[Any]) -> str:
        column, placeholder = self._operands(leaf)
        binds.extend(self.bind_value(value) for value in leaf.data)
        negation = "NOT " if leaf.negated else ""
        return f"{column} {negation}IN ({', '.join([placeholder] * len(leaf.data))})"

    def _format_incomplete_date(self, leaf: Leaf, binds: List[Any]) -> str:
        operator = leaf.operator
        values = leaf.data if operator in (Operator.BETWEEN, Operator.ANY) else (leaf.data,)
        if not all(isinstance(value, IncompleteDate) for value in values):
            raise TypeMismatchError("Incomplete dates can only be compared with other incomplete dates")
        negation = "NOT " if leaf.negated else ""

        if operator is Operator.BETWEEN:
            low, high = values
            if not (low.is_contiguous() and high.is_contiguous()):
                raise UnsupportedComparisonError("You cannot do range searches with non-contiguous dates")
            if low.defined_segments() != high.defined_segments():
                raise UnsupportedComparisonError("BETWEEN search dates must have identical segments defined")
            binds.extend([self._date_bind(low), self._date_bind(high)])
            expression = self._date_column(leaf.target_column, low.defined_segments())
            return f"{expression} {negation}BETWEEN {self.placeholder} AND {self.placeholder}"

        if operator is Operator.ANY:
            binds.extend(self._date_bind(value) for value in values)
            segment_sets = {value.defined_segments() for value in values}
            if len(segment_sets) == 1:
                expression = self._date_column(leaf.target_column, values[0].defined_segments())
                placeholders = ", ".join([self.placeholder] * len(values))
                return f"{expression} {negation}IN ({placeholders})"
            alternatives = " OR ".join(
                f"{self._date_column(leaf.target_column, value.defined_segments())} = {self.placeholder}"
                for value in values
            )
            return f"{negation}({alternatives})"

        value = values[0]
        if operator in _RANGE_OPERATORS and not value.is_contiguous():
            raise UnsupportedComparisonError("You cannot do GT or LT type searches with non-contiguous dates")
        if operator not in COMPARISON_OPERATORS or operator is Operator.LIKE:
            raise UnsupportedComparisonError(f"{operator.value} searches do not support incomplete dates")
        binds.append(self._date_bind(value))
        expression = self._date_column(leaf.target_column, value.defined_segments())
        return f"{expression} {COMPARISON_OPERATORS[operator][leaf.negated]} {self.placeholder}"

    # ------------------------------------------------------------------
    # Incomplete date helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _separators(segments: Tuple[str, ...]) -> List[str]:
        return [_DATE_SEPARATORS.get(pair, " ") for pair in zip(segments, segments[1:])]

    def _date_column(self, column: str, segments: Tuple[str, ...]) -> str:
        pattern = self.date_patterns[segments[0]]
        for separator, segment in zip(self._separators(segments), segments[1:]):
            pattern += self.date_separator(separator) + self.date_patterns[segment]
        return self.date_expression(column, pattern)

    def _date_bind(self, value: IncompleteDate) -> str:
        segments = value.defined_segments()
        parts = ["%04d" % value.year if name == "year" else "%02d" % getattr(value, name) for name in segments]
        text = parts[0]
        for separator, part in zip(self._separators(segments), parts[1:]):
            text += separator + part
        return text


class PgQueryCompiler(QueryCompiler):
    """PostgreSQL: ``to_char`` for date segments, ``~*`` for regular expressions"""

    backend = Backend.POSTGRES
    date_patterns = {
        "year": "YYYY",
        "month": "MM",
        "day": "DD",
        "hour": "HH24",
        "minute": "MI",
        "second": "SS",
    }

    def regex_operator(self, negated: bool) -> str:
        return "!~*" if negated else "~*"

    def date_expression(self, column: str, pattern: str) -> str:
        return f"to_char({column}, '{pattern}')"

    def date_separator(self, separator: str) -> str:
        # to_char treats bare letters as pattern characters
        return '"T"' if separator == "T" else separator


class SQLiteQueryCompiler(QueryCompiler):
    """SQLite: ``strftime`` for date segments, ``REGEXP`` for regular expressions"""

    backend = Backend.SQLITE
    date_patterns = {
        "year": "%Y",
        "month": "%m",
        "day": "%d",
        "hour": "%H",
        "minute": "%M",
        "second": "%S",
    }

    def regex_operator(self, negated: bool) -> str:
        return "NOT REGEXP" if negated else "REGEXP"

    def regex_pattern(self, pattern: str, folds: bool) -> str:
        # Python's re applies a leading inline flag to the whole pattern
        if folds and not pattern.startswith("(?i)"):
            return f"(?i){pattern}"
        return pattern

    def date_expression(self, column: str, pattern: str) -> str:
        return f"strftime('{pattern}', {column})"

    def bind_value(self, value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, datetime):
            return value.strftime("%Y-%m-%dT%H:%M:%S")
        if isinstance(value, date):
            return value.isoformat()
        return value

    def _paging(self, limit: Optional[int], offset: Optional[int], binds: List[Any]) -> str:
        if offset is not None and limit is None:
            # SQLite only accepts OFFSET after a LIMIT
            binds.append(offset)
            return f" LIMIT -1 OFFSET {self.placeholder}"
        return super()._paging(limit, offset, binds)


_COMPILERS = {Backend.POSTGRES: PgQueryCompiler, Backend.SQLITE: SQLiteQueryCompiler}


def compiler_for(backend) -> QueryCompiler:
    """Return the query compiler for a Backend or backend name"""
    return _COMPILERS[Backend.from_name(backend)]()


__all__ = [
    "COMPARISON_OPERATORS",
    "CompiledWhere",
    "QueryCompiler",
    "PgQueryCompiler",
    "SQLiteQueryCompiler",
    "compiler_for",
]
