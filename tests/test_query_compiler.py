"""
Tests for compiling search IR into parameterized SQL, and for the logical
shape of searches and compiled WHERE fragments.
"""

from datetime import datetime

import pytest

from objrel import (
    ANY,
    MATCH,
    NOT,
    PgQueryCompiler,
    SQLiteQueryCompiler,
    TypeMismatchError,
    UnsupportedComparisonError,
    build_search_request,
    compiler_for,
    ir_shape,
    parse_search,
    where_shape,
)


def compile_search(search, backend="sqlite", registry=None, class_key=None):
    return compiler_for(backend).compile(parse_search(search, registry, class_key))


class TestCompilerFor:
    """Tests for picking a compiler by backend name."""

    def test_names(self):
        """Test backend name aliases."""
        assert isinstance(compiler_for("pg"), PgQueryCompiler)
        assert isinstance(compiler_for("PostgreSQL"), PgQueryCompiler)
        assert isinstance(compiler_for("sqlite"), SQLiteQueryCompiler)

    def test_unknown_backend(self):
        """Test that unknown backends raise ValueError."""
        with pytest.raises(ValueError, match="Unknown backend 'oracle'"):
            compiler_for("oracle")


class TestComparisons:
    """Tests for scalar, range and set comparisons."""

    def test_scenario_b(self):
        """Test that a bare list compiles to BETWEEN with two binds."""
        where, binds = compile_search("age => [2, 4]")
        assert where == "age BETWEEN ? AND ?"
        assert binds == [2, 4]

    def test_not_between(self):
        """Test negated BETWEEN."""
        where, binds = compile_search([("age", NOT([2, 4]))])
        assert where == "age NOT BETWEEN ? AND ?"
        assert binds == [2, 4]

    def test_strings_fold_case(self):
        """Test that string comparisons are case-insensitive."""
        where, binds = compile_search("name => 'Foo'")
        assert where == "LOWER(name) = LOWER(?)"
        assert binds == ["Foo"]

    def test_like_and_group(self):
        """Test a leaf followed by a single-member OR group."""
        where, binds = compile_search("name => LIKE 'fo%', OR(age => GE 21)")
        assert where == "LOWER(name) LIKE LOWER(?) AND (age >= ?)"
        assert binds == ["fo%", 21]

    def test_nested_groups(self):
        """Test that nested groups are parenthesized."""
        where, binds = compile_search("OR(a => 1, AND(b => 2, c => 3))")
        assert where == "(a = ? OR (b = ? AND c = ?))"
        assert binds == [1, 2, 3]

    @pytest.mark.parametrize(
        "search,expected",
        [
            ("age => NE 3", "age <> ?"),
            ("age => NOT 3", "age <> ?"),
            ("age => NOT NE 3", "age = ?"),
            ("age => GT 3", "age > ?"),
            ("age => NOT GT 3", "age <= ?"),
            ("age => LT 3", "age < ?"),
            ("age => LE 3", "age <= ?"),
            ("age => NOT GE 3", "age < ?"),
        ],
    )
    def test_operators(self, search, expected):
        """Test each comparison operator and its negation."""
        where, binds = compile_search(search)
        assert where == expected
        assert binds == [3]

    def test_not_like(self):
        """Test NOT LIKE."""
        where, _ = compile_search("name => NOT LIKE 'a%'")
        assert where == "LOWER(name) NOT LIKE LOWER(?)"

    def test_any(self):
        """Test ANY compiles to IN with one bind per value."""
        where, binds = compile_search([("name", ANY("a", "b"))])
        assert where == "LOWER(name) IN (LOWER(?), LOWER(?))"
        assert binds == ["a", "b"]

    def test_not_any_numbers(self):
        """Test negated ANY over numbers."""
        where, binds = compile_search("age => NOT ANY(1, 2, 3)")
        assert where == "age NOT IN (?, ?, ?)"
        assert binds == [1, 2, 3]

    @pytest.mark.parametrize(
        "search,expected",
        [
            ("name => undef", "name IS NULL"),
            ("name => NOT undef", "name IS NOT NULL"),
            ("name => NE undef", "name IS NOT NULL"),
            ("name => NOT NE undef", "name IS NULL"),
        ],
    )
    def test_null_checks(self, search, expected):
        """Test that undef compiles to IS NULL checks without binds."""
        where, binds = compile_search(search)
        assert where == expected
        assert binds == []

    def test_match(self):
        """Test regular expression matches per backend."""
        assert compile_search([("name", MATCH("^f"))], "pg").where == "name ~* ?"
        assert compile_search([("name", NOT(MATCH("^f")))], "pg").where == "name !~* ?"
        assert compile_search([("name", MATCH("^f"))], "sqlite").where == "name REGEXP ?"
        assert compile_search([("name", NOT(MATCH("^f")))], "sqlite").where == "name NOT REGEXP ?"

    def test_match_ignores_case(self, registry):
        """Test that string matches are case-insensitive on both backends."""
        assert compile_search("name => MATCH '^foo'", "pg", registry, "one").binds == ["^foo"]
        assert compile_search("name => MATCH '^foo'", "sqlite", registry, "one").binds == ["(?i)^foo"]
        assert compile_search("name => MATCH '(?i)^foo'", "sqlite", registry, "one").binds == ["(?i)^foo"]

    def test_empty_search(self):
        """Test that an empty search compiles to an empty fragment."""
        assert compile_search(None) == ("", [])

    def test_values_never_in_sql(self):
        """Test that values are bound rather than inlined."""
        where, binds = compile_search("name => 'x; DROP TABLE one'")
        assert "DROP" not in where
        assert binds == ["x; DROP TABLE one"]


class TestMetadataAwareCompiling:
    """Tests for compiling searches resolved against classes."""

    def test_reference_path(self, registry):
        """Test that dotted paths compile to flattened view columns."""
        where, binds = compile_search("one.name => 'foo'", registry=registry, class_key="two")
        assert where == "LOWER(one__name) = LOWER(?)"
        assert binds == ["foo"]

    def test_numbers_do_not_fold(self, registry):
        """Test that numeric attributes are compared as-is."""
        where, _ = compile_search("age => 3", registry=registry, class_key="two")
        assert where == "age = ?"

    def test_boolean_binds(self, registry):
        """Test that SQLite binds booleans as integers."""
        assert compile_search([("flag", True)], "sqlite", registry, "one").binds == [1]
        assert compile_search([("flag", True)], "pg", registry, "one").binds == [True]

    def test_datetime_binds(self, registry):
        """Test datetime binds per backend."""
        search = "date => GE '2024-01-01T00:00:00'"
        sqlite = compile_search(search, "sqlite", registry, "two")
        pg = compile_search(search, "pg", registry, "two")
        assert sqlite == ("date >= ?", ["2024-01-01T00:00:00"])
        assert pg == ("date >= ?", [datetime(2024, 1, 1)])


class TestIncompleteDates:
    """Tests for comparisons against incomplete dates."""

    def test_month_day_sqlite(self, registry):
        """Test a month and day match on SQLite."""
        where, binds = compile_search("date => 'xxxx-06-20Txx:xx:xx'", "sqlite", registry, "two")
        assert where == "strftime('%m-%d', date) = ?"
        assert binds == ["06-20"]

    def test_month_day_pg(self, registry):
        """Test a month and day match on PostgreSQL."""
        where, binds = compile_search("date => 'xxxx-06-20Txx:xx:xx'", "pg", registry, "two")
        assert where == "to_char(date, 'MM-DD') = ?"
        assert binds == ["06-20"]

    def test_day_hour_separator_pg(self, registry):
        """Test that the date/time separator is quoted in to_char patterns."""
        where, binds = compile_search("date => 'xxxx-xx-20T10:xx:xx'", "pg", registry, "two")
        assert where == "to_char(date, 'DD\"T\"HH24') = ?"
        assert binds == ["20T10"]

    def test_range(self, registry):
        """Test GE on a contiguous incomplete date."""
        where, binds = compile_search("date => GE 'xxxx-06-xxTxx:xx:xx'", "sqlite", registry, "two")
        assert where == "strftime('%m', date) >= ?"
        assert binds == ["06"]

    def test_between(self, registry):
        """Test BETWEEN two incomplete dates with the same segments."""
        where, binds = compile_search(
            "date => ['xxxx-06-01Txx:xx:xx', 'xxxx-06-30Txx:xx:xx']", "sqlite", registry, "two"
        )
        assert where == "strftime('%m-%d', date) BETWEEN ? AND ?"
        assert binds == ["06-01", "06-30"]

    def test_between_segments_must_match(self, registry):
        """Test that BETWEEN of month-only and day-only dates is rejected."""
        with pytest.raises(TypeMismatchError, match="identical segments"):
            compile_search("date => ['xxxx-06-xxTxx:xx:xx', 'xxxx-xx-20Txx:xx:xx']", "sqlite", registry, "two")

    def test_non_contiguous_range(self, registry):
        """Test that range searches need contiguous segments."""
        with pytest.raises(UnsupportedComparisonError, match="non-contiguous"):
            compile_search("date => GT 'xxxx-06-xxT10:xx:xx'", "sqlite", registry, "two")

    def test_non_contiguous_equality(self, registry):
        """Test that equality works with non-contiguous segments."""
        where, binds = compile_search("date => 'xxxx-06-xxT10:xx:xx'", "sqlite", registry, "two")
        assert where == "strftime('%m %H', date) = ?"
        assert binds == ["06 10"]

    def test_any_same_segments(self, registry):
        """Test ANY over dates with the same segments."""
        where, binds = compile_search(
            "date => ANY('xxxx-06-xxTxx:xx:xx', 'xxxx-07-xxTxx:xx:xx')", "sqlite", registry, "two"
        )
        assert where == "strftime('%m', date) IN (?, ?)"
        assert binds == ["06", "07"]

    def test_any_mixed_segments(self, registry):
        """Test ANY over dates with different segments."""
        where, binds = compile_search(
            "date => ANY('xxxx-06-xxTxx:xx:xx', 'xxxx-xx-20Txx:xx:xx')", "sqlite", registry, "two"
        )
        assert where == "(strftime('%m', date) = ? OR strftime('%d', date) = ?)"
        assert binds == ["06", "20"]

    def test_like_rejected(self, registry):
        """Test that LIKE cannot take an incomplete date."""
        with pytest.raises(UnsupportedComparisonError, match="LIKE searches do not support incomplete dates"):
            compile_search("date => LIKE 'xxxx-06-xxTxx:xx:xx'", "sqlite", registry, "two")


class TestSelect:
    """Tests for complete SELECT and COUNT queries."""

    def test_select_with_constraints(self, registry):
        """Test ordering and paging."""
        request = build_search_request(
            registry, "two", "age => GE 1", {"order_by": "name", "limit": 10, "offset": 5}
        )
        sql, binds = compiler_for("pg").select(request)
        assert sql == "SELECT * FROM two WHERE age >= ? ORDER BY name ASC LIMIT ? OFFSET ?"
        assert binds == [1, 10, 5]

    def test_select_columns(self, registry):
        """Test an explicit column list and an empty search."""
        request = build_search_request(registry, "two", None)
        sql, binds = compiler_for("sqlite").select(request, ["id", "name"])
        assert sql == "SELECT id, name FROM two"
        assert binds == []

    def test_sqlite_offset_without_limit(self, registry):
        """Test that SQLite paging gets a LIMIT when only OFFSET is given."""
        request = build_search_request(registry, "two", None, {"offset": 5})
        assert compiler_for("sqlite").select(request) == ("SELECT * FROM two LIMIT -1 OFFSET ?", [5])
        assert compiler_for("pg").select(request) == ("SELECT * FROM two OFFSET ?", [5])

    def test_count_ignores_paging(self, registry):
        """Test that COUNT drops ordering and paging."""
        request = build_search_request(
            registry, "two", "age => GE 1", {"order_by": "name", "sort_order": "DESC", "limit": 1}
        )
        assert compiler_for("pg").count(request) == ("SELECT COUNT(*) FROM two WHERE age >= ?", [1])


class TestShape:
    """The logical shape of a search survives compilation."""

    @pytest.mark.parametrize(
        "search",
        [
            "name => LIKE 'fo%', OR(age => GE 21)",
            "OR(a => 1, AND(b => 2, c => 3))",
            "OR(a => 1, b => 2), OR(c => 3, d => [1, 2])",
            "a => NOT ANY(1, 2), b => undef",
            "AND(OR(a => 1, b => NOT [1, 2]), c => LIKE 'x%')",
        ],
    )
    def test_where_shape_matches_ir(self, search):
        """Test that the compiled WHERE has the same AND/OR shape as the IR."""
        ir = parse_search(search)
        where, _ = compiler_for("sqlite").compile(ir)
        assert where_shape(where, "sqlite") == ir_shape(ir)

    def test_ir_shape_collapses(self):
        """Test that single-member groups collapse and same-combinator groups flatten."""
        ir = parse_search("name => LIKE 'fo%', OR(age => GE 21)")
        assert ir_shape(ir) == ("AND", ["leaf", "leaf"])
        assert ir_shape(parse_search("OR(a => 1, OR(b => 2, c => 3))")) == ("OR", ["leaf", "leaf", "leaf"])

    def test_empty_shapes(self):
        """Test that empty searches have no shape."""
        assert ir_shape(parse_search(None)) is None
        assert where_shape("") is None
