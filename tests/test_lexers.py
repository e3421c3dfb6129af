"""
Tests for the string and structured search lexers.

Both lexers must produce identical token sequences for equivalent searches.
"""

import re

import pytest

from objrel import AND, ANY, BETWEEN, GE, LIKE, NE, NOT, OR, LexError, Token, TokenKind
from objrel.code_lexer import code_lexer_stream
from objrel.stream import iterator_to_stream, stream_to_list
from objrel.string_lexer import string_lexer_stream


def ident(name):
    return Token(TokenKind.IDENTIFIER, name)


def op(text):
    return Token(TokenKind.OP, text)


def value(v):
    return Token(TokenKind.VALUE, v)


def compare(name):
    return Token(TokenKind.COMPARE, name)


def keyword(name):
    return Token(TokenKind.KEYWORD, name)


def string_tokens(text):
    return stream_to_list(string_lexer_stream(text))


def code_tokens(search):
    return stream_to_list(code_lexer_stream(search))


class TestStringLexer:
    """Tests for lexing textual searches."""

    def test_simple_search(self):
        """Test identifier, fat comma, operator and quoted value tokens."""
        assert string_tokens("name => LIKE 'fo%'") == [
            ident("name"),
            op("=>"),
            compare("LIKE"),
            value("fo%"),
        ]

    def test_group(self):
        """Test keywords and parentheses inside a group."""
        assert string_tokens("name => 'foo', OR(age => GE 21)") == [
            ident("name"),
            op("=>"),
            value("foo"),
            op(","),
            keyword("OR"),
            op("("),
            ident("age"),
            op("=>"),
            compare("GE"),
            value(21),
            op(")"),
        ]

    def test_numbers_become_numbers(self):
        """Test that integer and float literals are converted."""
        assert string_tokens("age => BETWEEN [2, 4.5]") == [
            ident("age"),
            op("=>"),
            keyword("BETWEEN"),
            op("["),
            value(2),
            op(","),
            value(4.5),
            op("]"),
        ]

    def test_escaped_quotes_are_unescaped(self):
        """Test that backslash escapes inside quoted values are stripped."""
        tokens = string_tokens(r"name => 'it\'s'")
        assert tokens[-1] == value("it's")

    def test_undef_and_none(self):
        """Test that both undef spellings lex to the same token."""
        assert string_tokens("name => undef")[-1] == Token(TokenKind.UNDEF, None)
        assert string_tokens("name => None")[-1] == Token(TokenKind.UNDEF, None)

    def test_dotted_identifier(self):
        """Test that attribute paths lex as one identifier."""
        assert string_tokens("one.name => 'x'")[0] == ident("one.name")

    def test_operator_prefix_in_identifier(self):
        """Test that identifiers starting with an operator name stay identifiers."""
        assert string_tokens("NEWS => 1")[0] == ident("NEWS")
        assert string_tokens("ORDER => 1")[0] == ident("ORDER")

    def test_empty_search(self):
        """Test that blank text yields no tokens."""
        assert string_lexer_stream("   ") is None

    def test_bad_fragment_raises(self):
        """Test that unrecognized input raises LexError naming the fragment."""
        with pytest.raises(LexError, match=re.escape("Found bad tokens (~~)")):
            string_tokens("name => ~~ 'x'")

    def test_all_bad_fragments_reported(self):
        """Test that every bad fragment after the first is listed too."""
        with pytest.raises(LexError) as excinfo:
            string_tokens("name => ~~ 'x', age => ^^")
        assert excinfo.value.fragments == ["~~", "^^"]


class TestCodeLexer:
    """Tests for lexing structured searches."""

    def test_pair(self):
        """Test a single identifier/term pair."""
        assert code_tokens([("name", LIKE("fo%"))]) == [
            ident("name"),
            op("=>"),
            compare("LIKE"),
            value("fo%"),
        ]

    def test_plain_value_implies_eq(self):
        """Test that a bare value lexes without an operator."""
        assert code_tokens([("name", "foo")]) == [ident("name"), op("=>"), value("foo")]

    def test_none_lexes_as_undef(self):
        """Test that None lexes to the UNDEF token."""
        assert code_tokens([("name", None)])[-1] == Token(TokenKind.UNDEF, None)

    def test_mapping(self):
        """Test that a mapping lexes as its pairs."""
        assert code_tokens({"name": "foo", "age": 3}) == [
            ident("name"),
            op("=>"),
            value("foo"),
            op(","),
            ident("age"),
            op("=>"),
            value(3),
        ]

    def test_not_list_is_bare_between(self):
        """Test that NOT of a list lexes without the BETWEEN keyword."""
        assert code_tokens([("age", NOT([2, 4]))]) == [
            ident("age"),
            op("=>"),
            keyword("NOT"),
            op("["),
            value(2),
            op(","),
            value(4),
            op("]"),
        ]

    def test_unknown_object_raises(self):
        """Test that objects the lexer does not understand raise LexError."""
        with pytest.raises(LexError, match="I don't know how to lex a"):
            code_tokens([object()])

    def test_empty_search(self):
        """Test that an empty search yields no stream."""
        assert code_lexer_stream([]) is None
        assert code_lexer_stream(None) is None


class TestLexerEquivalence:
    """Equivalent searches lex identically in both forms."""

    @pytest.mark.parametrize(
        "text,search",
        [
            ("name => LIKE 'fo%', OR(age => GE 21)", [("name", LIKE("fo%")), OR(("age", GE(21)))]),
            ("age => BETWEEN [2, 4]", [("age", BETWEEN([2, 4]))]),
            ("age => [2, 4]", [("age", [2, 4])]),
            ("age => NOT BETWEEN [2, 4]", [("age", NOT(BETWEEN([2, 4])))]),
            ("name => ANY('a', 'b')", [("name", ANY("a", "b"))]),
            ("name => NOT undef", [("name", NOT(None))]),
            ("name => NE 'x'", [("name", NE("x"))]),
            ("AND(name => 'a', age => 1)", [AND(("name", "a"), ("age", 1))]),
        ],
    )
    def test_same_tokens(self, text, search):
        """Test that the string and structured forms produce the same tokens."""
        assert string_tokens(text) == code_tokens(search)


class TestStream:
    """Tests for lazy streams."""

    def test_tail_is_memoized(self):
        """Test that a stream node computes its tail once."""
        calls = []

        def numbers():
            for n in range(3):
                calls.append(n)
                yield n

        stream = iterator_to_stream(numbers())
        assert stream.tail is stream.tail
        assert list(stream) == [0, 1, 2]
        assert calls == [0, 1, 2]

    def test_indexes(self):
        """Test that nodes carry their position."""
        stream = iterator_to_stream(iter("ab"))
        assert (stream.index, stream.tail.index) == (0, 1)
