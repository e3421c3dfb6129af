"""
Exception types raised by the search compiler and schema synthesizer.

All errors derive from ObjRelError, which is itself a ValueError so callers that
only care about "bad input" can catch the builtin.
"""

from typing import Iterable, Optional


class ObjRelError(ValueError):
    """Base class for all objrel errors."""


class InvalidClassError(ObjRelError):
    """A class descriptor was declared inconsistently."""


class UnknownClassError(ObjRelError):
    """The metadata gateway has no class registered under a key."""

    def __init__(self, class_key: str):
        self.class_key = class_key
        super().__init__(f'No such class "{class_key}"')


class LexError(ObjRelError):
    """Search input contained fragments neither lexer recognizes."""

    def __init__(self, fragments: Iterable[str]):
        self.fragments = list(fragments)
        super().__init__(
            "Could not lex search request. Found bad tokens (%s)" % ", ".join(self.fragments)
        )


class SearchSyntaxError(ObjRelError):
    """The token stream does not follow the search grammar."""

    def __init__(self, message: str, fragment: Optional[str] = None):
        self.fragment = fragment
        super().__init__(message)


class UnknownAttributeError(ObjRelError):
    """A search path does not resolve to a persistent attribute."""

    def __init__(self, path: str, class_key: str, message: Optional[str] = None):
        self.path = path
        self.class_key = class_key
        super().__init__(
            message or f'Search parameter "{path}" is not an object attribute of "{class_key}"'
        )


class TypeMismatchError(ObjRelError):
    """Operands of an ANY or BETWEEN search are of different types."""


class UnsupportedComparisonError(TypeMismatchError):
    """An incomplete date cannot be compared the way the search asks."""


class SchemaGenerationError(ObjRelError):
    """DDL could not be generated for a class."""

    def __init__(self, message: str, class_key: Optional[str] = None):
        self.class_key = class_key
        if class_key is not None:
            message = f"{class_key}: {message}"
        super().__init__(message)


__all__ = [
    "ObjRelError",
    "InvalidClassError",
    "UnknownClassError",
    "LexError",
    "SearchSyntaxError",
    "UnknownAttributeError",
    "TypeMismatchError",
    "UnsupportedComparisonError",
    "SchemaGenerationError",
]
