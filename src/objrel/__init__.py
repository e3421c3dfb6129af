"""
objrel - Object-relational schema synthesis and search compilation

Describe business object classes once, generate the PostgreSQL or SQLite
tables, views and triggers that store them, and compile searches written as
structured terms or strings into parameterized SQL against those views.
"""

from importlib.metadata import version

__version__ = version("objrel")

from .backends import Backend
from .datatypes import IncompleteDate
from .errors import (
    InvalidClassError,
    LexError,
    ObjRelError,
    SchemaGenerationError,
    SearchSyntaxError,
    TypeMismatchError,
    UnknownAttributeError,
    UnknownClassError,
    UnsupportedComparisonError,
)
from .functions import register_sqlite_functions
from .models import (
    AttributeDescriptor,
    ClassDescriptor,
    Combinator,
    Group,
    Leaf,
    Operator,
    Relationship,
    SearchRequest,
    SemanticType,
    SortOrder,
    Token,
    TokenKind,
)
from .query_compiler import CompiledWhere, PgQueryCompiler, QueryCompiler, SQLiteQueryCompiler, compiler_for
from .registry import ClassRegistry, MetadataGateway, dependency_order
from .schema import ClassSchema, PgSchema, SchemaGenerator, SQLiteSchema, schema_for
from .search import build_search_request, parse_search
from .shape import ir_shape, where_shape
from .terms import AND, ANY, ASC, BETWEEN, DESC, EQ, GE, GT, LE, LIKE, LT, MATCH, NE, NOT, OR
from .visualizations import visualize_classes

__all__ = [
    # Version
    "__version__",
    # Class descriptors
    "ClassDescriptor",
    "AttributeDescriptor",
    "SemanticType",
    "Relationship",
    "ClassRegistry",
    "MetadataGateway",
    "dependency_order",
    # Schema synthesis
    "Backend",
    "schema_for",
    "SchemaGenerator",
    "ClassSchema",
    "PgSchema",
    "SQLiteSchema",
    "register_sqlite_functions",
    # Searching
    "parse_search",
    "build_search_request",
    "compiler_for",
    "QueryCompiler",
    "PgQueryCompiler",
    "SQLiteQueryCompiler",
    "CompiledWhere",
    "SearchRequest",
    "Token",
    "TokenKind",
    "Leaf",
    "Group",
    "Operator",
    "Combinator",
    "SortOrder",
    "IncompleteDate",
    "ir_shape",
    "where_shape",
    # Search terms
    "AND",
    "OR",
    "NOT",
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
    "ASC",
    "DESC",
    # Visualization
    "visualize_classes",
    # Errors
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
