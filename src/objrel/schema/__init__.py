"""
Schema synthesis: DDL for class descriptors, one generator per backend.
"""

from ..backends import Backend
from .base import ClassSchema, SchemaGenerator
from .pg import PgSchema
from .sqlite import SQLiteSchema

_SCHEMAS = {
    Backend.POSTGRES: PgSchema,
    Backend.SQLITE: SQLiteSchema,
}


def schema_for(backend) -> SchemaGenerator:
    """
    Return the schema generator for a Backend or backend name.

    Example:
        ddl = schema_for("pg").generate([one, two])
    """
    return _SCHEMAS[Backend.from_name(backend)]()


__all__ = ["ClassSchema", "SchemaGenerator", "PgSchema", "SQLiteSchema", "schema_for"]
