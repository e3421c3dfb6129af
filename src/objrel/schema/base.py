"""
Base schema synthesizer.

Generates the DDL shared by all backends (tables, indexes, views) and defines
the hooks each backend fills in: column types and defaults, primary keys,
constraints, triggers, procedures and view rewrite rules.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from functools import partial
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from ..backends import Backend
from ..errors import SchemaGenerationError
from ..models import AttributeDescriptor, ClassDescriptor, SemanticType
from ..registry import dependency_order

logger = logging.getLogger(__name__)

# ============================================================================
# Output Model
# ============================================================================

SECTIONS = (
    "sequences",
    "tables",
    "indexes",
    "constraints",
    "procedures",
    "views",
    "insert",
    "update",
    "delete",
    "extras",
)

# Collection operations, in output order
COLLECTION_OPERATIONS = ("clear", "del", "add", "set")


@dataclass
class ClassSchema:
    """DDL statements for one class, grouped by section in output order"""

    class_key: str
    sections: Dict[str, List[str]] = field(default_factory=dict)

    def statements(self) -> List[str]:
        return [sql for section in SECTIONS for sql in self.sections.get(section, [])]

    def sql(self) -> str:
        return "\n".join(self.statements())


# ============================================================================
# Domain Checks
# ============================================================================

OPERATORS = ("==", "!=", "eq", "ne", "=~", "!~", ">", "<", ">=", "<=", "gt", "lt", "ge", "le")

REGEX_DOMAINS = {
    SemanticType.MEDIA_TYPE: r"^\w+/\w+$",
    SemanticType.ATTRIBUTE: r"^\w+\.\w+$",
    SemanticType.VERSION: r"^v?\d[\d._]+$",
}

# Semantic types whose values are validated by the database, in check order
DOMAIN_TYPES = (
    SemanticType.STATE,
    SemanticType.WHOLE,
    SemanticType.POSINT,
    SemanticType.BOOLEAN,
    SemanticType.OPERATOR,
    SemanticType.MEDIA_TYPE,
    SemanticType.ATTRIBUTE,
    SemanticType.VERSION,
    SemanticType.GTIN,
)


class SchemaGenerator:
    """
    Generates DDL for classes. Use a backend subclass, e.g. via ``schema_for("pg")``.

    Example:
        schema = schema_for("sqlite")
        ddl = schema.generate([one, two])
    """

    backend: Backend
    column_types: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def generate(self, classes: Iterable[ClassDescriptor]) -> str:
        """
        Generate the complete schema: setup code, then each class in dependency order.

        Raises:
            SchemaGenerationError: On the first class that cannot be generated
        """
        ordered = dependency_order(classes)
        parts = list(self.setup_code())
        for cls in ordered:
            sql = self.generate_class(cls).sql()
            if sql:
                parts.append(sql)
        logger.info("Generated %s schema for %d classes", self.backend.value, len(ordered))
        return "\n".join(parts)

    def generate_to_file(self, path: Union[str, Path], classes: Iterable[ClassDescriptor]) -> Path:
        """Write the complete schema to ``path``"""
        path = Path(path)
        path.write_text(self.generate(classes), encoding="utf-8")
        logger.info("Wrote schema to %s", path)
        return path

    def generate_class(self, cls: ClassDescriptor) -> ClassSchema:
        """Generate every section of DDL for one class"""
        logger.debug("Generating %s schema for class %s", self.backend.value, cls.key)
        return ClassSchema(
            cls.key,
            {
                "sequences": self.sequences_for_class(cls),
                "tables": self.tables_for_class(cls),
                "indexes": self.indexes_for_class(cls),
                "constraints": self.constraints_for_class(cls),
                "procedures": self.procedures_for_class(cls),
                "views": self.views_for_class(cls),
                "insert": [self.insert_for_class(cls)],
                "update": [self.update_for_class(cls)],
                "delete": [self.delete_for_class(cls)],
                "extras": self.extras_for_class(cls),
            },
        )

    def setup_code(self) -> List[str]:
        """Statements to run once, before any class DDL"""
        return []

    # ------------------------------------------------------------------
    # Backend strategy
    # ------------------------------------------------------------------

    def column_type(self, attr: AttributeDescriptor) -> str:
        """
        SQL type of an attribute's column.

        Raises:
            SchemaGenerationError: If the semantic type has no column mapping
        """
        if attr.references is not None:
            return "INTEGER"
        try:
            return self.column_types[attr.type]
        except KeyError:
            owner = attr.owner.key if attr.owner is not None else None
            raise SchemaGenerationError(f"No such data type: {attr.type}", owner) from None

    def column_default(self, attr: AttributeDescriptor) -> Optional[str]:
        """DEFAULT clause for an attribute's column, or None"""
        default = attr.default
        if default is None:
            return None
        if isinstance(default, bool):
            return f"DEFAULT {int(default)}"
        if isinstance(default, (int, float, Decimal)):
            return f"DEFAULT {default}"
        return "DEFAULT '%s'" % str(default).replace("'", "''")

    def default_expression(self, attr: AttributeDescriptor) -> Optional[str]:
        default = self.column_default(attr)
        return default[len("DEFAULT ") :] if default else None

    def pk_column(self, cls: ClassDescriptor) -> str:
        raise NotImplementedError

    def index_on(self, attr: AttributeDescriptor) -> str:
        return attr.column

    def regex_match(self, expression: str, pattern: str) -> str:
        raise NotImplementedError

    def gtin_check(self, expression: str) -> str:
        return f"isa_gtin({expression})"

    def create_trigger(
        self, name: str, event: str, table: str, when: str = "BEFORE", action: Optional[str] = None
    ) -> str:
        """
        A row-level trigger on ``table``.

        ``action`` is backend specific: the function to execute on PostgreSQL
        (defaulting to ``name``), the trigger body statements on SQLite.
        """
        raise NotImplementedError

    def domain_trigger(
        self, cls: ClassDescriptor, domain: SemanticType, predicate: Callable[[str], str]
    ) -> List[str]:
        """
        Triggers checking ``predicate`` on a class's columns of ``domain``.

        Backends with SQL domains enforce the check in the column type instead.
        """
        return []

    def domain_triggers(self, cls: ClassDescriptor) -> List[str]:
        triggers: List[str] = []
        for domain in DOMAIN_TYPES:
            triggers.extend(self.domain_trigger(cls, domain, partial(self.domain_check, domain)))
        return triggers

    def domain_check(self, domain: SemanticType, expression: str) -> str:
        """The predicate a valid value of ``domain`` satisfies"""
        if domain is SemanticType.STATE:
            return f"{expression} BETWEEN -1 AND 2"
        if domain is SemanticType.WHOLE:
            return f"{expression} >= 0"
        if domain is SemanticType.POSINT:
            return f"{expression} > 0"
        if domain is SemanticType.BOOLEAN:
            return f"{expression} IN (1, 0)"
        if domain is SemanticType.OPERATOR:
            return f"{expression} IN ({', '.join(repr(op) for op in OPERATORS)})"
        if domain in REGEX_DOMAINS:
            return self.regex_match(expression, REGEX_DOMAINS[domain])
        if domain is SemanticType.GTIN:
            return self.gtin_check(expression)
        raise SchemaGenerationError(f"No check for domain {domain.value}")

    # ------------------------------------------------------------------
    # Sequences and tables
    # ------------------------------------------------------------------

    def sequences_for_class(self, cls: ClassDescriptor) -> List[str]:
        return []

    def tables_for_class(self, cls: ClassDescriptor) -> List[str]:
        tables = [self.table_for_class(cls)]
        for attr in cls.collection_attributes:
            tables.append(self.collection_table(cls, attr))
        return tables

    def table_for_class(self, cls: ClassDescriptor) -> str:
        columns = [self.pk_column(cls)] + [self.column_definition(attr) for attr in cls.table_attributes]
        return f"CREATE TABLE {cls.table} (\n    " + ",\n    ".join(columns) + "\n);\n"

    def column_definition(self, attr: AttributeDescriptor) -> str:
        sql = f"{attr.column} {self.column_type(attr)}"
        if attr.required:
            sql += " NOT NULL"
        default = self.column_default(attr)
        if default:
            sql += f" {default}"
        return sql

    def collection_table(self, cls: ClassDescriptor, attr: AttributeDescriptor) -> str:
        has_key, had_key = cls.key, attr.name
        return (
            f"CREATE TABLE {attr.collection_table} (\n"
            f"    {has_key}_id INTEGER NOT NULL,\n"
            f"    {had_key}_id INTEGER NOT NULL,\n"
            f"    {had_key}_order SMALLINT NOT NULL,\n"
            f"    PRIMARY KEY ({has_key}_id, {had_key}_id)\n"
            ");\n"
        )

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def indexes_for_class(self, cls: ClassDescriptor) -> List[str]:
        indexes = [self.index_for_attr(cls, attr) for attr in cls.table_attributes if attr.index]
        for attr in cls.collection_attributes:
            indexes.append(
                f"CREATE UNIQUE INDEX idx_{attr.collection_view}_order "
                f"ON {attr.collection_table} ({cls.key}_id, {attr.order_column});\n"
            )
        return indexes

    def index_for_attr(self, cls: ClassDescriptor, attr: AttributeDescriptor) -> str:
        """
        CREATE INDEX for an attribute.

        ``unique`` attributes that are not ``distinct`` only need to be unique
        among live rows (state > -1). That is a partial unique index when the
        state column lives in the same table; otherwise the index is plain and
        unique_triggers() enforces uniqueness.
        """
        unique = attr.unique
        where = ""
        if attr.unique and not attr.distinct:
            state_class = self.state_class(cls)
            if state_class is cls:
                where = " WHERE state > -1"
            elif state_class is not None:
                unique = False
        return (
            f"CREATE {'UNIQUE ' if unique else ''}INDEX idx_{cls.key}_{attr.column} "
            f"ON {cls.table} ({self.index_on(attr)}){where};\n"
        )

    @staticmethod
    def state_class(cls: ClassDescriptor) -> Optional[ClassDescriptor]:
        """The class whose table holds the state column for ``cls``"""
        for candidate in [cls] + list(reversed(cls.parents)):
            if any(attr.name == "state" for attr in candidate.table_attributes):
                return candidate
        return None

    def unique_attributes(self, cls: ClassDescriptor) -> List[AttributeDescriptor]:
        """Attributes needing trigger-enforced uniqueness"""
        state_class = self.state_class(cls)
        if state_class is None or state_class is cls:
            return []
        return [attr for attr in cls.table_attributes if attr.unique and not attr.distinct]

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def constraints_for_class(self, cls: ClassDescriptor) -> List[str]:
        return []

    def once_triggers(self, cls: ClassDescriptor) -> List[str]:
        """Triggers that stop ``once`` columns changing after they are set"""
        triggers: List[str] = []
        for attr in cls.table_attributes:
            if not attr.once:
                continue
            col = attr.column
            condition = f"OLD.{col} IS NOT NULL AND (NEW.{col} IS NULL OR OLD.{col} <> NEW.{col})"
            triggers.extend(self.once_triggers_sql(cls.key, attr, cls.table, condition))
        return triggers

    def once_triggers_sql(
        self, key: str, attr: AttributeDescriptor, table: str, condition: str
    ) -> List[str]:
        raise NotImplementedError

    def procedures_for_class(self, cls: ClassDescriptor) -> List[str]:
        return []

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def views_for_class(self, cls: ClassDescriptor) -> List[str]:
        views = [self.view_for_class(cls)]
        for attr in cls.collection_attributes:
            views.append(
                f"CREATE VIEW {attr.collection_view} AS\n"
                f"  SELECT {cls.key}_id, {attr.name}_id, {attr.order_column}\n"
                f"  FROM   {attr.collection_table};\n"
            )
        return views

    def view_for_class(self, cls: ClassDescriptor) -> str:
        """
        CREATE VIEW joining a class's table to its ancestors' tables and to the
        views of the classes it references, which are flattened into
        ``{attribute}__{column}`` columns.
        """
        items, joins = self._view_layout(cls, frozenset())
        select = ", ".join(
            expression if expression.endswith(f".{name}") else f"{expression} AS {name}"
            for expression, name in items
        )
        return (
            f"CREATE VIEW {cls.view} AS\n"
            f"  SELECT {select}\n"
            f"  FROM   " + "\n         ".join([cls.root.table] + joins) + ";\n"
        )

    def view_columns(self, cls: ClassDescriptor) -> List[str]:
        """Column names of a class's view, in order"""
        return [name for _, name in self._view_layout(cls, frozenset())[0]]

    def _view_layout(
        self, cls: ClassDescriptor, seen: FrozenSet[str]
    ) -> Tuple[List[Tuple[str, str]], List[str]]:
        seen = seen | {cls.key}
        root = cls.root.table
        items = [(f"{root}.id", "id")]
        joins = [f"JOIN {impl.table} ON {root}.id = {impl.table}.id" for impl in cls.lineage[1:]]
        for impl in cls.lineage:
            for attr in impl.table_attributes:
                items.append((f"{impl.table}.{attr.column}", attr.view_column))
                ref = attr.references
                if ref is None or ref.key in seen:
                    continue
                alias = attr.name
                nested, _ = self._view_layout(ref, seen)
                items.extend((f"{alias}.{name}", f"{attr.name}__{name}") for _, name in nested[1:])
                join = "JOIN" if attr.required else "LEFT JOIN"
                target = ref.view if alias == ref.view else f"{ref.view} {alias}"
                joins.append(f"{join} {target} ON {impl.table}.{attr.column} = {alias}.id")
        return items, joins

    # ------------------------------------------------------------------
    # View rewrites
    # ------------------------------------------------------------------

    def insert_for_class(self, cls: ClassDescriptor) -> str:
        raise NotImplementedError

    def update_for_class(self, cls: ClassDescriptor) -> str:
        raise NotImplementedError

    def delete_for_class(self, cls: ClassDescriptor) -> str:
        raise NotImplementedError

    def extras_for_class(self, cls: ClassDescriptor) -> List[str]:
        return []

    def new_value(self, attr: AttributeDescriptor, source: Optional[AttributeDescriptor] = None) -> str:
        """
        Value expression for inserting ``attr`` from the NEW row.

        ``source`` is the attribute whose view column supplies the value, when
        it differs from ``attr`` (delegated attributes).
        """
        column = (source or attr).view_column
        default = self.default_expression(attr)
        if default is not None:
            return f"COALESCE(NEW.{column}, {default})"
        return f"NEW.{column}"

    @staticmethod
    def updatable(attributes: Iterable[AttributeDescriptor]) -> List[AttributeDescriptor]:
        return [attr for attr in attributes if not attr.once]


__all__ = [
    "SECTIONS",
    "COLLECTION_OPERATIONS",
    "ClassSchema",
    "OPERATORS",
    "REGEX_DOMAINS",
    "DOMAIN_TYPES",
    "SchemaGenerator",
]
