"""
SQLite schema synthesizer.

SQLite has no domains, rules or stored procedures, so semantic types and
foreign keys are enforced with triggers, views are made writable with INSTEAD
OF triggers, and collection operations are returned as statement lists for
the caller to run in a transaction. Connections must have the functions from
objrel.functions registered.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..backends import Backend
from ..models import AttributeDescriptor, ClassDescriptor, SemanticType
from .base import SchemaGenerator

logger = logging.getLogger(__name__)


class SQLiteSchema(SchemaGenerator):
    """Generates SQLite DDL"""

    backend = Backend.SQLITE
    column_types = {
        SemanticType.ATTRIBUTE: "TEXT",
        SemanticType.BINARY: "BLOB",
        SemanticType.BOOLEAN: "SMALLINT",
        SemanticType.DATETIME: "DATETIME",
        SemanticType.DURATION: "TEXT",
        SemanticType.GTIN: "INTEGER",
        SemanticType.INTEGER: "INTEGER",
        SemanticType.MEDIA_TYPE: "TEXT",
        SemanticType.OPERATOR: "TEXT",
        SemanticType.POSINT: "INTEGER",
        SemanticType.STATE: "INTEGER",
        SemanticType.STRING: "TEXT COLLATE nocase",
        SemanticType.UUID: "TEXT",
        SemanticType.VERSION: "TEXT COLLATE nocase",
        SemanticType.WHOLE: "INTEGER",
    }

    # ------------------------------------------------------------------
    # Backend strategy
    # ------------------------------------------------------------------

    def pk_column(self, cls: ClassDescriptor) -> str:
        if cls.parent is not None:
            return "id INTEGER NOT NULL PRIMARY KEY"
        return "id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT"

    def default_expression(self, attr: AttributeDescriptor) -> Optional[str]:
        if attr.semantic_type is SemanticType.UUID and attr.default is None:
            return "UUID_V4()"
        return super().default_expression(attr)

    def regex_match(self, expression: str, pattern: str) -> str:
        return f"{expression} REGEXP '{pattern}'"

    def gtin_check(self, expression: str) -> str:
        return f"isa_gtin(CAST({expression} AS TEXT))"

    def create_trigger(
        self, name: str, event: str, table: str, when: str = "BEFORE", action: Optional[str] = None
    ) -> str:
        return f"CREATE TRIGGER {name}\n{when} {event} ON {table}\nFOR EACH ROW BEGIN\n{action}END;\n"

    def raise_trigger(self, name: str, event: str, table: str, message: str, where: str) -> str:
        """A BEFORE trigger aborting the statement with ``message`` when ``where`` holds"""
        return self.create_trigger(
            name, event, table, action=f"    SELECT RAISE(ABORT, '{message}')\n    WHERE  {where};\n"
        )

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def constraints_for_class(self, cls: ClassDescriptor) -> List[str]:
        constraints: List[str] = []
        constraints.extend(self.domain_triggers(cls))
        constraints.extend(self.once_triggers(cls))
        constraints.extend(self.unique_triggers(cls))
        if cls.parent is not None:
            # Trigger names are schema-wide, so qualify the parent key with the child
            fk = f"pfk_{cls.key}_{cls.parent.key}_id"
            constraints.extend(self.fk_triggers(fk, cls.parent.table, "id", cls.table, "", cascade=True))
        for attr in cls.ref_attributes:
            null = "" if attr.required else f"NEW.{attr.column} IS NOT NULL AND "
            constraints.extend(
                self.fk_triggers(
                    attr.foreign_key,
                    attr.references.table,
                    attr.column,
                    cls.table,
                    null,
                    cascade=attr.on_delete == "CASCADE",
                )
            )
        for attr in cls.collection_attributes:
            constraints.extend(self.collection_constraints(cls, attr))
        return constraints

    def domain_trigger(
        self, cls: ClassDescriptor, domain: SemanticType, predicate: Callable[[str], str]
    ) -> List[str]:
        """Insert and update triggers validating columns of a semantic type"""
        triggers = []
        message = f'value for domain {domain.value} violates check constraint "ck_{domain.value}"'
        for attr in cls.table_attributes:
            if attr.semantic_type is not domain:
                continue
            col = attr.column
            # Optional columns may be NULL
            null = "" if attr.required else f"NEW.{col} IS NOT NULL AND "
            where = f"{null}NOT ({predicate(f'NEW.{col}')})"
            triggers.append(
                self.raise_trigger(f"cki_{cls.key}_{col}", "INSERT", cls.table, message, where)
            )
            triggers.append(
                self.raise_trigger(f"cku_{cls.key}_{col}", f"UPDATE OF {col}", cls.table, message, where)
            )
        return triggers

    def once_triggers_sql(
        self, key: str, attr: AttributeDescriptor, table: str, condition: str
    ) -> List[str]:
        message = f"value of {key}.{attr.column} cannot be changed"
        return [self.raise_trigger(f"ck_{key}_{attr.column}_once", "UPDATE", table, message, condition)]

    def unique_triggers(self, cls: ClassDescriptor) -> List[str]:
        """
        Triggers enforcing uniqueness among live objects for unique attributes
        stored in a different table than the ``state`` column.
        """
        triggers: List[str] = []
        table = cls.table
        for attr in self.unique_attributes(cls):
            state_table = self.state_class(cls).table
            col = attr.column
            name = f"{cls.key}_{col}_unique"
            message = f"column {col} is not unique"
            triggers.append(
                self.raise_trigger(
                    f"cki_{name}",
                    "INSERT",
                    table,
                    message,
                    "(\n"
                    "               SELECT 1\n"
                    f"               FROM   {state_table}, {table}\n"
                    f"               WHERE  {state_table}.id = {table}.id\n"
                    f"                      AND {state_table}.state > -1\n"
                    f"                      AND {table}.{col} = NEW.{col}\n"
                    "               LIMIT  1\n"
                    "           )",
                )
            )
            triggers.append(
                self.raise_trigger(
                    f"cku_{name}",
                    "UPDATE",
                    table,
                    message,
                    f"NEW.{col} <> OLD.{col} AND (\n"
                    "               SELECT 1\n"
                    f"               FROM   {state_table}, {table}\n"
                    f"               WHERE  {state_table}.id = {table}.id\n"
                    f"                      AND {state_table}.id <> NEW.id\n"
                    f"                      AND {state_table}.state > -1\n"
                    f"                      AND {table}.{col} = NEW.{col}\n"
                    "               LIMIT  1\n"
                    "           )",
                )
            )
            triggers.append(
                self.raise_trigger(
                    f"ckp_{name}",
                    "UPDATE",
                    state_table,
                    message,
                    "NEW.state > -1 AND OLD.state < 0\n"
                    f"           AND (SELECT 1 FROM {table} WHERE id = NEW.id)\n"
                    "           AND (\n"
                    "               SELECT 1\n"
                    f"               FROM   {state_table}, {table}\n"
                    f"               WHERE  {state_table}.id = {table}.id\n"
                    f"                      AND {state_table}.id <> NEW.id\n"
                    f"                      AND {state_table}.state > -1\n"
                    f"                      AND {table}.{col} = (\n"
                    f"                          SELECT {col} FROM {table} WHERE id = NEW.id\n"
                    "                      )\n"
                    "               LIMIT  1\n"
                    "           )",
                )
            )
        return triggers

    def fk_triggers(
        self, fk: str, fk_table: str, col: str, table: str, null: str, cascade: bool
    ) -> List[str]:
        """
        Triggers emulating a foreign key from ``table.col`` to ``fk_table.id``.

        Each foreign key gets insert and update checks plus either a cascading
        or a restricting delete trigger, named after ``fk`` with ``i``, ``u``
        or ``d`` inserted after its prefix.
        """
        prefix, rest = fk.split("_", 1)
        fki, fku, fkd = (f"{prefix}{kind}_{rest}" for kind in "iud")
        missing = f"{null}(SELECT id FROM {fk_table} WHERE id = NEW.{col}) IS NULL"
        triggers = [
            self.raise_trigger(
                fki,
                "INSERT",
                table,
                f'insert on table "{table}" violates foreign key constraint "{fk}"',
                missing,
            ),
            self.raise_trigger(
                fku,
                "UPDATE",
                table,
                f'update on table "{table}" violates foreign key constraint "{fk}"',
                missing,
            ),
        ]
        if cascade:
            triggers.append(
                self.create_trigger(
                    fkd, "DELETE", fk_table, "AFTER", f"  DELETE FROM {table} WHERE {col} = OLD.id;\n"
                )
            )
        else:
            triggers.append(
                self.raise_trigger(
                    fkd,
                    "DELETE",
                    fk_table,
                    f'delete on table "{fk_table}" violates foreign key constraint "{fk}"',
                    f"(SELECT {col} FROM {table} WHERE {col} = OLD.id) IS NOT NULL",
                )
            )
        return triggers

    def collection_constraints(self, cls: ClassDescriptor, attr: AttributeDescriptor) -> List[str]:
        table, view = attr.collection_table, attr.collection_view
        main_key, coll_key = cls.key, attr.name
        collected = attr.references
        constraints = self.fk_triggers(f"fk_{view}_{main_key}_id", cls.table, f"{main_key}_id", table, "", True)
        constraints.extend(
            self.fk_triggers(f"fk_{view}_{coll_key}_id", collected.table, f"{coll_key}_id", table, "", True)
        )
        # Collected objects belong to the collecting object alone
        constraints.append(
            self.create_trigger(
                f"{view}_cascade",
                "DELETE",
                table,
                "AFTER",
                f"    DELETE FROM {collected.table} WHERE id = OLD.{coll_key}_id;\n",
            )
        )
        return constraints

    # ------------------------------------------------------------------
    # Collection statements
    # ------------------------------------------------------------------

    def collection_statements(self, cls: ClassDescriptor, attr: AttributeDescriptor) -> Dict[str, List[str]]:
        """
        Statements implementing the collection operations of ``attr``.

        Each operation maps to statements taking the named parameters
        ``:obj_ident`` (the collecting object's id) and, except for ``clear``,
        ``:coll_ids`` (a JSON array of member ids, in order). Run them in order
        inside ``BEGIN IMMEDIATE`` so concurrent writers are serialized.

        Example:
            ops = SQLiteSchema().collection_statements(one, one.attribute("twos"))
            conn.execute("BEGIN IMMEDIATE")
            for sql in ops["set"]:
                conn.execute(sql, {"obj_ident": 1, "coll_ids": json.dumps([3, 2])})
            conn.execute("COMMIT")
        """
        table, main, coll, order = attr.collection_table, f"{cls.key}_id", f"{attr.name}_id", attr.order_column
        members = f"SELECT {coll} FROM {table} WHERE {main} = :obj_ident"
        insert_new = (
            f"INSERT INTO {table} ({main}, {coll}, {order})\n"
            "SELECT :obj_ident, ids.value, ids.key + 1{offset}\n"
            "FROM   json_each(:coll_ids) AS ids\n"
            f"WHERE  ids.value IS NOT NULL AND ids.value NOT IN ({members})"
        )
        return {
            "clear": [f"DELETE FROM {table} WHERE {main} = :obj_ident"],
            "del": [
                f"DELETE FROM {table}\n"
                f"WHERE  {main} = :obj_ident\n"
                f"       AND {coll} IN (SELECT value FROM json_each(:coll_ids))"
            ],
            "add": [
                insert_new.format(
                    offset=f" + (SELECT COALESCE(MAX({order}), 0) FROM {table} WHERE {main} = :obj_ident)"
                )
            ],
            "set": [
                # Negate the order first so renumbering cannot collide with the order index
                f"UPDATE {table} SET {order} = -{order} WHERE {main} = :obj_ident",
                f"UPDATE {table}\n"
                f"SET    {order} = (\n"
                f"    SELECT MIN(ids.key) + 1 FROM json_each(:coll_ids) AS ids WHERE ids.value = {table}.{coll}\n"
                ")\n"
                f"WHERE  {main} = :obj_ident\n"
                f"       AND {coll} IN (SELECT value FROM json_each(:coll_ids))",
                insert_new.format(offset=""),
                f"DELETE FROM {table} WHERE {main} = :obj_ident AND {order} < 0",
            ],
        }

    # ------------------------------------------------------------------
    # View triggers
    # ------------------------------------------------------------------

    def insert_for_class(self, cls: ClassDescriptor) -> str:
        """
        INSTEAD OF INSERT trigger for a class's view.

        For classes that extend or mediate another class, the extended object
        is created when ``NEW.{link}__id`` is NULL and updated otherwise, before
        the class's own rows are inserted.
        """
        sql = f"CREATE TRIGGER insert_{cls.key}\nINSTEAD OF INSERT ON {cls.view}\nFOR EACH ROW BEGIN"
        link, link_value = cls.link_attribute, None
        if link is not None:
            ext_attrs = cls.delegated_attributes(cls.link)
            sql += self._extended_insert(cls.link, link, ext_attrs)
            sql += self._extended_insert_up(cls.link, link, ext_attrs)
            if cls.parent is None:
                link_value = f"COALESCE(NEW.{link.view_column}, last_insert_rowid())"
            else:
                # The ancestors' inserts replace last_insert_rowid()
                link_value = f"COALESCE(NEW.{link.view_column}, (SELECT MAX(id) FROM {cls.link.root.table}))"
        pk = ""
        for impl in cls.lineage:
            sql += self._insert_into_table(impl, pk, link, link_value)
            pk = "last_insert_rowid()"
        return sql + "END;\n"

    def _insert_into_table(
        self,
        impl: ClassDescriptor,
        pk: str,
        link: Optional[AttributeDescriptor] = None,
        link_value: Optional[str] = None,
    ) -> str:
        attrs = impl.table_attributes
        columns = (["id"] if pk else []) + [attr.column for attr in attrs]
        values = ([pk] if pk else []) + [
            link_value if attr is link and link_value else self.new_value(attr) for attr in attrs
        ]
        if not columns:
            return f"\n  INSERT INTO {impl.table} DEFAULT VALUES;\n"
        return f"\n  INSERT INTO {impl.table} ({', '.join(columns)})\n  VALUES ({', '.join(values)});\n"

    def _extended_insert(
        self, extends: ClassDescriptor, link: AttributeDescriptor, ext_attrs: List[AttributeDescriptor]
    ) -> str:
        # Insert into the extended tables directly: last_insert_rowid() does
        # not see rows inserted by the extended view's own trigger.
        delegates = {attr.acts_as: attr for attr in ext_attrs}
        sql = ""
        pk = ""
        for impl in extends.lineage:
            pairs = [(target, delegates[target]) for target in impl.table_attributes if target in delegates]
            columns = (["id"] if pk else []) + [target.column for target, _ in pairs]
            values = ([pk] if pk else []) + [self.new_value(target, delegate) for target, delegate in pairs]
            if not columns:
                columns, values = ["id"], ["NULL"]
            sql += (
                f"\n  INSERT INTO {impl.table} ({', '.join(columns)})\n"
                f"  SELECT {', '.join(values)}\n"
                f"  WHERE  NEW.{link.view_column} IS NULL;\n"
            )
            pk = "last_insert_rowid()"
        return sql

    def _extended_insert_up(
        self, extends: ClassDescriptor, link: AttributeDescriptor, ext_attrs: List[AttributeDescriptor]
    ) -> str:
        assignments = [
            f"{attr.acts_as.view_column} = COALESCE(NEW.{attr.view_column}, {attr.acts_as.view_column})"
            for attr in self.updatable(ext_attrs)
        ]
        if not assignments:
            return ""
        return (
            f"\n  UPDATE {extends.view}\n  SET    "
            + ", ".join(assignments)
            + f"\n  WHERE  NEW.{link.view_column} IS NOT NULL AND id = NEW.{link.view_column};\n"
        )

    def update_for_class(self, cls: ClassDescriptor) -> str:
        statements = []
        if cls.link is not None:
            assignments = [
                f"{attr.acts_as.view_column} = NEW.{attr.view_column}"
                for attr in self.updatable(cls.delegated_attributes(cls.link))
            ]
            if assignments:
                statements.append(
                    f"\n  UPDATE {cls.link.view}\n  SET    "
                    + ", ".join(assignments)
                    + f"\n  WHERE  id = OLD.{cls.link_attribute.view_column};\n"
                )
        for impl in cls.lineage:
            assignments = [
                f"{attr.column} = NEW.{attr.view_column}" for attr in self.updatable(impl.table_attributes)
            ]
            if assignments:
                statements.append(
                    f"\n  UPDATE {impl.table}\n  SET    " + ", ".join(assignments) + "\n  WHERE  id = OLD.id;\n"
                )
        if not statements:
            statements.append("\n  SELECT NULL;\n")
        return (
            f"CREATE TRIGGER update_{cls.key}\nINSTEAD OF UPDATE ON {cls.view}\nFOR EACH ROW BEGIN"
            + "".join(statements)
            + "END;\n"
        )

    def delete_for_class(self, cls: ClassDescriptor) -> str:
        # Ancestor rows are left in place
        return (
            f"CREATE TRIGGER delete_{cls.key}\n"
            f"INSTEAD OF DELETE ON {cls.view}\n"
            "FOR EACH ROW BEGIN\n"
            f"  DELETE FROM {cls.table}\n"
            "  WHERE  id = OLD.id;\n"
            "END;\n"
        )

    def extras_for_class(self, cls: ClassDescriptor) -> List[str]:
        """Triggers pointing direct writes on collection views at the collection statements"""
        triggers = []
        for attr in cls.collection_attributes:
            view = attr.collection_view
            args = f"{cls.key}_id, {attr.name}_ids"
            for event, adverb in (("insert", " into"), ("update", ""), ("delete", " from")):
                if event == "delete":
                    funcs = f"{view}_del({args}) or {view}_clear({cls.key}_id)"
                else:
                    funcs = f"{view}_add({args}) or {view}_set({args})"
                triggers.append(
                    f"CREATE TRIGGER {view}_{event}\n"
                    f"INSTEAD OF {event.upper()} ON {view}\n"
                    "BEGIN\n"
                    f"    SELECT RAISE(ABORT, 'Please use {funcs} to {event}{adverb} the {view} collection');\n"
                    "END;\n"
                )
        return triggers


__all__ = ["SQLiteSchema"]
