"""
PostgreSQL schema synthesizer.

Classes are stored in tables populated from sequences and presented through
views. INSERT/UPDATE/DELETE against a view are rewritten into statements on
the underlying tables with rules. Domains enforce the semantic types, and
collections are managed through ``{view}_clear/_del/_add/_set`` functions.
"""

import logging
from typing import List, Optional

from ..backends import Backend
from ..models import CASE_FOLDED_TYPES, AttributeDescriptor, ClassDescriptor, SemanticType
from .base import COLLECTION_OPERATIONS, SchemaGenerator

logger = logging.getLogger(__name__)

# Domains created by setup_code(), with their base types
DOMAINS = [
    (SemanticType.STATE, "SMALLINT NOT NULL DEFAULT 1"),
    (SemanticType.WHOLE, "INTEGER"),
    (SemanticType.POSINT, "INTEGER"),
    (SemanticType.OPERATOR, "TEXT"),
    (SemanticType.MEDIA_TYPE, "TEXT"),
    (SemanticType.ATTRIBUTE, "TEXT"),
    (SemanticType.VERSION, "TEXT"),
]

UUID_V4_FUNCTION = """CREATE OR REPLACE FUNCTION UUID_V4() RETURNS UUID AS $$
    SELECT gen_random_uuid();
$$ LANGUAGE sql VOLATILE;
"""

ISA_GTIN_FUNCTION = """CREATE OR REPLACE FUNCTION isa_gtin(bigint) RETURNS BOOLEAN AS $$
    SELECT ( sum(dgt) % 10 ) = 0
    FROM (
        SELECT substring($1::text from idx for 1)::smallint AS dgt
        FROM   (SELECT generate_series(length($1::text), 1, -2) as idx) AS foo
        UNION ALL
        SELECT substring($1::text from idx for 1)::smallint * 3 AS dgt
        FROM   (SELECT generate_series(length($1::text) -1, 1, -2) as idx) AS foo
    ) AS bar;
$$ LANGUAGE sql STRICT IMMUTABLE;
"""

UUID_ONCE_FUNCTION = """CREATE OR REPLACE FUNCTION trig_uuid_once() RETURNS trigger AS $$
  BEGIN
    IF OLD.uuid <> NEW.uuid OR NEW.uuid IS NULL
        THEN RAISE EXCEPTION 'value of %.uuid cannot be changed', TG_TABLE_NAME;
    END IF;
    RETURN NEW;
  END;
$$ LANGUAGE plpgsql;
"""

COLL_ERROR_FUNCTION = """CREATE OR REPLACE FUNCTION coll_error(
    view_name  TEXT,
    query_type TEXT,
    obj_id     INTEGER,
    coll_id    INTEGER
) RETURNS VOID AS $$
BEGIN
    IF query_type = 'delete' THEN
        RAISE EXCEPTION
          'Please use %_del(%, {%}) or %_clear(%) to % from the % collection',
          view_name, obj_id, coll_id, view_name, obj_id, query_type, view_name;
    ELSE
        RAISE EXCEPTION
          'Please use %_add(%, {%}) or %_set(%, {%}) to % the % collection',
          view_name, obj_id, coll_id, view_name, obj_id, coll_id, query_type, view_name;
    END IF;
END;
$$ LANGUAGE plpgsql;
"""


class PgSchema(SchemaGenerator):
    """Generates PostgreSQL DDL"""

    backend = Backend.POSTGRES
    column_types = {
        SemanticType.ATTRIBUTE: "ATTRIBUTE",
        SemanticType.BINARY: "BYTEA",
        SemanticType.BOOLEAN: "BOOLEAN",
        SemanticType.DATETIME: "TIMESTAMP",
        SemanticType.DURATION: "INTERVAL",
        SemanticType.GTIN: "GTIN",
        SemanticType.INTEGER: "INTEGER",
        SemanticType.MEDIA_TYPE: "MEDIA_TYPE",
        SemanticType.OPERATOR: "OPERATOR",
        SemanticType.POSINT: "POSINT",
        SemanticType.STATE: "STATE",
        SemanticType.STRING: "TEXT",
        SemanticType.UUID: "UUID",
        SemanticType.VERSION: "VERSION",
        SemanticType.WHOLE: "WHOLE",
    }

    def setup_code(self) -> List[str]:
        """
        Domains for the semantic types plus the functions the schema calls:
        UUID_V4(), isa_gtin(), trig_uuid_once() and coll_error().
        """
        code = [UUID_V4_FUNCTION]
        code.extend(self.create_domain(domain, base) for domain, base in DOMAINS)
        code.append(ISA_GTIN_FUNCTION)
        code.append(self.create_domain(SemanticType.GTIN, "BIGINT"))
        code.append(UUID_ONCE_FUNCTION)
        code.append(COLL_ERROR_FUNCTION)
        return code

    def create_domain(self, domain: SemanticType, base: str) -> str:
        return (
            f"CREATE DOMAIN {domain.value} AS {base}\n"
            f"CONSTRAINT ck_{domain.value} CHECK (\n"
            f"   {self.domain_check(domain, 'VALUE')}\n"
            ");\n"
        )

    # ------------------------------------------------------------------
    # Backend strategy
    # ------------------------------------------------------------------

    def column_default(self, attr: AttributeDescriptor) -> Optional[str]:
        if attr.semantic_type is SemanticType.BOOLEAN and attr.default is not None:
            return "DEFAULT true" if attr.default else "DEFAULT false"
        if attr.semantic_type is SemanticType.UUID and attr.default is None:
            return "DEFAULT UUID_V4()"
        return super().column_default(attr)

    def pk_column(self, cls: ClassDescriptor) -> str:
        if cls.parent is not None:
            return "id INTEGER NOT NULL"
        return f"id INTEGER NOT NULL DEFAULT NEXTVAL('seq_{cls.key}')"

    def index_on(self, attr: AttributeDescriptor) -> str:
        if attr.semantic_type in CASE_FOLDED_TYPES:
            return f"LOWER({attr.column})"
        return attr.column

    def regex_match(self, expression: str, pattern: str) -> str:
        return f"{expression} ~ '{pattern}'"

    def create_trigger(
        self, name: str, event: str, table: str, when: str = "BEFORE", action: Optional[str] = None
    ) -> str:
        return (
            f"CREATE TRIGGER {name} {when} {event} ON {table}\n"
            f"FOR EACH ROW EXECUTE PROCEDURE {action or name}();\n"
        )

    # ------------------------------------------------------------------
    # Sequences, tables and constraints
    # ------------------------------------------------------------------

    def sequences_for_class(self, cls: ClassDescriptor) -> List[str]:
        if cls.parent is not None:
            return []
        return [f"CREATE SEQUENCE seq_{cls.key};\n"]

    def collection_table(self, cls: ClassDescriptor, attr: AttributeDescriptor) -> str:
        # The primary key is added with the other collection constraints
        return (
            f"CREATE TABLE {attr.collection_table} (\n"
            f"    {cls.key}_id INTEGER NOT NULL,\n"
            f"    {attr.name}_id INTEGER NOT NULL,\n"
            f"    {attr.order_column} SMALLINT NOT NULL\n"
            ");\n"
        )

    def constraints_for_class(self, cls: ClassDescriptor) -> List[str]:
        table = cls.table
        constraints = [f"ALTER TABLE {table}\n  ADD CONSTRAINT {cls.primary_key} PRIMARY KEY (id);\n"]
        if cls.parent is not None:
            constraints.append(
                f"ALTER TABLE {table}\n"
                f"  ADD CONSTRAINT {cls.foreign_key} FOREIGN KEY (id)\n"
                f"  REFERENCES {cls.parent.table}(id) ON DELETE CASCADE;\n"
            )
        for attr in cls.ref_attributes:
            constraints.append(
                f"ALTER TABLE {table}\n"
                f"  ADD CONSTRAINT {attr.foreign_key} FOREIGN KEY ({attr.column})\n"
                f"  REFERENCES {attr.references.table}(id) ON DELETE {attr.on_delete};\n"
            )
        constraints.extend(self.domain_triggers(cls))
        constraints.extend(self.once_triggers(cls))
        constraints.extend(self.unique_triggers(cls))
        for attr in cls.collection_attributes:
            constraints.extend(self.collection_constraints(cls, attr))
        return constraints

    def once_triggers_sql(
        self, key: str, attr: AttributeDescriptor, table: str, condition: str
    ) -> List[str]:
        col = attr.column
        if attr.name == "uuid" and attr.semantic_type is SemanticType.UUID:
            return [self.create_trigger(f"{key}_uuid_once", "UPDATE", table, "BEFORE", "trig_uuid_once")]
        function = f"{key}_{col}_once"
        return [
            f"CREATE FUNCTION {function}() RETURNS trigger AS $$\n"
            "  BEGIN\n"
            f"    IF {condition}\n"
            f"        THEN RAISE EXCEPTION 'value of {key}.{col} cannot be changed';\n"
            "    END IF;\n"
            "    RETURN NEW;\n"
            "  END;\n"
            "$$ LANGUAGE plpgsql;\n",
            self.create_trigger(function, "UPDATE", table),
        ]

    def unique_triggers(self, cls: ClassDescriptor) -> List[str]:
        """
        Triggers enforcing uniqueness among live objects for unique attributes
        stored in a different table than the ``state`` column.
        """
        state_table = self.state_class(cls).table if self.unique_attributes(cls) else None
        key, table = cls.key, cls.table
        triggers: List[str] = []
        for attr in self.unique_attributes(cls):
            col = attr.column
            if attr.semantic_type in CASE_FOLDED_TYPES:
                comp_col, new_col, old_col = f"LOWER({col})", f"LOWER(NEW.{col})", f"LOWER(OLD.{col})"
            else:
                comp_col, new_col, old_col = col, f"NEW.{col}", f"OLD.{col}"
            name = f"{key}_{col}_unique"
            violation = f"RAISE EXCEPTION 'duplicate key violates unique constraint \"ck_{name}\"';"
            lock_records = (
                "    /* Lock the relevant records in the parent and child tables. */\n"
                "    PERFORM true\n"
                f"    FROM    {table}, {state_table}\n"
                f"    WHERE   {table}.id = {state_table}.id AND {comp_col} = {new_col} FOR UPDATE;\n"
                "    IF (SELECT true\n"
                f"        FROM   {cls.view}\n"
                f"        WHERE  id <> NEW.id AND {comp_col} = {new_col} AND state > -1\n"
                "        LIMIT 1\n"
                "    ) THEN\n"
                f"        {violation}\n"
                "    END IF;\n"
            )
            triggers.append(
                f"CREATE FUNCTION cki_{name}() RETURNS trigger AS $$\n"
                "  BEGIN\n"
                f"{lock_records}"
                "    RETURN NEW;\n"
                "  END;\n"
                "$$ LANGUAGE plpgsql SECURITY DEFINER;\n"
            )
            triggers.append(self.create_trigger(f"cki_{name}", "INSERT", table))
            triggers.append(
                f"CREATE FUNCTION cku_{name}() RETURNS trigger AS $$\n"
                "  BEGIN\n"
                f"    IF ({new_col} <> {old_col}) THEN\n"
                f"{lock_records}"
                "    END IF;\n"
                "    RETURN NEW;\n"
                "  END;\n"
                "$$ LANGUAGE plpgsql SECURITY DEFINER;\n"
            )
            triggers.append(self.create_trigger(f"cku_{name}", "UPDATE", table))
            current = f"(SELECT {comp_col} FROM {table} WHERE id = NEW.id)"
            triggers.append(
                f"CREATE FUNCTION ckp_{name}() RETURNS trigger AS $$\n"
                "  BEGIN\n"
                "    IF (NEW.state > -1 AND OLD.state < 0\n"
                f"        AND (SELECT true FROM {table} WHERE id = NEW.id)\n"
                "       ) THEN\n"
                "        /* Lock the relevant records in the parent and child tables. */\n"
                "        PERFORM true\n"
                f"        FROM    {table}, {state_table}\n"
                f"        WHERE   {table}.id = {state_table}.id\n"
                f"                AND {comp_col} = {current}\n"
                "        FOR UPDATE;\n"
                "\n"
                f"        IF (SELECT COUNT({comp_col})\n"
                f"            FROM   {table}, {state_table}\n"
                f"            WHERE  {table}.id = {state_table}.id AND {state_table}.state > -1\n"
                f"                   AND {comp_col} = {current}\n"
                "        ) > 0 THEN\n"
                f"            {violation}\n"
                "        END IF;\n"
                "    END IF;\n"
                "    RETURN NEW;\n"
                "  END;\n"
                "$$ LANGUAGE plpgsql SECURITY DEFINER;\n"
            )
            triggers.append(self.create_trigger(f"ckp_{name}", "UPDATE", state_table))
        return triggers

    def collection_constraints(self, cls: ClassDescriptor, attr: AttributeDescriptor) -> List[str]:
        table, view = attr.collection_table, attr.collection_view
        main_key, coll_key = cls.key, attr.name
        collected = attr.references
        return [
            f"ALTER TABLE {table}\n"
            f"  ADD CONSTRAINT pk_{view} PRIMARY KEY ({main_key}_id, {coll_key}_id);\n",
            f"ALTER TABLE {table}\n"
            f"  ADD CONSTRAINT fk_{view}_{main_key}_id FOREIGN KEY ({main_key}_id)\n"
            f"  REFERENCES {cls.table}(id) ON DELETE CASCADE;\n",
            f"ALTER TABLE {table}\n"
            f"  ADD CONSTRAINT fk_{view}_{coll_key}_id FOREIGN KEY ({coll_key}_id)\n"
            f"  REFERENCES {collected.table}(id) ON DELETE CASCADE;\n",
            # Collected objects belong to the collecting object alone
            f"CREATE OR REPLACE FUNCTION {view}_cascade() RETURNS trigger AS $$\n"
            "  BEGIN\n"
            f"    DELETE FROM {collected.table} WHERE id = OLD.{coll_key}_id;\n"
            "    RETURN OLD;\n"
            "  END;\n"
            "$$ LANGUAGE plpgsql;\n",
            self.create_trigger(f"{view}_cascade", "DELETE", table, "AFTER"),
        ]

    # ------------------------------------------------------------------
    # Collection procedures
    # ------------------------------------------------------------------

    def procedures_for_class(self, cls: ClassDescriptor) -> List[str]:
        procedures: List[str] = []
        for attr in cls.collection_attributes:
            procedures.extend(getattr(self, f"_coll_{op}_sql")(cls, attr) for op in COLLECTION_OPERATIONS)
        return procedures

    @staticmethod
    def _coll_clear_sql(cls: ClassDescriptor, attr: AttributeDescriptor) -> str:
        return (
            f"CREATE OR REPLACE FUNCTION {attr.collection_view}_clear (\n"
            "    obj_ident integer\n"
            ") RETURNS VOID AS $$\n"
            "BEGIN\n"
            f"    DELETE FROM {attr.collection_table} WHERE {cls.key}_id = obj_ident;\n"
            "END;\n"
            "$$ LANGUAGE plpgsql SECURITY DEFINER;\n"
        )

    @staticmethod
    def _coll_del_sql(cls: ClassDescriptor, attr: AttributeDescriptor) -> str:
        return (
            f"CREATE OR REPLACE FUNCTION {attr.collection_view}_del (\n"
            "    obj_ident integer,\n"
            "    coll_ids  integer[]\n"
            ") RETURNS VOID AS $$\n"
            "BEGIN\n"
            f"    DELETE FROM {attr.collection_table}\n"
            f"    WHERE  {cls.key}_id = obj_ident\n"
            f"           AND {attr.name}_id = ANY(coll_ids);\n"
            "END;\n"
            "$$ LANGUAGE plpgsql SECURITY DEFINER;\n"
        )

    @staticmethod
    def _coll_add_sql(cls: ClassDescriptor, attr: AttributeDescriptor) -> str:
        table, main_key, coll_key, order = attr.collection_table, cls.key, attr.name, attr.order_column
        return (
            f"CREATE OR REPLACE FUNCTION {attr.collection_view}_add (\n"
            "    obj_ident integer,\n"
            "    coll_ids  integer[]\n"
            ") RETURNS VOID AS $$\n"
            "DECLARE\n"
            f"  -- Current max({order}).\n"
            "  last_ord smallint;\n"
            "BEGIN\n"
            "    -- Lock the containing object to serialize changes to the collection.\n"
            f"    PERFORM true FROM {cls.table} WHERE id = obj_ident FOR UPDATE;\n"
            "\n"
            f"    SELECT INTO last_ord COALESCE(MAX({order}), 0)\n"
            f"    FROM   {table}\n"
            f"    WHERE  {main_key}_id = obj_ident;\n"
            "\n"
            "    -- Append the new IDs. Existing members keep their position.\n"
            f"    INSERT INTO {table} ({main_key}_id, {coll_key}_id, {order})\n"
            "    SELECT obj_ident, coll_ids[gs.ser], gs.ser + last_ord\n"
            "    FROM   generate_series(1, array_upper(coll_ids, 1)) AS gs(ser)\n"
            "    WHERE  coll_ids[gs.ser] NOT IN (\n"
            f"        SELECT {coll_key}_id FROM {table} ect2\n"
            f"        WHERE  {main_key}_id = obj_ident\n"
            "    );\n"
            "END;\n"
            "$$ LANGUAGE plpgsql SECURITY DEFINER;\n"
        )

    @staticmethod
    def _coll_set_sql(cls: ClassDescriptor, attr: AttributeDescriptor) -> str:
        table, main_key, coll_key, order = attr.collection_table, cls.key, attr.name, attr.order_column
        return (
            f"CREATE OR REPLACE FUNCTION {attr.collection_view}_set (\n"
            "    obj_ident integer,\n"
            "    coll_ids  integer[]\n"
            ") RETURNS VOID AS $$\n"
            "BEGIN\n"
            "    -- Lock the containing object to serialize changes to the collection.\n"
            f"    PERFORM true FROM {cls.table} WHERE id = obj_ident FOR UPDATE;\n"
            "\n"
            f"    -- Negate {order} so renumbering cannot collide with the order index.\n"
            f"    UPDATE {table}\n"
            f"    SET    {order} = -{order}\n"
            f"    WHERE  {main_key}_id = obj_ident;\n"
            "\n"
            "    IF FOUND IS false THEN\n"
            f"        INSERT INTO {table} ({main_key}_id, {coll_key}_id, {order})\n"
            "        SELECT obj_ident, coll_ids[gs.ser], gs.ser\n"
            "        FROM   generate_series(1, array_upper(coll_ids, 1)) AS gs(ser)\n"
            "        WHERE  coll_ids[gs.ser] IS NOT NULL;\n"
            "    ELSE\n"
            f"        UPDATE {table} SET {order} = ser\n"
            "        FROM (\n"
            f"            SELECT gs.ser, coll_ids[gs.ser] as move_{coll_key}\n"
            "            FROM   generate_series(1, array_upper(coll_ids, 1)) AS gs(ser)\n"
            "            WHERE  coll_ids[gs.ser] IS NOT NULL\n"
            "        ) AS expansion\n"
            f"        WHERE move_{coll_key} = {coll_key}_id\n"
            f"              AND {main_key}_id = obj_ident;\n"
            "\n"
            f"        INSERT INTO {table} ({main_key}_id, {coll_key}_id, {order})\n"
            "        SELECT obj_ident, coll_ids[gs.ser], gs.ser\n"
            "        FROM   generate_series(1, array_upper(coll_ids, 1)) AS gs(ser)\n"
            "        WHERE  coll_ids[gs.ser] NOT IN (\n"
            f"            SELECT {coll_key}_id FROM {table} ect2\n"
            f"            WHERE  {main_key}_id = obj_ident\n"
            "        );\n"
            "\n"
            "        -- Members left negative were not in the new list.\n"
            f"        DELETE FROM {table}\n"
            f"        WHERE  {main_key}_id = obj_ident AND {order} < 0;\n"
            "    END IF;\n"
            "END;\n"
            "$$ LANGUAGE plpgsql SECURITY DEFINER;\n"
        )

    # ------------------------------------------------------------------
    # View rules
    # ------------------------------------------------------------------

    def insert_for_class(self, cls: ClassDescriptor) -> str:
        """
        INSERT rule for a class's view. Classes that extend or mediate another
        class get a conditional pair of rules: one creating the extended object
        and one attaching to an existing one (``NEW.{link}__id`` set).
        """
        if cls.link is not None:
            return self._extend_for_class(cls, cls.link)
        sql = f"CREATE RULE insert_{cls.key} AS\nON INSERT TO {cls.view} DO INSTEAD ("
        sql += "".join(self._lineage_inserts(cls.lineage, cls.root.key))
        return sql + ");\n"

    def _lineage_inserts(self, lineage: List[ClassDescriptor], seq_key: str) -> List[str]:
        func = "NEXTVAL"
        inserts = []
        for impl in lineage:
            inserts.append(self._insert_into_table(impl, f"{func}('seq_{seq_key}')"))
            func = "CURRVAL"
        return inserts

    def _insert_into_table(
        self, impl: ClassDescriptor, seq: str, link: Optional[AttributeDescriptor] = None, link_value: str = ""
    ) -> str:
        attrs = impl.table_attributes
        values = [link_value if attr is link else self.new_value(attr) for attr in attrs]
        return (
            f"\n  INSERT INTO {impl.table} ("
            + ", ".join(["id"] + [attr.column for attr in attrs])
            + ")\n  VALUES ("
            + ", ".join([seq] + values)
            + ");\n"
        )

    def _extend_for_class(self, cls: ClassDescriptor, extends: ClassDescriptor) -> str:
        key, view = cls.key, cls.view
        link = cls.link_attribute
        ext_attrs = cls.delegated_attributes(extends)
        seq_key = cls.root.key
        parents = cls.lineage[:-1]
        seq = f"{'CURRVAL' if parents else 'NEXTVAL'}('seq_{seq_key}')"

        sql = f"CREATE RULE insert_{key} AS\nON INSERT TO {view} WHERE NEW.{link.view_column} IS NULL DO INSTEAD ("
        sql += "".join(self._lineage_inserts(parents, seq_key))
        sql += self._extended_insert(extends, ext_attrs)
        sql += self._insert_into_table(cls, seq, link, f"CURRVAL('seq_{extends.root.key}')")
        sql += ");\n"

        sql += (
            f"\nCREATE RULE extend_{key} AS\n"
            f"ON INSERT TO {view} WHERE NEW.{link.view_column} IS NOT NULL DO INSTEAD ("
        )
        sql += "".join(self._lineage_inserts(parents, seq_key))
        sql += self._extended_insert_up(extends, link, ext_attrs)
        sql += self._insert_into_table(cls, seq)
        sql += ");\n"

        # Pg requires an unconditional DO INSTEAD rule on views
        sql += f"\nCREATE RULE insert_{key}_dummy AS\nON INSERT TO {view} DO INSTEAD NOTHING;\n"
        return sql

    def _extended_insert(self, extends: ClassDescriptor, ext_attrs: List[AttributeDescriptor]) -> str:
        return (
            f"\n  INSERT INTO {extends.view} ("
            + ", ".join(attr.acts_as.view_column for attr in ext_attrs)
            + ")\n  VALUES ("
            + ", ".join(self.new_value(attr) for attr in ext_attrs)
            + ");\n"
        )

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
            + f"\n  WHERE  id = NEW.{link.view_column};\n"
        )

    def update_for_class(self, cls: ClassDescriptor) -> str:
        statements = []
        for impl in cls.lineage:
            assignments = [
                f"{attr.column} = NEW.{attr.view_column}" for attr in self.updatable(impl.table_attributes)
            ]
            if assignments:
                statements.append(
                    f"\n  UPDATE {impl.table}\n  SET    " + ", ".join(assignments) + "\n  WHERE  id = OLD.id;\n"
                )
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
        if not statements:
            return f"CREATE RULE update_{cls.key} AS\nON UPDATE TO {cls.view} DO INSTEAD NOTHING;\n"
        return f"CREATE RULE update_{cls.key} AS\nON UPDATE TO {cls.view} DO INSTEAD (" + "".join(statements) + ");\n"

    def delete_for_class(self, cls: ClassDescriptor) -> str:
        # Ancestor rows are left in place
        return (
            f"CREATE RULE delete_{cls.key} AS\n"
            f"ON DELETE TO {cls.view} DO INSTEAD (\n"
            f"  DELETE FROM {cls.table}\n"
            "  WHERE  id = OLD.id;\n);\n"
        )

    def extras_for_class(self, cls: ClassDescriptor) -> List[str]:
        """Rules pointing direct writes on collection views at the collection functions"""
        rules = []
        for attr in cls.collection_attributes:
            view = attr.collection_view
            for event in ("insert", "update", "delete"):
                adverb = " into" if event == "insert" else ""
                row = "OLD" if event == "delete" else "NEW"
                rules.append(
                    f"CREATE OR REPLACE RULE {view}_{event} AS\n"
                    f"ON {event.upper()} TO {view} DO INSTEAD (\n"
                    f"    SELECT coll_error('{view}', '{event}{adverb}', "
                    f"{row}.{cls.key}_id, {row}.{attr.name}_id);\n"
                    ");\n"
                )
        return rules


__all__ = ["PgSchema"]
