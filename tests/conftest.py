"""
Shared fixtures: a small set of related classes covering references,
inheritance, extension, mediation and collections.
"""

import sqlite3

import pytest

from objrel import AttributeDescriptor as Attr
from objrel import ClassDescriptor, ClassRegistry, SQLiteSchema, register_sqlite_functions


def build_classes():
    one = ClassDescriptor(
        "one",
        [
            Attr("name", "string", required=True, unique=True),
            Attr("description", "string"),
            Attr("flag", "boolean", required=True, default=True),
        ],
    )
    two = ClassDescriptor(
        "two",
        [
            Attr("name", "string", required=True),
            Attr("one", "one", required=True, references=one),
            Attr("age", "whole"),
            Attr("date", "datetime"),
        ],
    )
    extend = ClassDescriptor("extend", [Attr("note", "string")], extends=two)
    relation = ClassDescriptor("relation", [Attr("weight", "posint")], mediates=one)
    person = ClassDescriptor("person", [Attr("name", "string", required=True)])
    employee = ClassDescriptor("employee", [Attr("badge", "string", unique=True)], parent=person)
    basket = ClassDescriptor(
        "basket",
        [Attr("label", "string"), Attr("twos", "two", references=two, relationship="has_many")],
    )
    product = ClassDescriptor(
        "product",
        [
            Attr("gtin", "gtin"),
            Attr("media", "media_type"),
            Attr("revision", "version"),
            Attr("op", "operator"),
            Attr("path", "attribute"),
            Attr("stock", "posint"),
        ],
    )
    return {
        "one": one,
        "two": two,
        "extend": extend,
        "relation": relation,
        "person": person,
        "employee": employee,
        "basket": basket,
        "product": product,
    }


@pytest.fixture
def classes():
    """Fresh, unregistered sample classes keyed by class key."""
    return build_classes()


@pytest.fixture
def registry(classes):
    """A ClassRegistry holding every sample class."""
    return ClassRegistry(classes.values())


@pytest.fixture
def sqlite_db(classes):
    """An in-memory SQLite database with the sample schema installed."""
    conn = sqlite3.connect(":memory:", isolation_level=None)
    register_sqlite_functions(conn)
    conn.executescript(SQLiteSchema().generate(classes.values()))
    yield conn
    conn.close()
