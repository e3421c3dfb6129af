"""
Tests for class descriptors and the metadata registry.
"""

import pytest

from objrel import AttributeDescriptor as Attr
from objrel import (
    ClassDescriptor,
    ClassRegistry,
    InvalidClassError,
    Relationship,
    SchemaGenerationError,
    UnknownAttributeError,
    UnknownClassError,
    dependency_order,
)


class TestClassDescriptor:
    """Tests for class and attribute descriptors."""

    def test_identity_attributes(self, classes):
        """Test that root classes get uuid and state, children do not."""
        assert [attr.name for attr in classes["person"].own_attributes] == ["uuid", "state", "name"]
        assert [attr.name for attr in classes["employee"].own_attributes] == ["badge"]
        assert classes["employee"].attribute("uuid") is classes["person"].attribute("uuid")

    def test_naming(self, classes):
        """Test table, view and key names."""
        two = classes["two"]
        assert (two.table, two.view, two.primary_key) == ("_two", "two", "pk_two")
        ref = two.attribute("one")
        assert (ref.column, ref.view_column, ref.foreign_key) == ("one_id", "one__id", "fk_two_one_id")
        assert classes["employee"].foreign_key == "pfk_person_id"

    def test_collection_naming(self, classes):
        """Test collection table, view and order column names."""
        twos = classes["basket"].attribute("twos")
        assert twos.is_collection
        assert (twos.collection_view, twos.collection_table, twos.order_column) == (
            "basket_coll_twos",
            "_basket_coll_twos",
            "twos_order",
        )
        assert twos not in classes["basket"].table_attributes

    def test_lineage(self, classes):
        """Test ancestors, root and lineage."""
        employee = classes["employee"]
        assert employee.parents == [classes["person"]]
        assert employee.root is classes["person"]
        assert employee.lineage == [classes["person"], employee]

    def test_delegates(self, classes):
        """Test that extending classes expose the extended class's attributes."""
        extend, two = classes["extend"], classes["two"]
        assert extend.link is two
        assert extend.link_attribute.relationship is Relationship.EXTENDS
        two_uuid = extend.attribute("two_uuid")
        assert two_uuid.acts_as is two.attribute("uuid")
        assert two_uuid.view_column == "two__uuid"
        assert extend.attribute("name").view_column == "two__name"
        assert extend.table_attributes == [
            extend.attribute("uuid"),
            extend.attribute("state"),
            extend.attribute("note"),
            extend.attribute("two"),
        ]

    def test_extend_and_mediate(self, classes):
        """Test that a class cannot both extend and mediate."""
        with pytest.raises(InvalidClassError, match="can either extend or mediate"):
            ClassDescriptor("bad", extends=classes["one"], mediates=classes["two"])

    def test_duplicate_attribute(self):
        """Test that attribute names are unique within a class."""
        with pytest.raises(InvalidClassError, match='already has an attribute named "name"'):
            ClassDescriptor("bad", [Attr("name", "string"), Attr("name", "string")])

    def test_unknown_on_delete(self):
        """Test that on_delete must be a known action."""
        with pytest.raises(InvalidClassError, match="Unknown on_delete action"):
            Attr("x", "string", on_delete="explode")

    def test_dependencies(self, classes):
        """Test the classes a class's storage depends on."""
        assert classes["extend"].dependencies() == [classes["two"]]
        assert classes["two"].dependencies() == [classes["one"]]
        assert classes["basket"].dependencies() == [classes["two"]]


class TestClassRegistry:
    """Tests for the in-memory metadata gateway."""

    def test_register_pulls_in_dependencies(self, classes):
        """Test that registering a class registers what it depends on."""
        registry = ClassRegistry([classes["extend"]])
        assert "two" in registry
        assert "one" in registry
        assert len(registry) == 3

    def test_conflicting_key(self, classes):
        """Test that a key cannot be registered twice for different classes."""
        registry = ClassRegistry([classes["one"]])
        with pytest.raises(InvalidClassError, match='already registered as "one"'):
            registry.register(ClassDescriptor("one"))

    def test_unknown_class(self, registry):
        """Test resolving an unknown class key."""
        with pytest.raises(UnknownClassError, match='No such class "nope"'):
            registry.resolve("nope")

    def test_resolve_path(self, registry):
        """Test dotted paths through references."""
        resolved = registry.resolve_path("two", "one.name")
        assert resolved.column == "one__name"
        assert resolved.attribute is registry.attribute("one", "name")
        assert registry.resolve_path("two", "one").column == "one__id"

    def test_resolve_delegated_path(self, registry):
        """Test paths through delegated attributes."""
        assert registry.resolve_path("extend", "name").column == "two__name"
        assert registry.resolve_path("extend", "one.name").column == "two__one__name"

    def test_path_through_non_reference(self, registry):
        """Test that intermediate path segments must be references."""
        with pytest.raises(UnknownAttributeError, match='Search parameter "name" must point to an object'):
            registry.resolve_path("two", "name.foo")

    def test_collections_are_not_searchable(self, registry):
        """Test that collection attributes do not resolve."""
        with pytest.raises(UnknownAttributeError):
            registry.resolve_path("basket", "twos")

    def test_dependency_order(self, registry):
        """Test that every class comes after the classes it depends on."""
        ordered = [cls.key for cls in registry.dependency_order()]
        assert ordered.index("one") < ordered.index("two") < ordered.index("extend")
        assert ordered.index("person") < ordered.index("employee")
        assert ordered.index("two") < ordered.index("basket")

    def test_cycle(self):
        """Test that cyclic references are reported."""
        a = ClassDescriptor("a")
        b = ClassDescriptor("b", [Attr("a", "a", references=a)])
        a._add(Attr("b", "b", references=b))
        with pytest.raises(SchemaGenerationError, match="Circular class dependency"):
            dependency_order([a])
