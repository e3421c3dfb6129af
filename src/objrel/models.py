"""
Core data models for the object-relational mapping.

Contains the definitions for:
- Class and attribute descriptors (the metadata the schema is generated from)
- Search tokens shared by both lexers
- The search intermediate representation (IR) the parser produces
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from .errors import InvalidClassError

# ============================================================================
# Semantic Types
# ============================================================================


class SemanticType(str, Enum):
    """Attribute types the schema synthesizer knows how to store"""

    STRING = "string"
    WHOLE = "whole"  # integer >= 0
    POSINT = "posint"  # integer > 0
    INTEGER = "integer"
    BOOLEAN = "boolean"
    UUID = "uuid"
    STATE = "state"  # -1 deleted, 0 inactive, 1 active, 2 permanent
    VERSION = "version"
    DURATION = "duration"
    DATETIME = "datetime"
    OPERATOR = "operator"
    MEDIA_TYPE = "media_type"
    ATTRIBUTE = "attribute"  # "class.attribute" path
    GTIN = "gtin"
    BINARY = "binary"


# Types compared case-insensitively in searches and indexes
CASE_FOLDED_TYPES = (SemanticType.STRING, SemanticType.VERSION)


class Relationship(str, Enum):
    """How an attribute relates its class to a referenced class"""

    HAS = "has"
    HAS_MANY = "has_many"
    TYPE_OF = "type_of"
    EXTENDS = "extends"
    MEDIATES = "mediates"


ON_DELETE_ACTIONS = ("CASCADE", "RESTRICT", "SET NULL", "SET DEFAULT", "NO ACTION")


# ============================================================================
# Descriptors
# ============================================================================


@dataclass(eq=False)
class AttributeDescriptor:
    """
    Describes one attribute of a class and how it is stored.

    ``column`` and ``view_column`` are filled in when the attribute is added to a
    ClassDescriptor. Reference attributes are stored in ``{name}_id`` and exposed
    in the view as ``{name}__id``.
    """

    name: str
    type: str
    required: bool = False
    unique: bool = False
    distinct: bool = False
    indexed: bool = False
    persistent: bool = True
    once: bool = False
    default: Any = None
    references: Optional["ClassDescriptor"] = field(default=None, repr=False)
    on_delete: str = "RESTRICT"
    relationship: Optional[Relationship] = None
    column: Optional[str] = None
    view_column: Optional[str] = None

    # Back-pointers for attributes copied in from an extended/mediated/type_of class
    delegates_to: Optional["ClassDescriptor"] = field(default=None, repr=False)
    acts_as: Optional["AttributeDescriptor"] = field(default=None, repr=False)

    owner: Optional["ClassDescriptor"] = field(default=None, repr=False)

    def __post_init__(self):
        self.on_delete = self.on_delete.upper()
        if self.on_delete not in ON_DELETE_ACTIONS:
            raise InvalidClassError(f"Unknown on_delete action {self.on_delete!r}")
        if self.relationship is not None:
            self.relationship = Relationship(self.relationship)
        if self.references is not None and self.type != self.references.key:
            self.type = self.references.key

    @property
    def semantic_type(self) -> Optional[SemanticType]:
        """The semantic type, or None for references to other classes"""
        try:
            return SemanticType(self.type)
        except ValueError:
            return None

    @property
    def is_collection(self) -> bool:
        return self.relationship is Relationship.HAS_MANY

    @property
    def index(self) -> bool:
        """Whether the column gets an index"""
        return self.indexed or self.unique or self.references is not None

    @property
    def foreign_key(self) -> str:
        return f"fk_{self.owner.key}_{self.column}"

    @property
    def collection_view(self) -> str:
        return f"{self.owner.key}_coll_{self.name}"

    @property
    def collection_table(self) -> str:
        return f"_{self.collection_view}"

    @property
    def order_column(self) -> str:
        return f"{self.name}_order"


class ClassDescriptor:
    """
    Describes a business object class and its relational storage.

    A class stores its own attributes in ``table`` and is presented, together
    with all of its ancestors and referenced objects, through ``view``.

    Example:
        one = ClassDescriptor("one", [AttributeDescriptor("name", "string", required=True)])
        two = ClassDescriptor("two", [AttributeDescriptor("one", "one", references=one)])
    """

    def __init__(
        self,
        key: str,
        attributes: Optional[List[AttributeDescriptor]] = None,
        *,
        name: Optional[str] = None,
        table: Optional[str] = None,
        view: Optional[str] = None,
        parent: Optional["ClassDescriptor"] = None,
        extends: Optional["ClassDescriptor"] = None,
        mediates: Optional["ClassDescriptor"] = None,
        type_of: Optional["ClassDescriptor"] = None,
        identity: bool = True,
    ):
        if extends is not None and mediates is not None:
            raise InvalidClassError(f'Class "{key}" can either extend or mediate another class, not both')

        self.key = key
        self.name = name or key.replace("_", " ").title()
        self.table = table or f"_{key}"
        self.view = view or key
        self.parent = parent
        self.extends = extends
        self.mediates = mediates
        self.type_of = type_of
        self._own: List[AttributeDescriptor] = []

        if parent is None and identity:
            self._add(
                AttributeDescriptor(
                    "uuid", SemanticType.UUID.value, required=True, unique=True, distinct=True, once=True
                )
            )
            self._add(AttributeDescriptor("state", SemanticType.STATE.value, required=True, default=1))

        for attr in attributes or []:
            self._add(attr)

        if extends is not None:
            self._add_delegates(extends, Relationship.EXTENDS, persist=True)
        elif mediates is not None:
            self._add_delegates(mediates, Relationship.MEDIATES, persist=True)
        if type_of is not None:
            self._add_delegates(type_of, Relationship.TYPE_OF, persist=False)

    def __repr__(self) -> str:
        return f"ClassDescriptor({self.key!r})"

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _add(self, attr: AttributeDescriptor) -> AttributeDescriptor:
        if self.attribute(attr.name) is not None:
            raise InvalidClassError(f'Class "{self.key}" already has an attribute named "{attr.name}"')
        attr.owner = self
        if attr.references is not None and not attr.is_collection:
            attr.column = attr.column or f"{attr.name}_id"
            attr.view_column = attr.view_column or f"{attr.name}__id"
        else:
            attr.column = attr.column or attr.name
            attr.view_column = attr.view_column or attr.column
        self._own.append(attr)
        return attr

    def _add_delegates(self, target: "ClassDescriptor", relationship: Relationship, persist: bool):
        link = self._add(
            AttributeDescriptor(
                target.key,
                target.key,
                required=True,
                once=relationship is not Relationship.TYPE_OF,
                references=target,
                relationship=relationship,
                on_delete="RESTRICT" if relationship is Relationship.TYPE_OF else "CASCADE",
                persistent=True,
            )
        )
        for attr in target.attributes:
            if attr.is_collection:
                continue
            name = attr.name
            if self.attribute(name) is not None:
                name = f"{target.key}_{name}"
            self._add(
                AttributeDescriptor(
                    name,
                    attr.type,
                    required=attr.required,
                    unique=attr.unique,
                    distinct=attr.distinct,
                    indexed=attr.indexed,
                    persistent=persist and attr.persistent,
                    once=attr.once,
                    default=attr.default,
                    references=attr.references,
                    on_delete=attr.on_delete,
                    relationship=attr.relationship,
                    column=attr.view_column,
                    view_column=f"{link.name}__{attr.view_column}",
                    delegates_to=target,
                    acts_as=attr,
                )
            )

    # ------------------------------------------------------------------
    # Attribute views
    # ------------------------------------------------------------------

    @property
    def own_attributes(self) -> List[AttributeDescriptor]:
        """Attributes declared by this class, excluding inherited ones"""
        return list(self._own)

    @property
    def attributes(self) -> List[AttributeDescriptor]:
        """All attributes, inherited ones first"""
        inherited = self.parent.attributes if self.parent is not None else []
        return inherited + self._own

    def attribute(self, name: str) -> Optional[AttributeDescriptor]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    @property
    def table_attributes(self) -> List[AttributeDescriptor]:
        """Attributes stored as columns in this class's own table"""
        return [
            attr
            for attr in self._own
            if attr.persistent and attr.delegates_to is None and not attr.is_collection
        ]

    @property
    def ref_attributes(self) -> List[AttributeDescriptor]:
        """Table attributes that reference another class"""
        return [attr for attr in self.table_attributes if attr.references is not None]

    @property
    def collection_attributes(self) -> List[AttributeDescriptor]:
        return [attr for attr in self._own if attr.is_collection]

    def delegated_attributes(self, target: "ClassDescriptor") -> List[AttributeDescriptor]:
        """Persistent attributes copied in from ``target``"""
        return [attr for attr in self._own if attr.delegates_to is target and attr.persistent]

    @property
    def link(self) -> Optional["ClassDescriptor"]:
        """The class this one extends or mediates, if any"""
        return self.extends or self.mediates

    @property
    def link_attribute(self) -> Optional[AttributeDescriptor]:
        if self.link is None:
            return None
        return self.attribute(self.link.key)

    # ------------------------------------------------------------------
    # Inheritance chain
    # ------------------------------------------------------------------

    @property
    def parents(self) -> List["ClassDescriptor"]:
        """Ancestors, nearest first"""
        chain = []
        current = self.parent
        while current is not None:
            chain.append(current)
            current = current.parent
        return chain

    @property
    def root(self) -> "ClassDescriptor":
        parents = self.parents
        return parents[-1] if parents else self

    @property
    def lineage(self) -> List["ClassDescriptor"]:
        """This class and its ancestors, root first"""
        return list(reversed(self.parents)) + [self]

    @property
    def primary_key(self) -> str:
        return f"pk_{self.key}"

    @property
    def foreign_key(self) -> Optional[str]:
        if self.parent is None:
            return None
        return f"pfk_{self.parent.key}_id"

    def dependencies(self) -> List["ClassDescriptor"]:
        """Classes whose storage must exist before this class's storage"""
        deps: List[ClassDescriptor] = []
        candidates = [self.parent, self.extends, self.mediates, self.type_of]
        candidates += [attr.references for attr in self._own if attr.delegates_to is None]
        for cls in candidates:
            if cls is not None and cls is not self and cls not in deps:
                deps.append(cls)
        return deps


# ============================================================================
# Tokens
# ============================================================================


class TokenKind(Enum):
    """Kinds of search tokens, in lexing priority order"""

    VALUE = "VALUE"
    UNDEF = "UNDEF"
    COMPARE = "COMPARE"
    KEYWORD = "KEYWORD"
    IDENTIFIER = "IDENTIFIER"
    OP = "OP"


@dataclass(frozen=True)
class Token:
    """One lexed search token. ``value`` is the text, or the Python value for VALUE tokens"""

    kind: TokenKind
    value: Any

    def __repr__(self) -> str:
        return f"[{self.kind.value} {self.value!r}]"


COMPARE_OPERATORS = ("LIKE", "GT", "LT", "GE", "LE", "NE", "MATCH", "EQ")
KEYWORDS = ("BETWEEN", "AND", "OR", "ANY", "NOT")


# ============================================================================
# Search IR
# ============================================================================


class Operator(Enum):
    EQ = "EQ"
    NE = "NE"
    LIKE = "LIKE"
    GT = "GT"
    LT = "LT"
    GE = "GE"
    LE = "LE"
    MATCH = "MATCH"
    BETWEEN = "BETWEEN"
    ANY = "ANY"


class Combinator(Enum):
    AND = "AND"
    OR = "OR"


@dataclass
class Leaf:
    """
    A single search constraint.

    ``data`` is a scalar, a (low, high) pair for BETWEEN, a tuple for ANY, or
    None for NULL checks. ``column`` and ``type`` are filled in from the class
    metadata when the parser resolves ``path``.
    """

    path: str
    operator: Operator
    negated: bool = False
    data: Any = None
    column: Optional[str] = None
    type: Optional[str] = None

    @property
    def target_column(self) -> str:
        return self.column or self.path.replace(".", "__")


@dataclass
class Group:
    """AND/OR combination of IR nodes"""

    combinator: Combinator
    members: List[Union[Leaf, "Group"]] = field(default_factory=list)


IRNode = Union[Leaf, Group]


class SortOrder(Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass
class SearchRequest:
    """A parsed search, ready for a QueryCompiler"""

    class_key: str
    view: str
    ir: Group
    order_by: List[Tuple[str, SortOrder]] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None


__all__ = [
    "SemanticType",
    "CASE_FOLDED_TYPES",
    "Relationship",
    "ON_DELETE_ACTIONS",
    "AttributeDescriptor",
    "ClassDescriptor",
    "TokenKind",
    "Token",
    "COMPARE_OPERATORS",
    "KEYWORDS",
    "Operator",
    "Combinator",
    "Leaf",
    "Group",
    "IRNode",
    "SortOrder",
    "SearchRequest",
]
