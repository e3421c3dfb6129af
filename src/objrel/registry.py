"""
Metadata gateway: resolves class keys and attribute paths to descriptors.

The parser only needs the MetadataGateway protocol; ClassRegistry is the
in-memory implementation used by the schema synthesizer and the tests.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol

from .errors import InvalidClassError, SchemaGenerationError, UnknownAttributeError, UnknownClassError
from .models import AttributeDescriptor, ClassDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPath:
    """A dotted search path resolved against a class"""

    path: str
    attribute: AttributeDescriptor
    column: str  # flattened view column, e.g. "one__name"


class MetadataGateway(Protocol):
    """What the search parser needs to know about classes"""

    def resolve(self, class_key: str) -> ClassDescriptor:
        ...

    def attribute(self, class_key: str, name: str) -> Optional[AttributeDescriptor]:
        ...

    def resolve_path(self, class_key: str, path: str) -> ResolvedPath:
        ...


class ClassRegistry:
    """
    In-memory registry of class descriptors.

    Example:
        registry = ClassRegistry([one, two])
        registry.resolve_path("two", "one.name").column  # "one__name"
    """

    def __init__(self, classes: Optional[Iterable[ClassDescriptor]] = None):
        self._classes: Dict[str, ClassDescriptor] = {}
        for cls in classes or []:
            self.register(cls)

    def register(self, cls: ClassDescriptor) -> ClassDescriptor:
        """Add a class, along with every class it depends on"""
        existing = self._classes.get(cls.key)
        if existing is cls:
            return cls
        if existing is not None:
            raise InvalidClassError(f'A different class is already registered as "{cls.key}"')
        for dependency in cls.dependencies():
            self.register(dependency)
        self._classes[cls.key] = cls
        logger.debug("Registered class %s", cls.key)
        return cls

    def __contains__(self, class_key: str) -> bool:
        return class_key in self._classes

    def __iter__(self):
        return iter(self._classes.values())

    def __len__(self) -> int:
        return len(self._classes)

    def resolve(self, class_key: str) -> ClassDescriptor:
        try:
            return self._classes[class_key]
        except KeyError:
            raise UnknownClassError(class_key) from None

    def attribute(self, class_key: str, name: str) -> Optional[AttributeDescriptor]:
        return self.resolve(class_key).attribute(name)

    def resolve_path(self, class_key: str, path: str) -> ResolvedPath:
        """
        Resolve a dotted attribute path to a persistent attribute and view column.

        Each segment but the last must name a reference to another class.

        Raises:
            UnknownAttributeError: If any segment does not resolve
        """
        cls = self.resolve(class_key)
        prefix: List[str] = []
        parts = path.split(".")
        for position, part in enumerate(parts):
            attr = cls.attribute(part)
            if attr is None or not attr.persistent or attr.is_collection:
                raise UnknownAttributeError(path, class_key)
            if position == len(parts) - 1:
                return ResolvedPath(path, attr, "__".join(prefix + [attr.view_column]))
            if attr.references is None:
                raise UnknownAttributeError(
                    path,
                    class_key,
                    f'Search parameter "{".".join(parts[: position + 1])}" must point to an object',
                )
            # Reference view columns are "{prefix}__id"
            prefix.append(attr.view_column[: -len("__id")])
            cls = attr.references
        raise UnknownAttributeError(path, class_key)

    def dependency_order(self) -> List[ClassDescriptor]:
        """Registered classes, each after the classes it depends on"""
        return dependency_order(self._classes.values())


def dependency_order(classes: Iterable[ClassDescriptor]) -> List[ClassDescriptor]:
    """
    Order classes so parents and referenced classes come before dependents.

    Raises:
        SchemaGenerationError: If the classes depend on each other cyclically
    """
    from graphlib import CycleError, TopologicalSorter

    by_key: Dict[str, ClassDescriptor] = {}
    pending = list(classes)
    while pending:
        cls = pending.pop(0)
        if cls.key in by_key:
            continue
        by_key[cls.key] = cls
        pending.extend(cls.dependencies())

    deps = {key: [dep.key for dep in cls.dependencies()] for key, cls in by_key.items()}
    try:
        ordered_keys = list(TopologicalSorter(deps).static_order())
    except CycleError as e:
        raise SchemaGenerationError(f"Circular class dependency: {' -> '.join(e.args[1])}") from e
    return [by_key[key] for key in ordered_keys]


__all__ = ["ResolvedPath", "MetadataGateway", "ClassRegistry", "dependency_order"]
