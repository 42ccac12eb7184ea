"""
Member descriptor cache for reflection-driven mapping.

Builds, once per type, an ordered description of the public properties of a
class (dataclass fields, annotated attributes and ``property`` objects) with
the metadata the table marshaller needs: declared type, column name override,
primary-key flag, collection flag and get/set accessors.

Column metadata sources, in priority order:
- dataclass field metadata (``column_name`` / ``primary_key``), see ``column()``
- class level ``__column_names__`` mapping and ``__primary_keys__`` sequence
- naming convention: a property called ``id`` (any case) is a primary key
"""

import collections.abc
import dataclasses
import logging
import sys
import types
import typing
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from ..exceptions import InvalidArgumentError


BASIC_TYPES = (str, int, float, bool, complex, Decimal, datetime, date, time, timedelta, UUID, bytes, bytearray)

_UNION_TYPES = tuple(t for t in (typing.Union, getattr(types, "UnionType", None)) if t is not None)
_NONE_TYPE = type(None)


def strip_optional(annotation: Any) -> Any:
    """Return X for Optional[X] / X | None, otherwise the annotation unchanged."""
    if typing.get_origin(annotation) in _UNION_TYPES:
        args = typing.get_args(annotation)
        non_none = [arg for arg in args if arg is not _NONE_TYPE]
        if len(non_none) == 1 and len(non_none) < len(args):
            return non_none[0]
    return annotation


def is_nullable_type(annotation: Any) -> bool:
    """True if the annotation is a union that admits None."""
    if typing.get_origin(annotation) in _UNION_TYPES:
        return _NONE_TYPE in typing.get_args(annotation)
    return False


def is_basic_type(annotation: Any) -> bool:
    """True for scalar value types (strings, numbers, dates, UUIDs, bytes, enums)."""
    annotation = strip_optional(annotation)
    return isinstance(annotation, type) and issubclass(annotation, BASIC_TYPES + (Enum,))


def is_collection_type(annotation: Any) -> bool:
    """True for iterable container types; strings and bytes are not collections."""
    annotation = strip_optional(annotation)
    origin = typing.get_origin(annotation) or annotation
    if not isinstance(origin, type):
        return False
    if issubclass(origin, (str, bytes, bytearray)):
        return False
    return issubclass(origin, collections.abc.Iterable)


def column(column_name: Optional[str] = None, primary_key: bool = False, **kwargs) -> Any:
    """
    Declare a dataclass field carrying column metadata.

    Example:
        @dataclass
        class Product:
            code: str = column(primary_key=True, default="")
            title: str = column("ProductTitle", default="")
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    if column_name:
        metadata["column_name"] = column_name
    if primary_key:
        metadata["primary_key"] = True
    return field(metadata=metadata, **kwargs)


@dataclass(frozen=True)
class MemberDescriptor:
    """
    Cached reflection metadata for one public property.

    Attributes:
        name: Property name
        property_type: Declared type annotation (may be Optional[...] or Any)
        declaring_type: Class the property was discovered on
        column_name: Column name override, defaults to the property name
        is_primary_key: Whether the property takes part in the primary key
        can_read: Whether the property has a getter
        can_write: Whether the property has a setter
    """
    name: str
    property_type: Any
    declaring_type: type
    column_name: str
    is_primary_key: bool = False
    can_read: bool = True
    can_write: bool = True
    getter: Optional[Callable[[Any], Any]] = field(default=None, repr=False, compare=False)
    setter: Optional[Callable[[Any, Any], None]] = field(default=None, repr=False, compare=False)

    @property
    def underlying_type(self) -> Any:
        """Declared type with any Optional wrapper stripped."""
        return strip_optional(self.property_type)

    @property
    def is_nullable(self) -> bool:
        return is_nullable_type(self.property_type)

    @property
    def is_collection(self) -> bool:
        return is_collection_type(self.property_type)

    @property
    def is_basic(self) -> bool:
        return is_basic_type(self.property_type)

    def get_value(self, instance: Any) -> Any:
        if self.getter is not None:
            return self.getter(instance)
        return getattr(instance, self.name)

    def set_value(self, instance: Any, value: Any) -> None:
        if not self.can_write:
            raise InvalidArgumentError(
                f"Property '{self.name}' of {self.declaring_type.__name__} is read-only", "value")
        if self.setter is not None:
            self.setter(instance, value)
        else:
            setattr(instance, self.name, value)


class TypeDescriptor:
    """
    Reflection metadata for one type: its scalar/collection nature and its
    public properties in declaration order.
    """

    def __init__(self, described_type: Any, properties: List[MemberDescriptor]):
        self.type = described_type
        self.name = getattr(described_type, "__name__", str(described_type))
        self.is_basic = is_basic_type(described_type)
        self.is_collection = is_collection_type(described_type)
        self.properties: Tuple[MemberDescriptor, ...] = tuple(properties)
        self._by_name: Dict[str, MemberDescriptor] = {prop.name: prop for prop in self.properties}

    @property
    def public_properties(self) -> Tuple[MemberDescriptor, ...]:
        return self.properties

    @property
    def primary_keys(self) -> Tuple[MemberDescriptor, ...]:
        return tuple(prop for prop in self.properties if prop.is_primary_key)

    def non_collection_properties(self) -> Tuple[MemberDescriptor, ...]:
        return tuple(prop for prop in self.properties if not prop.is_collection)

    def get(self, name: str) -> Optional[MemberDescriptor]:
        return self._by_name.get(name)

    def find(self, name: str) -> Optional[MemberDescriptor]:
        """
        Look a property up by name, then case-insensitively, then by column name.
        """
        if not name:
            return None
        prop = self._by_name.get(name)
        if prop is not None:
            return prop
        lowered = name.lower()
        for prop in self.properties:
            if prop.name.lower() == lowered:
                return prop
        for prop in self.properties:
            if prop.column_name == name:
                return prop
        return None

    def __getitem__(self, name: str) -> Optional[MemberDescriptor]:
        return self._by_name.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __iter__(self):
        return iter(self.properties)

    def __len__(self) -> int:
        return len(self.properties)

    def __repr__(self) -> str:
        return f"TypeDescriptor({self.name}, properties={[prop.name for prop in self.properties]})"

    @classmethod
    def build(cls, described_type: Any) -> "TypeDescriptor":
        """Reflect over a type and describe its public properties."""
        if is_basic_type(described_type) or not isinstance(described_type, type):
            return cls(described_type, [])
        return cls(described_type, _discover_properties(described_type))


def _resolve_hints(described_type: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(described_type)
    except (NameError, TypeError, AttributeError):
        # Unresolvable forward references: fall back to the raw annotations.
        module = sys.modules.get(described_type.__module__)
        namespace = dict(vars(module)) if module else {}
        hints: Dict[str, Any] = {}
        for klass in reversed(described_type.__mro__):
            for name, annotation in vars(klass).get("__annotations__", {}).items():
                if isinstance(annotation, str):
                    try:
                        annotation = eval(annotation, namespace, dict(vars(klass)))
                    except Exception:
                        annotation = Any
                hints[name] = annotation
        return hints


def _is_class_var(annotation: Any) -> bool:
    return annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar


def _discover_properties(described_type: type) -> List[MemberDescriptor]:
    hints = _resolve_hints(described_type)
    column_names: Dict[str, str] = dict(getattr(described_type, "__column_names__", None) or {})
    primary_keys = set(getattr(described_type, "__primary_keys__", None) or ())

    ordered: List[Tuple[str, Any, Dict[str, Any]]] = []
    seen = set()

    if dataclasses.is_dataclass(described_type):
        for dc_field in dataclasses.fields(described_type):
            ordered.append((dc_field.name, hints.get(dc_field.name, Any), dict(dc_field.metadata)))
            seen.add(dc_field.name)

    for klass in reversed(described_type.__mro__):
        if klass is object:
            continue
        for name in vars(klass).get("__annotations__", {}):
            if name in seen:
                continue
            seen.add(name)
            ordered.append((name, hints.get(name, Any), {}))

    properties: List[MemberDescriptor] = []
    for name, annotation, metadata in ordered:
        if name.startswith("_") or _is_class_var(annotation):
            continue
        properties.append(MemberDescriptor(
            name=name,
            property_type=annotation,
            declaring_type=described_type,
            column_name=metadata.get("column_name") or column_names.get(name) or name,
            is_primary_key=bool(metadata.get("primary_key")) or name in primary_keys or name.lower() == "id",
        ))

    for klass in reversed(described_type.__mro__):
        if klass is object:
            continue
        for name, attribute in vars(klass).items():
            if name in seen or name.startswith("_") or not isinstance(attribute, property):
                continue
            seen.add(name)
            prop = getattr(described_type, name)
            try:
                return_type = typing.get_type_hints(prop.fget).get("return", Any) if prop.fget else Any
            except (NameError, TypeError):
                return_type = Any
            properties.append(MemberDescriptor(
                name=name,
                property_type=return_type,
                declaring_type=described_type,
                column_name=column_names.get(name) or name,
                is_primary_key=name in primary_keys or name.lower() == "id",
                can_read=prop.fget is not None,
                can_write=prop.fset is not None,
                getter=prop.fget,
                setter=prop.fset,
            ))

    return properties


class MemberCache:
    """
    Lazily populated cache of TypeDescriptors keyed by type.

    Entries are immutable and never evicted. First population uses
    ``dict.setdefault`` so concurrent builders for the same type agree on a
    single entry; a duplicate build is discarded.
    """

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self._entries: Dict[Any, TypeDescriptor] = {}

    def describe(self, described_type: Any) -> TypeDescriptor:
        """
        Get the descriptor of a type, building it on first use.

        Args:
            described_type: Class (or Optional[...] of a class) to describe

        Returns:
            Cached TypeDescriptor

        Raises:
            InvalidArgumentError: If described_type is None
        """
        if described_type is None:
            raise InvalidArgumentError("Type is required", "described_type")
        described_type = strip_optional(described_type)

        entry = self._entries.get(described_type)
        if entry is None:
            entry = self._entries.setdefault(described_type, TypeDescriptor.build(described_type))
            self.logger.debug(f"Cached member descriptors for {entry.name}: {[prop.name for prop in entry]}")
        return entry

    def get_member(self, described_type: Any, name: str) -> Optional[MemberDescriptor]:
        """Get one property descriptor of a type by name, or None."""
        if described_type is None or not name:
            return None
        return self.describe(described_type).get(name)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, described_type: Any) -> bool:
        return strip_optional(described_type) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


_global_member_cache: Optional[MemberCache] = None


def get_member_cache() -> MemberCache:
    """Get the shared member cache instance."""
    global _global_member_cache

    if _global_member_cache is None:
        _global_member_cache = MemberCache()

    return _global_member_cache


def reset_member_cache() -> None:
    """Reset the shared member cache instance."""
    global _global_member_cache
    _global_member_cache = None
