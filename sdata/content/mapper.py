# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Bidirectional mapping between typed objects and the generic
:class:`~sdata.content.protocol.Resource` /
:class:`~sdata.content.protocol.Collection` representation.

Every value falls in exactly one :class:`Shape`:

* ``SCALAR``   - None, strings, numbers, dates, UUIDs, URLs, enums...
* ``MAPPING``  - anything implementing :class:`collections.abc.Mapping`
* ``SEQUENCE`` - any other iterable except strings and pydantic models
* ``OBJECT``   - everything else, mapped member by member
"""

from __future__ import annotations

import base64
import collections.abc as cabc
import logging
import typing
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from functools import lru_cache
from types import MappingProxyType
from typing import Any
from uuid import UUID

import httpx
from pydantic import BaseModel, TypeAdapter

from .._errors import DeserializationError, MappingError, SerializationError
from .._errors import UsageError
from .._sentinel import Undefined
from .annotations import SimpleArray, XmlArrayItem, XmlElement, get_schema_type
from .naming import NamingScheme, get_naming_scheme
from .protocol import (
    PROTOCOL_PREFIX,
    Collection,
    ProtocolInfo,
    ProtocolObject,
    ProtocolProperty,
    Resource,
)
from .reflection import (
    SCALAR_TYPES,
    MemberInfo,
    ParameterInfo,
    get_constructor,
    get_members,
    get_protocol_members,
    is_collection_type,
    is_mapping_type,
    is_object_type,
    is_scalar_type,
    item_type_of,
    unwrap_optional,
)

__all__ = (
    "Shape",
    "ContentMapper",
    "classify",
    "is_scalar",
    "is_dictionary",
    "is_collection",
    "is_object",
    "as_dictionary",
    "as_collection",
    "as_dictionaries",
    "to_typed_collection",
    "serialize",
    "deserialize",
    "get_protocol_value",
    "set_protocol_value",
)

logger = logging.getLogger(__name__)


class Shape(Enum):
    SCALAR = "scalar"
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    OBJECT = "object"


def classify(value: Any) -> Shape:
    if value is None or isinstance(value, SCALAR_TYPES):
        return Shape.SCALAR
    if isinstance(value, cabc.Mapping):
        return Shape.MAPPING
    if isinstance(value, cabc.Iterable) and not isinstance(value, BaseModel):
        return Shape.SEQUENCE
    return Shape.OBJECT


def is_scalar(value: Any) -> bool:
    return classify(value) is Shape.SCALAR


def is_dictionary(value: Any) -> bool:
    return classify(value) is Shape.MAPPING


def is_collection(value: Any) -> bool:
    return classify(value) is Shape.SEQUENCE


def is_object(value: Any) -> bool:
    """True for anything that is not a scalar leaf."""
    return classify(value) is not Shape.SCALAR


def _info_of(value: Any) -> ProtocolInfo | None:
    return value.info if isinstance(value, ProtocolObject) else None


def _wrapped_items(value: Any) -> list:
    """Items of a mapping met where a sequence was expected.

    An XML wrapper holding a single item reads back as a record with one
    child; that child is the item. Any other record yields no items.
    """
    info = _info_of(value)
    if info is None or info.values or not info.xml_local_name or len(value) != 1:
        return []
    (item,) = value.values()
    return item if isinstance(item, list) else [item]


def as_dictionary(value: Any) -> dict[str, Any] | None:
    if classify(value) is not Shape.MAPPING:
        return None
    if isinstance(value, dict) and all(isinstance(k, str) for k in value):
        return value
    return Resource(
        ((str(k), v) for k, v in value.items()), info=_info_of(value)
    )


def as_collection(value: Any) -> list | None:
    if classify(value) is not Shape.SEQUENCE:
        return None
    if isinstance(value, list):
        return value
    if isinstance(value, ProtocolObject):
        return Collection(value, info=value.info)
    return list(value)


def as_dictionaries(value: Any) -> list[dict[str, Any]] | None:
    items = as_collection(value)
    if items is None:
        return None
    dictionaries = [as_dictionary(item) for item in items]
    if any(d is None for d in dictionaries):
        return None
    if isinstance(value, ProtocolObject):
        return Collection(dictionaries, item_type=Resource, info=value.info)
    return dictionaries


def to_typed_collection(items: cabc.Iterable[Any]) -> Collection:
    """Wrap items, typed by their common concrete type when there is one."""
    items = list(items)
    item_types = {type(item) for item in items}
    item_type = item_types.pop() if len(item_types) == 1 else object
    return Collection(items, item_type=item_type)


@dataclass(frozen=True, slots=True)
class XmlHints:
    local_name: str | None = None
    namespace: str | None = None
    is_flat: bool = False
    simple_array: bool = False


@dataclass(slots=True)
class _Tagged:
    """A member value travelling with its XML hints."""

    value: Any
    hints: XmlHints


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or repr(tp)


def _member_hints(member: MemberInfo) -> XmlHints | None:
    annotation = member.annotation
    if not is_object_type(annotation):
        return None

    local_name = namespace = None
    is_flat = False
    if (element := member.marker(XmlElement)) is not None:
        local_name, namespace = element.name, element.namespace
        is_flat = is_collection_type(annotation)
    if (array_item := member.marker(XmlArrayItem)) is not None:
        local_name, namespace = array_item.name, array_item.namespace
    if local_name is None:
        item_type, _ = unwrap_optional(item_type_of(annotation) or object)
        local_name = None if item_type in (object, Any) else _type_name(item_type)
        namespace = None
    simple_array = member.marker(SimpleArray) is not None

    if local_name or namespace or is_flat or simple_array:
        return XmlHints(local_name, namespace, is_flat, simple_array)
    return None


@lru_cache(maxsize=None)
def _readers(
    cls: type, naming_scheme: NamingScheme
) -> tuple[tuple[str, MemberInfo, XmlHints | None], ...]:
    return tuple(
        (naming_scheme.get_name(m), m, _member_hints(m))
        for m in get_members(cls)
        if m.readable
    )


@lru_cache(maxsize=None)
def _wire_members(
    cls: type, naming_scheme: NamingScheme
) -> MappingProxyType[str, MemberInfo]:
    return MappingProxyType(
        {naming_scheme.get_name(m): m for m in get_members(cls)}
    )


@lru_cache(maxsize=None)
def _adapter(target: type) -> TypeAdapter:
    return TypeAdapter(target)


_ZERO_VALUES: dict[type, Any] = {
    bool: False,
    int: 0,
    float: 0.0,
    complex: 0j,
    Decimal: Decimal(0),
    Fraction: Fraction(0),
    timedelta: timedelta(0),
    UUID: UUID(int=0),
}

_SEQUENCE_TARGETS = (
    list,
    cabc.Sequence,
    cabc.MutableSequence,
    cabc.Iterable,
    cabc.Collection,
)


class ContentMapper:
    """Serializer/deserializer bound to one naming scheme."""

    def __init__(self, naming_scheme: NamingScheme | str | None = None):
        self.naming_scheme = get_naming_scheme(naming_scheme)

    # ------------------------------------------------------------------ #
    # typed -> generic                                                   #
    # ------------------------------------------------------------------ #
    def serialize(self, value: Any, declared_type: Any = None) -> Any:
        """Turn ``value`` into its wire-ready form.

        Scalars come back unchanged, mappings and plain objects become a
        :class:`Resource`, other iterables a :class:`Collection`.
        """
        try:
            return self._serialize(value, declared_type)
        except MappingError:
            raise
        except Exception as exc:
            raise SerializationError.from_value(
                value,
                message=f"Cannot serialize {type(value).__name__}: {exc}",
                cause=exc,
            ) from exc

    def _serialize(self, value: Any, declared_type: Any = None) -> Any:
        match classify(value):
            case Shape.SCALAR:
                return value
            case Shape.SEQUENCE:
                return self._serialize_collection(value, declared_type)
            case Shape.MAPPING:
                info = _info_of(value)
                fields = [(str(k), v, None) for k, v in value.items()]
            case _:
                info = _info_of(value)
                fields = self._read_members(value)
                if info is None:
                    return self._build_resource(
                        fields, self._derive_info(type(value)), True
                    )
        return self._build_resource(fields, info, info is None)

    def _build_resource(
        self,
        fields: list[tuple[str, Any, Any]],
        info: ProtocolInfo | None,
        info_created: bool,
    ) -> Resource:
        resource = Resource()
        for name, item, declared in fields:
            hints = None
            if isinstance(item, _Tagged):
                item, hints = item.value, item.hints

            if name.startswith(PROTOCOL_PREFIX):
                if info_created:
                    prop = ProtocolProperty.lookup(name)
                    if prop is None:
                        raise SerializationError.from_value(
                            name, message=f"Unknown protocol property '{name}'"
                        )
                    if info is None:
                        info = ProtocolInfo()
                    info.set_value(prop, item)
                continue

            result = self._serialize(item, declared)
            if hints is not None and isinstance(result, ProtocolObject):
                self._apply_hints(result, hints)
            resource[name] = result

        resource.info = info
        return resource

    def _read_members(self, value: Any) -> list[tuple[str, Any, Any]]:
        cls = type(value)
        fields = []
        known = set()
        for name, member, hints in _readers(cls, self.naming_scheme):
            known.add(member.name)
            item = member.get(value)
            if item is Undefined:
                continue
            if hints is not None:
                item = _Tagged(item, hints)
            fields.append((name, item, member.annotation))

        if isinstance(value, BaseModel):
            extras = value.model_extra or {}
        elif not hasattr(cls, "__dataclass_fields__"):
            extras = getattr(value, "__dict__", {})
        else:
            extras = {}
        for key, item in extras.items():
            if key in known or key.startswith("_"):
                continue
            fields.append((self.naming_scheme.transform(key), item, None))
        return fields

    @staticmethod
    def _derive_info(cls: type) -> ProtocolInfo:
        info = ProtocolInfo()
        if (schema := get_schema_type(cls)) is not None:
            info.xml_local_name = schema.name
            info.xml_namespace = schema.namespace
        if not info.xml_local_name:
            info.xml_local_name = cls.__name__
        return info

    @staticmethod
    def _apply_hints(result: ProtocolObject, hints: XmlHints) -> None:
        # never mutate metadata shared with the source object
        info = result.info.copy_info() if result.info else ProtocolInfo()
        if hints.local_name is not None:
            info.xml_local_name = hints.local_name
        if hints.namespace is not None:
            info.xml_namespace = hints.namespace
        if hints.is_flat:
            info.xml_is_flat = True
        if hints.simple_array:
            info.json_is_simple_array = True
        result.info = info

    def _serialize_collection(self, value: Any, declared_type: Any) -> Collection:
        declared_item = item_type_of(declared_type)
        results = [self._serialize(item, declared_item) for item in value]
        if results:
            output = to_typed_collection(results)
        else:
            item_type = declared_item
            if item_type is None and isinstance(value, Collection):
                item_type = value.item_type
            item_type, _ = unwrap_optional(item_type or object)
            if item_type is Any or not isinstance(item_type, type):
                item_type = object
            elif item_type is not object and is_object_type(item_type):
                item_type = Resource
            output = Collection(item_type=item_type)
        output.info = _info_of(value)
        return output

    # ------------------------------------------------------------------ #
    # generic -> typed                                                   #
    # ------------------------------------------------------------------ #
    def deserialize(self, value: Any, target: Any = object) -> Any:
        """Turn wire content into an instance of ``target``."""
        try:
            return self._deserialize(value, target)
        except MappingError:
            raise
        except (TypeError, ValueError, AttributeError, KeyError, ArithmeticError) as exc:
            raise DeserializationError.from_value(
                value,
                expected=_type_name(target),
                message=f"Cannot deserialize into {_type_name(target)}: {exc}",
                cause=exc,
            ) from exc

    def _deserialize(self, value: Any, target: Any) -> Any:
        target, nullable = unwrap_optional(target)
        origin = typing.get_origin(target) or target
        if not isinstance(origin, type):
            # type variables, unresolved forward references
            origin = target = Any

        if value is None:
            return None if nullable else _ZERO_VALUES.get(origin)
        if origin in (Any, object):
            return value

        if origin is date and type(value) is datetime:
            return value.date()
        if origin is datetime and type(value) is date:
            return datetime.combine(value, time())
        if not typing.get_args(target) and isinstance(value, origin):
            return value

        shape = classify(value)
        if shape is Shape.SCALAR:
            if is_scalar_type(origin):
                return self._convert_scalar(value, origin)
            raise DeserializationError.from_value(
                value,
                expected=_type_name(target),
                message=f"Cannot convert {type(value).__name__} "
                f"into {_type_name(target)}",
            )
        if shape is Shape.MAPPING:
            if not is_collection_type(origin):
                return self._deserialize_mapping(value, target, origin)
            value = _wrapped_items(value)
        elif shape is Shape.OBJECT:
            raise DeserializationError.from_value(
                value,
                expected=_type_name(target),
                message=f"No mapping from {type(value).__name__} "
                f"into {_type_name(target)}",
            )
        return self._deserialize_sequence(value, target, origin)

    @staticmethod
    def _convert_scalar(value: Any, target: type) -> Any:
        if issubclass(target, Enum):
            if isinstance(value, str):
                try:
                    return target[value]
                except KeyError:
                    return target(value)
            return target(value)
        if target is str:
            return value.value if isinstance(value, Enum) else str(value)
        if issubclass(target, httpx.URL):
            return httpx.URL(str(value))
        if issubclass(target, Fraction):
            return Fraction(value)
        if isinstance(value, str):
            if issubclass(target, UUID):
                return UUID(value)
            if issubclass(target, (bytes, bytearray)):
                return target(base64.b64decode(value, validate=True))
        return _adapter(target).validate_python(value)

    def _deserialize_mapping(self, value: cabc.Mapping, target: Any, origin: type) -> Any:
        info = _info_of(value)

        if is_mapping_type(origin):
            args = typing.get_args(target)
            value_type = args[1] if len(args) == 2 else Any
            items = ((str(k), self._deserialize(v, value_type)) for k, v in value.items())
            if issubclass(Resource, origin):
                return Resource(items, info=info)
            return origin(items)

        if is_scalar_type(origin) or is_collection_type(origin):
            raise DeserializationError.from_value(
                value,
                expected=_type_name(target),
                message=f"Cannot build {_type_name(target)} from a record",
            )

        data = {str(k): v for k, v in value.items()}
        if info is not None:
            for prop, prop_value in info.values.items():
                data[prop.wire_name] = prop_value

        wire_members = _wire_members(origin, self.naming_scheme)
        if issubclass(origin, BaseModel):
            kwargs = {
                member.alias or member.name: self._deserialize(data[wire], member.annotation)
                for wire, member in wire_members.items()
                if wire in data
            }
            result = origin.model_validate(kwargs)
        elif (params := get_constructor(origin)) is not None:
            result = self._construct(origin, params, data)
        else:
            result = origin()
            for wire, member in wire_members.items():
                if member.writable and wire in data:
                    member.set(result, self._deserialize(data[wire], member.annotation))

        if info is not None and isinstance(result, ProtocolObject):
            result.info = info
        return result

    def _construct(self, cls: type, params: tuple[ParameterInfo, ...], data: dict) -> Any:
        members = {m.name: m for m in get_members(cls)}
        args, kwargs = [], {}
        for param in params:
            member = members.get(param.name)
            if member is not None:
                wire, annotation = self.naming_scheme.get_name(member), member.annotation
            else:
                wire, annotation = param.name, param.annotation

            if wire in data:
                arg = self._deserialize(data[wire], annotation)
            elif param.default is not Undefined:
                arg = param.default
            else:
                logger.debug("No value for parameter %r of %s", param.name, cls.__name__)
                arg = self._deserialize(None, annotation)

            if param.keyword_only:
                kwargs[param.name] = arg
            else:
                args.append(arg)
        return cls(*args, **kwargs)

    def _deserialize_sequence(self, value: cabc.Iterable, target: Any, origin: type) -> Any:
        info = _info_of(value)
        item_type = item_type_of(target) or Any
        items = [self._deserialize(item, item_type) for item in value]
        typed_item = (
            item_type
            if isinstance(item_type, type) and item_type is not Any
            else object
        )

        if issubclass(origin, Collection):
            result = origin(items, item_type=typed_item)
        elif issubclass(origin, (tuple, set, frozenset)):
            result = origin(items)
        elif origin in (cabc.Set, cabc.MutableSet):
            result = set(items)
        elif origin in _SEQUENCE_TARGETS:
            result = items
        elif issubclass(origin, list):
            result = origin(items)
        else:
            raise DeserializationError.from_value(
                value,
                expected=_type_name(target),
                message=f"Cannot build {_type_name(target)} from a sequence",
            )

        if info is not None:
            if isinstance(result, ProtocolObject):
                if result.info is None:
                    result.info = info
            elif issubclass(Collection, origin):
                result = Collection(result, item_type=typed_item, info=info)
        return result


def serialize(value: Any, naming_scheme: NamingScheme | str | None = None) -> Any:
    return ContentMapper(naming_scheme).serialize(value)


def deserialize(
    value: Any,
    target: Any = object,
    naming_scheme: NamingScheme | str | None = None,
) -> Any:
    return ContentMapper(naming_scheme).deserialize(value, target)


def get_protocol_value(obj: Any, prop: ProtocolProperty) -> Any:
    """Read one protocol property from any object; None when absent."""
    if obj is None:
        raise UsageError("obj is required")
    if isinstance(obj, ProtocolObject):
        info = obj.info
        return None if info is None else info.get_value(prop)
    member = get_protocol_members(type(obj)).get(prop)
    if member is None or not member.readable:
        return None
    return member.get(obj, None)


def set_protocol_value(obj: Any, prop: ProtocolProperty, value: Any) -> bool:
    """Write one protocol property; False when ``obj`` has nowhere to keep it."""
    if obj is None:
        raise UsageError("obj is required")
    if isinstance(obj, ProtocolObject):
        obj.ensure_info().set_value(prop, value)
        return True
    member = get_protocol_members(type(obj)).get(prop)
    if member is None or not member.writable:
        return False
    member.set(obj, value)
    return True
