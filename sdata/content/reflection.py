# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Per-type member discovery for typed objects.

Discovery is expensive and the set of types seen by a process is bounded,
so every lookup is computed once per type and kept for the lifetime of the
process. ``lru_cache`` is safe to populate from several threads at once;
two threads may both compute an entry, but they compute the same value.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import inspect
import typing
from dataclasses import dataclass
from datetime import date, time, timedelta
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from functools import lru_cache
from types import MappingProxyType, NoneType, UnionType
from typing import Annotated, Any, ClassVar, Union
from uuid import UUID

import httpx
from pydantic import BaseModel

from .._sentinel import Undefined
from .annotations import Ignore, ProtocolMember
from .protocol import ProtocolObject, ProtocolProperty

__all__ = (
    "SCALAR_TYPES",
    "MemberInfo",
    "ParameterInfo",
    "get_members",
    "get_constructor",
    "get_protocol_members",
    "unwrap_annotated",
    "unwrap_optional",
    "is_scalar_type",
    "is_mapping_type",
    "is_collection_type",
    "is_object_type",
    "item_type_of",
)

# leaf values recognised everywhere; bool and datetime are covered by
# int and date
SCALAR_TYPES: tuple[type, ...] = (
    str,
    bytes,
    bytearray,
    int,
    float,
    complex,
    Decimal,
    Fraction,
    date,
    time,
    timedelta,
    UUID,
    Enum,
    httpx.URL,
)

_COLLECTION_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    cabc.Sequence,
    cabc.MutableSequence,
    cabc.Set,
    cabc.MutableSet,
    cabc.Iterable,
    cabc.Collection,
)


@dataclass(frozen=True, slots=True)
class MemberInfo:
    """A public instance member (field, attribute or property)."""

    name: str
    annotation: Any = Any
    markers: tuple = ()
    readable: bool = True
    writable: bool = True
    alias: str | None = None

    def marker(self, kind: type):
        for m in self.markers:
            if isinstance(m, kind):
                return m
        return None

    def get(self, obj: Any, default: Any = Undefined) -> Any:
        return getattr(obj, self.name, default)

    def set(self, obj: Any, value: Any) -> None:
        setattr(obj, self.name, value)


@dataclass(frozen=True, slots=True)
class ParameterInfo:
    name: str
    annotation: Any
    kind: inspect._ParameterKind
    default: Any = Undefined

    @property
    def keyword_only(self) -> bool:
        return self.kind is inspect.Parameter.KEYWORD_ONLY


def unwrap_annotated(tp: Any) -> tuple[Any, tuple]:
    if typing.get_origin(tp) is Annotated:
        inner, *extras = typing.get_args(tp)
        inner, more = unwrap_annotated(inner)
        return inner, tuple(extras) + more
    return tp, ()


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Strip ``Annotated`` and ``None`` from a union.

    Returns the remaining type and whether None was allowed. A union of
    several concrete types collapses to ``Any``.
    """
    tp, _ = unwrap_annotated(tp)
    if typing.get_origin(tp) in (Union, UnionType):
        args = [a for a in typing.get_args(tp) if a is not NoneType]
        nullable = len(args) < len(typing.get_args(tp))
        if len(args) == 1:
            inner, _ = unwrap_optional(args[0])
            return inner, nullable
        return Any, nullable
    if tp is None or tp is NoneType:
        return Any, True
    return tp, False


def _origin(tp: Any) -> Any:
    return typing.get_origin(tp) or tp


def is_scalar_type(tp: Any) -> bool:
    tp, _ = unwrap_optional(tp)
    tp = _origin(tp)
    return isinstance(tp, type) and issubclass(tp, SCALAR_TYPES)


def is_mapping_type(tp: Any) -> bool:
    tp = _origin(unwrap_optional(tp)[0])
    return isinstance(tp, type) and issubclass(tp, cabc.Mapping)


def is_collection_type(tp: Any) -> bool:
    tp = _origin(unwrap_optional(tp)[0])
    if not isinstance(tp, type) or issubclass(tp, (str, bytes, bytearray)):
        return False
    if issubclass(tp, (cabc.Mapping, BaseModel)):
        return False
    return tp in _COLLECTION_ORIGINS or issubclass(tp, cabc.Iterable)


def is_object_type(tp: Any) -> bool:
    tp, _ = unwrap_optional(tp)
    return tp is not Any and tp is not object and not is_scalar_type(tp)


def item_type_of(tp: Any) -> Any:
    """Element type of a collection annotation, or None when unknown."""
    tp, _ = unwrap_optional(tp)
    args = typing.get_args(tp)
    origin = _origin(tp)
    if not args or not is_collection_type(origin):
        return None
    if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
        return None if len(set(args)) != 1 else args[0]
    return args[0]


def _type_hints(obj: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(obj, include_extras=True)
    except Exception:
        # unresolvable forward references, keep the raw annotations
        hints: dict[str, Any] = {}
        for klass in reversed(getattr(obj, "__mro__", (obj,))):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints


def _is_pydantic(cls: type) -> bool:
    return isinstance(cls, type) and issubclass(cls, BaseModel)


@lru_cache(maxsize=None)
def get_members(cls: type) -> tuple[MemberInfo, ...]:
    """Public instance members of ``cls`` in declaration order."""
    if _is_pydantic(cls):
        members = _pydantic_members(cls)
    elif dataclasses.is_dataclass(cls):
        members = _dataclass_members(cls)
    else:
        members = _class_members(cls)
    return tuple(
        m
        for m in members
        if not m.name.startswith("_") and m.marker(Ignore) is None
    )


def _pydantic_members(cls: type[BaseModel]):
    frozen = cls.model_config.get("frozen", False)
    for name, field in cls.model_fields.items():
        annotation, markers = unwrap_annotated(field.annotation)
        yield MemberInfo(
            name,
            annotation,
            tuple(field.metadata) + markers,
            writable=not frozen,
            alias=field.alias,
        )


def _dataclass_members(cls: type):
    hints = _type_hints(cls)
    frozen = cls.__dataclass_params__.frozen
    for field in dataclasses.fields(cls):
        annotation, markers = unwrap_annotated(hints.get(field.name, Any))
        yield MemberInfo(field.name, annotation, markers, writable=not frozen)


def _class_members(cls: type):
    seen = set()
    for name, hint in _type_hints(cls).items():
        if typing.get_origin(hint) is ClassVar or hint is ClassVar:
            continue
        annotation, markers = unwrap_annotated(hint)
        seen.add(name)
        yield MemberInfo(name, annotation, markers)

    reserved = set(vars(ProtocolObject))
    for name in dir(cls):
        if name in seen or name in reserved or name.startswith("_"):
            continue
        attr = inspect.getattr_static(cls, name, None)
        if not isinstance(attr, property) or attr.fget is None:
            continue
        hint = _type_hints(attr.fget).get("return", Any)
        annotation, markers = unwrap_annotated(hint)
        yield MemberInfo(
            name, annotation, markers, writable=attr.fset is not None
        )


@lru_cache(maxsize=None)
def get_constructor(cls: type) -> tuple[ParameterInfo, ...] | None:
    """Named parameters of the constructor, or None when the type is built
    without arguments and populated member by member.
    """
    if _is_pydantic(cls):
        return None
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        return None
    hints = _type_hints(cls.__init__)
    params = tuple(
        ParameterInfo(
            p.name,
            hints.get(p.name, Any),
            p.kind,
            Undefined if p.default is inspect.Parameter.empty else p.default,
        )
        for p in signature.parameters.values()
        if p.kind
        not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    )
    return params or None


@lru_cache(maxsize=None)
def get_protocol_members(
    cls: type,
) -> MappingProxyType[ProtocolProperty, MemberInfo]:
    """Members of ``cls`` marked as backing a protocol property."""
    result: dict[ProtocolProperty, MemberInfo] = {}
    for member in get_members(cls):
        marker = member.marker(ProtocolMember)
        if marker is None:
            continue
        prop = marker.prop or ProtocolProperty.lookup(member.name)
        if prop is not None:
            result[prop] = member
    return MappingProxyType(result)
