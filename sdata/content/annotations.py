# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Markers attached to members through ``typing.Annotated`` and class
decorators describing how typed objects map onto SData content.

Example:
    >>> @schema_type("Account", namespace="http://example.com/crm")
    ... @resource_path("accounts")
    ... @dataclass
    ... class Account:
    ...     name: str
    ...     key: Annotated[str | None, ProtocolMember()] = None
    ...     tags: Annotated[list[str], XmlArrayItem("Tag")] = field(
    ...         default_factory=list
    ...     )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeVar

from .protocol import ProtocolProperty

__all__ = (
    "ProtocolMember",
    "Name",
    "XmlElement",
    "XmlArrayItem",
    "SimpleArray",
    "Ignore",
    "SchemaType",
    "schema_type",
    "resource_path",
    "get_schema_type",
    "get_resource_path",
)

T = TypeVar("T", bound=type)


@dataclass(frozen=True, slots=True)
class ProtocolMember:
    """The member backs a protocol property instead of a data field.

    Without an explicit ``prop`` the property is inferred from the member
    name (``key``, ``etag``, ``url``...).
    """

    prop: ProtocolProperty | None = None


@dataclass(frozen=True, slots=True)
class Name:
    """Explicit wire name, bypassing the naming scheme."""

    value: str


@dataclass(frozen=True, slots=True)
class XmlElement:
    """Explicit XML element name; on a collection member the items are
    written flat, without a wrapper element.
    """

    name: str | None = None
    namespace: str | None = None


@dataclass(frozen=True, slots=True)
class XmlArrayItem:
    """XML element name of each item of a collection member."""

    name: str | None = None
    namespace: str | None = None


@dataclass(frozen=True, slots=True)
class SimpleArray:
    """Write the collection as a bare JSON array."""


@dataclass(frozen=True, slots=True)
class Ignore:
    """Exclude the member from mapping."""


@dataclass(frozen=True, slots=True)
class SchemaType:
    name: str | None = None
    namespace: str | None = None


_SCHEMA_ATTR = "__sdata_schema__"
_PATH_ATTR = "__sdata_path__"


def schema_type(name: str | None = None, *, namespace: str | None = None):
    """Declare the schema name and namespace of a class."""

    def decorator(cls: T) -> T:
        setattr(cls, _SCHEMA_ATTR, SchemaType(name, namespace))
        return cls

    return decorator


def resource_path(path: str):
    """Declare the resource path a class is served from."""

    def decorator(cls: T) -> T:
        setattr(cls, _PATH_ATTR, path)
        return cls

    return decorator


def get_schema_type(cls: type) -> SchemaType | None:
    # only the class itself, subclasses must declare their own
    return vars(cls).get(_SCHEMA_ATTR) if isinstance(cls, type) else None


def get_resource_path(cls: type) -> str | None:
    return vars(cls).get(_PATH_ATTR) if isinstance(cls, type) else None
