# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Naming schemes map members and types to their wire-visible names."""

from __future__ import annotations

import re
from collections.abc import Callable

from .annotations import Name, ProtocolMember, get_schema_type
from .protocol import ProtocolProperty
from .reflection import MemberInfo

__all__ = (
    "NamingScheme",
    "DEFAULT",
    "PASCAL_CASE",
    "CAMEL_CASE",
    "LOWER_CASE",
    "UPPER_CASE",
    "get_naming_scheme",
)

_WORD_BOUNDARY = re.compile(r"_+|(?<=[a-z0-9])(?=[A-Z])")


def _words(name: str) -> list[str]:
    return [w for w in _WORD_BOUNDARY.split(name) if w]


def pascal_case(name: str) -> str:
    return "".join(w[:1].upper() + w[1:] for w in _words(name))


def camel_case(name: str) -> str:
    pascal = pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


class NamingScheme:
    """Policy turning a member into its wire name.

    Precedence: an explicit :class:`Name`, then a protocol member's ``$``
    wire name, then a pydantic alias, then ``transform(member.name)``.
    Instances are hashable by identity and used as cache keys.
    """

    def __init__(self, name: str, transform: Callable[[str], str] = str):
        self.name = name
        self.transform = transform

    def __repr__(self) -> str:
        return f"NamingScheme({self.name!r})"

    def get_name(self, member: MemberInfo) -> str:
        if (explicit := member.marker(Name)) is not None:
            return explicit.value
        if (marker := member.marker(ProtocolMember)) is not None:
            prop = marker.prop or ProtocolProperty.lookup(member.name)
            if prop is not None:
                return prop.wire_name
        if member.alias:
            return member.alias
        return self.transform(member.name)

    def get_type_name(self, cls: type) -> str:
        schema = get_schema_type(cls)
        if schema is not None and schema.name:
            return schema.name
        return self.transform(cls.__name__)


DEFAULT = NamingScheme("default")
PASCAL_CASE = NamingScheme("pascal_case", pascal_case)
CAMEL_CASE = NamingScheme("camel_case", camel_case)
LOWER_CASE = NamingScheme("lower_case", lambda n: "".join(_words(n)).lower())
UPPER_CASE = NamingScheme("upper_case", lambda n: "".join(_words(n)).upper())

_SCHEMES = {
    s.name: s for s in (DEFAULT, PASCAL_CASE, CAMEL_CASE, LOWER_CASE, UPPER_CASE)
}


def get_naming_scheme(name: str | NamingScheme | None) -> NamingScheme:
    if isinstance(name, NamingScheme):
        return name
    if name is None:
        return DEFAULT
    try:
        return _SCHEMES[name]
    except KeyError as exc:
        raise KeyError(f"No naming scheme registered for '{name}'") from exc
