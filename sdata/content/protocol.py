# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Generic in-memory representation of SData content.

A :class:`Resource` is one record, a :class:`Collection` an ordered set of
records or values. Both may carry a :class:`ProtocolInfo` holding the
protocol-only metadata (key, ETag, URL, schema name...) that has no place
among a record's own fields. ``info is None`` means nothing is known; an
empty :class:`ProtocolInfo` means metadata is tracked but unset.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = (
    "PROTOCOL_PREFIX",
    "ProtocolProperty",
    "ProtocolInfo",
    "ProtocolObject",
    "Resource",
    "Collection",
)

PROTOCOL_PREFIX = "$"


class ProtocolProperty(str, Enum):
    """Protocol properties, valued by their lower-camel wire name."""

    ID = "id"
    TITLE = "title"
    UPDATED = "updated"
    HTTP_METHOD = "httpMethod"
    HTTP_STATUS = "httpStatus"
    HTTP_MESSAGE = "httpMessage"
    LOCATION = "location"
    ETAG = "etag"
    IF_MATCH = "ifMatch"
    URL = "url"
    KEY = "key"
    UUID = "uuid"
    LOOKUP = "lookup"
    DESCRIPTOR = "descriptor"
    IS_DELETED = "isDeleted"
    DIAGNOSES = "diagnoses"
    SCHEMA = "schema"
    LINKS = "links"
    PERMISSIONS = "permissions"
    TOTAL_RESULTS = "totalResults"
    START_INDEX = "startIndex"
    ITEMS_PER_PAGE = "itemsPerPage"

    @property
    def wire_name(self) -> str:
        return PROTOCOL_PREFIX + self.value

    @classmethod
    def lookup(cls, name: str) -> ProtocolProperty | None:
        """Resolve ``$eTag``, ``etag``, ``ETag`` or ``e_tag`` alike."""
        return _BY_NORMALIZED.get(_normalize(name))


def _normalize(name: str) -> str:
    return name.lstrip(PROTOCOL_PREFIX).replace("_", "").lower()


_BY_NORMALIZED = {_normalize(p.value): p for p in ProtocolProperty}


class ProtocolInfo(BaseModel):
    """Protocol metadata plus the XML rendering hints of one resource or
    collection.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    values: dict[ProtocolProperty, Any] = Field(default_factory=dict)
    xml_local_name: str | None = None
    xml_namespace: str | None = None
    xml_is_flat: bool = False
    json_is_simple_array: bool = False

    @property
    def schema_name(self) -> str | None:
        return self.xml_local_name

    @schema_name.setter
    def schema_name(self, value: str | None) -> None:
        self.xml_local_name = value

    def get_value(self, prop: ProtocolProperty) -> Any:
        return self.values.get(prop)

    def set_value(self, prop: ProtocolProperty, value: Any) -> None:
        if value is None:
            self.values.pop(prop, None)
        else:
            self.values[prop] = value

    def __getitem__(self, prop: ProtocolProperty) -> Any:
        return self.get_value(prop)

    def __setitem__(self, prop: ProtocolProperty, value: Any) -> None:
        self.set_value(prop, value)

    def __contains__(self, prop: ProtocolProperty) -> bool:
        return prop in self.values

    @property
    def key(self) -> Any:
        return self.get_value(ProtocolProperty.KEY)

    @property
    def etag(self) -> Any:
        return self.get_value(ProtocolProperty.ETAG)

    @property
    def url(self) -> Any:
        return self.get_value(ProtocolProperty.URL)

    def copy_info(self) -> ProtocolInfo:
        return self.model_copy(update={"values": dict(self.values)})


class ProtocolObject:
    """Mixin for types that carry a :class:`ProtocolInfo` natively."""

    @property
    def info(self) -> ProtocolInfo | None:
        return self.__dict__.get("_sdata_info")

    @info.setter
    def info(self, value: ProtocolInfo | None) -> None:
        self.__dict__["_sdata_info"] = value

    def ensure_info(self) -> ProtocolInfo:
        info = self.info
        if info is None:
            info = self.info = ProtocolInfo()
        return info


class Resource(ProtocolObject, dict):
    """A record: ordered field name -> value map with optional metadata."""

    def __init__(
        self,
        fields: Mapping[str, Any] | Iterable[tuple[str, Any]] = (),
        /,
        *,
        info: ProtocolInfo | None = None,
        **kwargs: Any,
    ):
        dict.__init__(self, fields, **kwargs)
        self.info = info

    def __repr__(self) -> str:
        if self.info is None:
            return f"Resource({dict.__repr__(self)})"
        return f"Resource({dict.__repr__(self)}, info={self.info!r})"

    def copy(self) -> Resource:
        return Resource(self, info=self.info)


class Collection(ProtocolObject, list):
    """An ordered sequence of items with optional metadata.

    ``item_type`` is the element type when every item shares one concrete
    type, else ``object``.
    """

    def __init__(
        self,
        items: Iterable[Any] = (),
        /,
        *,
        item_type: type = object,
        info: ProtocolInfo | None = None,
    ):
        list.__init__(self, items)
        self.item_type = item_type
        self.info = info

    def __repr__(self) -> str:
        name = getattr(self.item_type, "__name__", repr(self.item_type))
        return f"Collection[{name}]({list.__repr__(self)})"

    def copy(self) -> Collection:
        return Collection(self, item_type=self.item_type, info=self.info)
