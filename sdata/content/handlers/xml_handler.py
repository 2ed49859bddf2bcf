# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""SData XML payload format.

A resource is an element named by its schema name carrying its protocol
values as ``sdata:`` attributes, each field a child element. A nested
collection is a wrapper element holding one element per item, or when
flat the items repeated directly under the parent. ``xsi:nil`` marks None.

Reading is shape-driven: an element is a collection when its children are
repeated elements of one name, or a single resource carrying protocol
attributes. A lone scalar item inside a wrapper reads as a record.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping
from datetime import date, time, timedelta
from enum import Enum
from typing import Any, BinaryIO, ClassVar
from xml.etree import ElementTree
from xml.parsers.expat import ExpatError

import xmltodict

from ..._errors import DeserializationError, SerializationError
from ...media import MediaType
from ..mapper import ContentMapper
from ..naming import NamingScheme
from ..protocol import Collection, ProtocolInfo, ProtocolProperty, Resource

__all__ = (
    "SDATA_NS",
    "XSI_NS",
    "XmlHandler",
    "format_scalar",
    "local_name",
)

logger = logging.getLogger(__name__)

SDATA_NS = "http://schemas.sage.com/sdata/2008/1"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

# attributes identifying a record as a member of a collection
_ITEM_MARKERS = frozenset(
    {ProtocolProperty.KEY, ProtocolProperty.URL, ProtocolProperty.UUID}
)


def local_name(name: str) -> str:
    return name.rpartition(":")[2]


def _iso_duration(value: timedelta) -> str:
    seconds = value.seconds + value.microseconds / 1_000_000
    return f"P{value.days}DT{seconds:g}S"


def format_scalar(value: Any) -> str:
    """Invariant text form of a scalar."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return _iso_duration(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _as_list(node: Any) -> list:
    return node if isinstance(node, list) else [node]


class XmlHandler:
    media_types: ClassVar[tuple[MediaType, ...]] = (MediaType.XML,)

    @classmethod
    def write(
        cls,
        value: Any,
        stream: BinaryIO,
        /,
        *,
        naming_scheme: NamingScheme | str | None = None,
    ) -> str:
        if isinstance(value, ElementTree.Element):
            stream.write(ElementTree.tostring(value, encoding="utf-8"))
            return MediaType.XML.mime

        content = ContentMapper(naming_scheme).serialize(value)
        if isinstance(content, Resource):
            info = content.info
            name = (info and info.xml_local_name) or "resource"
            node = cls.resource_node(content)
            if info is not None and info.xml_namespace:
                node = {"@xmlns": info.xml_namespace, **node}
        elif isinstance(content, Collection):
            name = "resources"
            node = cls.collection_node(content)
        else:
            raise SerializationError.from_value(
                content, message="Only records and collections can be written as XML"
            )
        node = {"@xmlns:sdata": SDATA_NS, "@xmlns:xsi": XSI_NS, **node}
        stream.write(xmltodict.unparse({name: node}).encode("utf-8"))
        return MediaType.XML.mime

    @classmethod
    def read(
        cls, stream: BinaryIO, /, *, content_type: str | None = None
    ) -> Any:
        data = stream.read()
        if not data.strip():
            return None
        try:
            document = xmltodict.parse(data)
        except ExpatError as exc:
            raise DeserializationError(
                f"Invalid XML content: {exc}", cause=exc
            ) from exc
        (root, node), = document.items()
        return cls.read_element(root, node)

    # ------------------------------------------------------------------ #
    # generic content -> xmltodict nodes                                 #
    # ------------------------------------------------------------------ #
    @classmethod
    def resource_node(cls, resource: Resource) -> dict[str, Any]:
        node = cls._protocol_attributes(resource.info)
        for name, item in resource.items():
            if isinstance(item, Collection) and item.info and item.info.xml_is_flat:
                node[item.info.xml_local_name or name] = [
                    cls.value_node(i) for i in item
                ]
            else:
                node[name] = cls.value_node(item)
        return node

    @classmethod
    def collection_node(cls, collection: Collection) -> dict[str, Any]:
        info = collection.info
        node = cls._protocol_attributes(info)
        item_name = info.xml_local_name if info else None
        for item in collection:
            name = item_name
            if name is None and isinstance(item, Resource) and item.info:
                name = item.info.xml_local_name
            node.setdefault(name or "item", []).append(cls.value_node(item))
        return node

    @classmethod
    def value_node(cls, value: Any) -> Any:
        if value is None:
            return {"@xsi:nil": "true"}
        if isinstance(value, Resource):
            return cls.resource_node(value)
        if isinstance(value, Collection):
            return cls.collection_node(value)
        if isinstance(value, Mapping):
            return cls.resource_node(Resource(value))
        if isinstance(value, (list, tuple)):
            return cls.collection_node(Collection(value))
        return format_scalar(value)

    @staticmethod
    def _protocol_attributes(info: ProtocolInfo | None) -> dict[str, Any]:
        if info is None:
            return {}
        attributes = {}
        for prop, value in info.values.items():
            if isinstance(value, (Mapping, list)):
                logger.debug("Protocol value %s not representable as attribute", prop.wire_name)
                continue
            attributes[f"@sdata:{prop.value}"] = format_scalar(value)
        return attributes

    # ------------------------------------------------------------------ #
    # xmltodict nodes -> generic content                                 #
    # ------------------------------------------------------------------ #
    @classmethod
    def read_element(cls, name: str, node: Any) -> Any:
        if node is None or isinstance(node, str):
            return node

        info = ProtocolInfo(xml_local_name=local_name(name))
        for attr, value in node.items():
            if not attr.startswith("@"):
                continue
            attr = attr[1:]
            if attr == "xmlns":
                info.xml_namespace = value
            elif attr.startswith("xmlns:"):
                continue
            elif local_name(attr) == "nil":
                if value.strip().lower() == "true":
                    return None
            elif (prop := ProtocolProperty.lookup(local_name(attr))) is not None:
                info.set_value(prop, value)

        children = {
            k: v for k, v in node.items() if not k.startswith("@") and k != "#text"
        }
        if not children:
            return Resource(info=info) if info.values else node.get("#text")

        if cls._is_collection(children):
            (child_name, child), = children.items()
            info.xml_local_name = local_name(child_name)
            return Collection(
                (cls.read_element(child_name, c) for c in _as_list(child)),
                info=info,
            )

        resource = Resource(info=info)
        for child_name, child in children.items():
            key = local_name(child_name)
            if isinstance(child, list):
                resource[key] = Collection(
                    (cls.read_element(child_name, c) for c in child),
                    info=ProtocolInfo(xml_local_name=key, xml_is_flat=True),
                )
            else:
                resource[key] = cls.read_element(child_name, child)
        return resource

    @staticmethod
    def _is_collection(children: dict[str, Any]) -> bool:
        if len(children) != 1:
            return False
        (child,) = children.values()
        if isinstance(child, list):
            return True
        if not isinstance(child, dict):
            return False
        return any(
            ProtocolProperty.lookup(local_name(k[1:])) in _ITEM_MARKERS
            for k in child
            if k.startswith("@")
        )
