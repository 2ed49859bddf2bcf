# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Atom feeds and entries wrapping the SData XML payload."""

from __future__ import annotations

from typing import Any, BinaryIO, ClassVar
from xml.parsers.expat import ExpatError

import xmltodict

from ..._errors import DeserializationError, SerializationError
from ...media import MediaType
from ..mapper import ContentMapper
from ..naming import NamingScheme
from ..protocol import Collection, ProtocolInfo, ProtocolProperty, Resource
from .xml_handler import SDATA_NS, XSI_NS, XmlHandler, format_scalar, local_name

__all__ = ("AtomHandler",)

ATOM_NS = "http://www.w3.org/2005/Atom"
HTTP_NS = "http://schemas.sage.com/sdata/http/2008/1"
OPENSEARCH_NS = "http://a9.com/-/spec/opensearch/1.1/"

_NAMESPACES = {
    "@xmlns": ATOM_NS,
    "@xmlns:sdata": SDATA_NS,
    "@xmlns:http": HTTP_NS,
    "@xmlns:opensearch": OPENSEARCH_NS,
    "@xmlns:xsi": XSI_NS,
}

_ATOM_VALUES = (
    ("id", ProtocolProperty.ID),
    ("title", ProtocolProperty.TITLE),
    ("updated", ProtocolProperty.UPDATED),
)
_HTTP_VALUES = tuple(
    (f"http:{p.value}", p)
    for p in (
        ProtocolProperty.HTTP_METHOD,
        ProtocolProperty.HTTP_STATUS,
        ProtocolProperty.HTTP_MESSAGE,
        ProtocolProperty.LOCATION,
        ProtocolProperty.ETAG,
        ProtocolProperty.IF_MATCH,
    )
)
_OPENSEARCH_VALUES = tuple(
    (f"opensearch:{p.value}", p)
    for p in (
        ProtocolProperty.TOTAL_RESULTS,
        ProtocolProperty.START_INDEX,
        ProtocolProperty.ITEMS_PER_PAGE,
    )
)
_ENTRY_ONLY = frozenset(p for _, p in _ATOM_VALUES + _HTTP_VALUES)


def _text(node: Any) -> Any:
    if isinstance(node, dict):
        return node.get("#text")
    return node


class AtomHandler:
    media_types: ClassVar[tuple[MediaType, ...]] = (
        MediaType.ATOM,
        MediaType.ATOM_ENTRY,
    )

    @classmethod
    def write(
        cls,
        value: Any,
        stream: BinaryIO,
        /,
        *,
        naming_scheme: NamingScheme | str | None = None,
    ) -> str:
        content = ContentMapper(naming_scheme).serialize(value)
        if isinstance(content, Resource):
            document = {"entry": {**_NAMESPACES, **cls._entry_node(content)}}
            media_type = MediaType.ATOM_ENTRY
        elif isinstance(content, Collection):
            document = {"feed": {**_NAMESPACES, **cls._feed_node(content)}}
            media_type = MediaType.ATOM
        else:
            raise SerializationError.from_value(
                content, message="Only records and collections can be written as Atom"
            )
        stream.write(xmltodict.unparse(document).encode("utf-8"))
        return media_type.mime

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
                f"Invalid Atom content: {exc}", cause=exc
            ) from exc
        (root, node), = document.items()
        match local_name(root):
            case "feed":
                return cls._read_feed(node or {})
            case "entry":
                return cls._read_entry(node or {})
        raise DeserializationError.from_value(
            root, expected="feed or entry", message=f"Unexpected Atom root '{root}'"
        )

    # ------------------------------------------------------------------ #
    @staticmethod
    def _values_node(info: ProtocolInfo | None, tags) -> dict[str, str]:
        if info is None:
            return {}
        return {
            tag: format_scalar(info.get_value(prop))
            for tag, prop in tags
            if info.get_value(prop) is not None
        }

    @classmethod
    def _entry_node(cls, resource: Resource) -> dict[str, Any]:
        info = resource.info
        node = cls._values_node(info, _ATOM_VALUES + _HTTP_VALUES)
        payload_info = None
        if info is not None:
            payload_info = info.copy_info()
            for prop in _ENTRY_ONLY:
                payload_info.set_value(prop, None)
        payload = Resource(resource, info=payload_info)
        name = (info and info.xml_local_name) or "resource"
        body = XmlHandler.resource_node(payload)
        if info is not None and info.xml_namespace:
            body = {"@xmlns": info.xml_namespace, **body}
        node["sdata:payload"] = {name: body}
        return node

    @classmethod
    def _feed_node(cls, collection: Collection) -> dict[str, Any]:
        node = cls._values_node(
            collection.info, _ATOM_VALUES + _OPENSEARCH_VALUES
        )
        entries = []
        for item in collection:
            if not isinstance(item, Resource):
                raise SerializationError.from_value(
                    item, message="Atom feed entries must be records"
                )
            entries.append(cls._entry_node(item))
        if entries:
            node["entry"] = entries
        return node

    @staticmethod
    def _read_values(node: dict, info: ProtocolInfo, tags) -> None:
        by_local = {local_name(t): p for t, p in tags}
        for key, value in node.items():
            if (prop := by_local.get(local_name(key))) is not None:
                info.set_value(prop, _text(value))

    @classmethod
    def _read_entry(cls, node: dict) -> Resource:
        payload = next(
            (v for k, v in node.items() if local_name(k) == "payload"), None
        )
        resource = None
        if isinstance(payload, dict):
            children = {k: v for k, v in payload.items() if not k.startswith("@")}
            if children:
                (name, body), = list(children.items())[:1]
                value = XmlHandler.read_element(name, body)
                resource = value if isinstance(value, Resource) else None
        if resource is None:
            resource = Resource(info=ProtocolInfo())
        info = resource.ensure_info()
        cls._read_values(node, info, _ATOM_VALUES + _HTTP_VALUES)
        return resource

    @classmethod
    def _read_feed(cls, node: dict) -> Collection:
        info = ProtocolInfo()
        cls._read_values(node, info, _ATOM_VALUES + _OPENSEARCH_VALUES)
        entries = next(
            (v for k, v in node.items() if local_name(k) == "entry"), []
        )
        return Collection(
            (cls._read_entry(e or {}) for e in (entries if isinstance(entries, list) else [entries])),
            info=info,
        )
