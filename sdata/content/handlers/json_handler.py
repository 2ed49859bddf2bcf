# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""SData JSON format.

A resource is a JSON object whose protocol values are ``$``-prefixed keys
next to the data fields. A collection is ``{"$resources": [...]}`` carrying
its own protocol values (``$totalResults``...), or a bare array when it is
a simple array or holds only scalars.
"""

from __future__ import annotations

import base64
import logging
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from fractions import Fraction
from typing import Any, BinaryIO, ClassVar

import httpx
import orjson

from ..._errors import DeserializationError
from ...media import MediaType
from ..mapper import ContentMapper, is_scalar
from ..naming import NamingScheme
from ..protocol import (
    PROTOCOL_PREFIX,
    Collection,
    ProtocolInfo,
    ProtocolProperty,
    Resource,
)

__all__ = ("JsonHandler",)

logger = logging.getLogger(__name__)

RESOURCES_KEY = "$resources"

# /Date(1262304000000)/ or /Date(1262304000000+0100)/
_DATE_PATTERN = re.compile(r"^/Date\((-?\d+)(?:([+-])(\d{2})(\d{2}))?\)/$")


def _default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (Decimal, Fraction, complex, httpx.URL)):
        return str(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def parse_date(text: str) -> datetime | None:
    """Parse the ``/Date(ms±hhmm)/`` notation, None for anything else."""
    match = _DATE_PATTERN.match(text)
    if match is None:
        return None
    millis, sign, hours, minutes = match.groups()
    value = datetime.fromtimestamp(int(millis) / 1000, tz=timezone.utc)
    if sign:
        offset = timedelta(hours=int(hours), minutes=int(minutes))
        value = value.astimezone(timezone(-offset if sign == "-" else offset))
    return value


class JsonHandler:
    media_types: ClassVar[tuple[MediaType, ...]] = (MediaType.JSON,)

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
        stream.write(orjson.dumps(cls.to_json(content), default=_default))
        return MediaType.JSON.mime

    @classmethod
    def read(
        cls, stream: BinaryIO, /, *, content_type: str | None = None
    ) -> Any:
        data = stream.read()
        if not data.strip():
            return None
        try:
            return cls.from_json(orjson.loads(data))
        except orjson.JSONDecodeError as exc:
            raise DeserializationError(
                f"Invalid JSON content: {exc}", cause=exc
            ) from exc

    # ------------------------------------------------------------------ #
    # generic content <-> JSON values                                    #
    # ------------------------------------------------------------------ #
    @classmethod
    def to_json(cls, value: Any) -> Any:
        if isinstance(value, Resource):
            result = cls._protocol_values(value.info)
            result.update((k, cls.to_json(v)) for k, v in value.items())
            return result
        if isinstance(value, Collection):
            items = [cls.to_json(item) for item in value]
            info = value.info
            if (info is not None and info.json_is_simple_array) or (
                (info is None or not info.values)
                and all(is_scalar(item) for item in value)
            ):
                return items
            result = cls._protocol_values(info)
            result[RESOURCES_KEY] = items
            return result
        if isinstance(value, dict):
            return {str(k): cls.to_json(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [cls.to_json(v) for v in value]
        return value

    @classmethod
    def _protocol_values(cls, info: ProtocolInfo | None) -> dict[str, Any]:
        if info is None:
            return {}
        return {
            prop.wire_name: cls.to_json(v) for prop, v in info.values.items()
        }

    @classmethod
    def from_json(cls, value: Any) -> Any:
        if isinstance(value, dict):
            info = None
            fields: dict[str, Any] = {}
            items = None
            for key, item in value.items():
                if key == RESOURCES_KEY:
                    items = item if isinstance(item, list) else [item]
                    continue
                prop = (
                    ProtocolProperty.lookup(key)
                    if key.startswith(PROTOCOL_PREFIX)
                    else None
                )
                if prop is None:
                    fields[key] = cls.from_json(item)
                else:
                    if info is None:
                        info = ProtocolInfo()
                    info.set_value(prop, cls.from_json(item))
            if items is not None:
                return Collection(
                    (cls.from_json(i) for i in items),
                    info=info or ProtocolInfo(),
                )
            return Resource(fields, info=info)
        if isinstance(value, list):
            return Collection(
                (cls.from_json(v) for v in value),
                info=ProtocolInfo(json_is_simple_array=True),
            )
        if isinstance(value, str) and value.startswith("/Date("):
            parsed = parse_date(value)
            if parsed is not None:
                return parsed
            logger.debug("Unparseable date literal kept as text: %r", value)
        return value
