# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Plain text, opaque binary and url-encoded form content."""

from __future__ import annotations

from collections.abc import Mapping
from email.message import Message
from typing import Any, BinaryIO, ClassVar

import httpx

from ..._errors import SerializationError
from ...media import MediaType
from ..mapper import ContentMapper
from ..naming import NamingScheme
from ..protocol import Resource
from .xml_handler import format_scalar

__all__ = ("TextHandler", "BinaryHandler", "FormHandler", "charset_of")


def charset_of(content_type: str | None, default: str = "utf-8") -> str:
    if not content_type:
        return default
    message = Message()
    message["Content-Type"] = content_type
    return message.get_content_charset(default)


class TextHandler:
    media_types: ClassVar[tuple[MediaType, ...]] = (
        MediaType.TEXT,
        MediaType.HTML,
        MediaType.CSS,
        MediaType.XSLT,
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
        text = value if isinstance(value, str) else format_scalar(value)
        stream.write(text.encode("utf-8"))
        return f"{MediaType.TEXT.mime}; charset=utf-8"

    @classmethod
    def read(
        cls, stream: BinaryIO, /, *, content_type: str | None = None
    ) -> str:
        return stream.read().decode(charset_of(content_type), errors="replace")


class BinaryHandler:
    media_types: ClassVar[tuple[MediaType, ...]] = (
        MediaType.IMAGE_PNG,
        MediaType.IMAGE_JPEG,
        MediaType.IMAGE_GIF,
        MediaType.IMAGE_TIFF,
        MediaType.IMAGE_BMP,
        MediaType.BSON,
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
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise SerializationError.from_value(
                value, expected="bytes", message="Binary content must be bytes"
            )
        stream.write(value)
        return "application/octet-stream"

    @classmethod
    def read(
        cls, stream: BinaryIO, /, *, content_type: str | None = None
    ) -> bytes:
        return stream.read()


class FormHandler:
    media_types: ClassVar[tuple[MediaType, ...]] = (MediaType.FORM,)

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
        if not isinstance(content, Mapping):
            raise SerializationError.from_value(
                content, message="Form content must be a record"
            )
        params = httpx.QueryParams(
            [
                (key, "" if item is None else format_scalar(element))
                for key, item in content.items()
                for element in (item if isinstance(item, list) else [item])
            ]
        )
        stream.write(str(params).encode("ascii"))
        return MediaType.FORM.mime

    @classmethod
    def read(
        cls, stream: BinaryIO, /, *, content_type: str | None = None
    ) -> Resource:
        params = httpx.QueryParams(stream.read().decode("ascii", errors="replace"))
        resource = Resource()
        for key in params.keys():
            values = params.get_list(key)
            resource[key] = values[0] if len(values) == 1 else values
        return resource
