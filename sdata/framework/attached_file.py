# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import io
import re
from email.headerregistry import HeaderRegistry
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict

from ..mime import MimePart

__all__ = ("AttachedFile", "content_disposition")

_headers = HeaderRegistry()

# whitespace and RFC 2045 tspecials end an unquoted parameter value
_NEEDS_QUOTES = re.compile(r'[\s"\\;,()<>@:/?=\[\]]')


def content_disposition(file_name: str | None) -> str:
    """``attachment`` disposition announcing ``file_name``.

    Non-ASCII names use the RFC 5987 ``filename*`` form.
    """
    if not file_name:
        return "attachment"
    if not file_name.isascii():
        return f"attachment; filename*=utf-8''{quote(file_name, safe='')}"
    if _NEEDS_QUOTES.search(file_name):
        escaped = file_name.replace("\\", "\\\\").replace('"', '\\"')
        return f'attachment; filename="{escaped}"'
    return f"attachment; filename={file_name}"


class AttachedFile(BaseModel):
    """A file sent with, or received in, a multipart body."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    content_type: str | None = None
    file_name: str | None = None
    stream: io.IOBase

    @classmethod
    def from_bytes(
        cls,
        content: bytes,
        file_name: str | None = None,
        content_type: str | None = None,
    ) -> AttachedFile:
        return cls(
            content_type=content_type,
            file_name=file_name,
            stream=io.BytesIO(content),
        )

    @classmethod
    def from_part(cls, part: MimePart) -> AttachedFile:
        file_name = None
        if part.disposition:
            header = _headers("content-disposition", part.disposition)
            # filename* is decoded into filename by the header parser
            file_name = header.params.get("filename")
        return cls(
            content_type=part.content_type,
            file_name=file_name,
            stream=io.BytesIO(part.content),
        )

    def to_part(self) -> MimePart:
        return MimePart(
            content=self.stream.read(),
            content_type=self.content_type or "application/octet-stream",
            disposition=content_disposition(self.file_name),
            transfer_encoding="binary",
        )
