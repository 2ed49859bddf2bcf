# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Multipart bodies: framing outbound parts and splitting inbound ones."""

from __future__ import annotations

import secrets
from collections.abc import Iterable
from dataclasses import dataclass, field
from email import policy
from email.parser import BytesParser

from ._errors import DeserializationError

__all__ = ("MimePart", "MimeMessage")

_CRLF = b"\r\n"


@dataclass(slots=True)
class MimePart:
    content: bytes
    content_type: str | None = None
    disposition: str | None = None
    transfer_encoding: str | None = None

    @property
    def is_attachment(self) -> bool:
        return bool(self.disposition) and (
            self.disposition.split(";", 1)[0].strip().lower() == "attachment"
        )

    def headers(self) -> list[tuple[str, str]]:
        headers = []
        if self.content_type:
            headers.append(("Content-Type", self.content_type))
        if self.disposition:
            headers.append(("Content-Disposition", self.disposition))
        if self.transfer_encoding:
            headers.append(("Content-Transfer-Encoding", self.transfer_encoding))
        return headers


@dataclass(slots=True)
class MimeMessage:
    """An ordered list of parts separated by ``boundary``."""

    parts: list[MimePart] = field(default_factory=list)
    boundary: str = field(default_factory=lambda: f"sdata-{secrets.token_hex(16)}")

    def to_bytes(self) -> bytes:
        delimiter = b"--" + self.boundary.encode("ascii")
        chunks = []
        for part in self.parts:
            chunks.append(delimiter + _CRLF)
            for name, value in part.headers():
                chunks.append(f"{name}: {value}".encode("utf-8") + _CRLF)
            chunks.append(_CRLF)
            chunks.append(part.content)
            chunks.append(_CRLF)
        chunks.append(delimiter + b"--" + _CRLF)
        return b"".join(chunks)

    @classmethod
    def parse(cls, body: bytes, content_type: str) -> MimeMessage:
        """Split an inbound multipart body announced by ``content_type``."""
        header = f"Content-Type: {content_type}\r\n\r\n".encode("utf-8")
        message = BytesParser(policy=policy.HTTP).parsebytes(header + body)
        if not message.is_multipart():
            raise DeserializationError.from_value(
                content_type,
                expected="multipart/*",
                message="Body is not a multipart message",
            )
        return cls(
            parts=list(_parts(message.iter_parts())),
            boundary=message.get_boundary(),
        )


def _parts(parts: Iterable) -> Iterable[MimePart]:
    for part in parts:
        yield MimePart(
            content=part.get_payload(decode=True) or b"",
            content_type=_header(part, "Content-Type"),
            disposition=_header(part, "Content-Disposition"),
            transfer_encoding=_header(part, "Content-Transfer-Encoding"),
        )


def _header(part, name: str) -> str | None:
    # raw value as framed; the parsed header object renders a normalized form
    name = name.lower()
    for key, value in part.raw_items():
        if key.lower() == name:
            return value
    return None
