# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import io
import logging
from http import HTTPStatus
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from .._errors import DeserializationError
from ..content.handlers import TextHandler, XmlHandler, content_handlers
from ..media import MediaType
from ..mime import MimeMessage
from .attached_file import AttachedFile
from .diagnosis import Diagnosis
from .tracking import SDataTracking

__all__ = ("SDataResponse", "read_content")

logger = logging.getLogger(__name__)


def _read_single(body: bytes, content_type: str | None) -> Any:
    if not body:
        return None
    media_type = MediaType.from_mime(content_type)
    stream = io.BytesIO(body)
    if media_type is MediaType.XML:
        tracking = SDataTracking.probe(body)
        if tracking is not None:
            return tracking
        logger.debug("XML content is not a tracking envelope, reading as text")
        return TextHandler.read(stream, content_type=content_type)
    handler = content_handlers.find(media_type)
    if handler is None:
        return TextHandler.read(stream, content_type=content_type)
    return handler.read(stream, content_type=content_type)


def read_content(
    body: bytes, content_type: str | None
) -> tuple[Any, tuple[AttachedFile, ...]]:
    """Parse a response body into its content and attached files."""
    if MediaType.from_mime(content_type) is not MediaType.MULTIPART:
        return _read_single(body, content_type), ()

    content = None
    files = []
    for part in MimeMessage.parse(body, content_type).parts:
        if content is None and not part.is_attachment:
            content = _read_single(part.content, part.content_type)
        else:
            files.append(AttachedFile.from_part(part))
    return content, tuple(files)


def _diagnoses(content: Any, content_type: str | None) -> tuple[Diagnosis, ...]:
    if isinstance(content, str) and MediaType.from_mime(content_type) is MediaType.XML:
        try:
            content = XmlHandler.read(io.BytesIO(content.encode("utf-8")))
        except DeserializationError:
            return ()
    return tuple(Diagnosis.from_content(content))


class SDataResponse(BaseModel):
    """The outcome of one logical request, immutable once built."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status_code: int
    reason_phrase: str | None = None
    content_type: MediaType | None = None
    etag: str | None = None
    location: str | None = None
    content: Any = None
    files: tuple[AttachedFile, ...] = ()
    diagnoses: tuple[Diagnosis, ...] = ()

    @property
    def is_success(self) -> bool:
        return self.status_code < 400

    @classmethod
    def from_httpx(
        cls, response: httpx.Response, redirect_location: str | None = None
    ) -> SDataResponse:
        header = response.headers.get("content-type")
        if response.status_code == HTTPStatus.NO_CONTENT:
            content, files = None, ()
        else:
            content, files = read_content(response.content, header)
        return cls(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase or None,
            content_type=MediaType.from_mime(header),
            etag=response.headers.get("etag"),
            location=response.headers.get("location") or redirect_location,
            content=content,
            files=files,
            diagnoses=(
                _diagnoses(content, header) if response.status_code >= 400 else ()
            ),
        )
