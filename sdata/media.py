# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from enum import Enum

__all__ = ("MediaType", "HttpMethod")


class MediaType(str, Enum):
    """Media types understood by the client, valued by MIME string."""

    TEXT = "text/plain"
    HTML = "text/html"
    ATOM = "application/atom+xml"
    ATOM_ENTRY = "application/atom+xml;type=entry"
    RSS = "application/rss+xml"
    XML = "application/xml"
    IMAGE_PNG = "image/png"
    IMAGE_JPEG = "image/jpeg"
    IMAGE_GIF = "image/gif"
    IMAGE_TIFF = "image/tiff"
    IMAGE_BMP = "image/bmp"
    XSLT = "application/xslt+xml"
    CSS = "text/css"
    JSON = "application/json"
    BSON = "application/bson"
    FORM = "application/x-www-form-urlencoded"
    MULTIPART = "multipart/related"

    @property
    def mime(self) -> str:
        return self.value

    @classmethod
    def from_mime(cls, content_type: str | None) -> MediaType | None:
        """Parse a Content-Type header value.

        Parameters other than ``type=entry`` on Atom are ignored. Returns
        None for anything unrecognised.
        """
        if not content_type:
            return None
        essence, *params = (p.strip() for p in content_type.split(";"))
        essence = essence.lower()
        if essence == "application/atom+xml":
            for param in params:
                name, _, value = param.partition("=")
                if name.strip().lower() == "type" and (
                    value.strip().strip('"').lower() == "entry"
                ):
                    return cls.ATOM_ENTRY
            return cls.ATOM
        if essence.startswith("multipart/"):
            return cls.MULTIPART
        return _ALIASES.get(essence)


_ALIASES: dict[str, MediaType] = {
    m.value: m for m in MediaType if m is not MediaType.ATOM_ENTRY
}
_ALIASES.update(
    {
        "text/xml": MediaType.XML,
        "application/jpeg": MediaType.IMAGE_JPEG,
        "image/jpg": MediaType.IMAGE_JPEG,
        "text/xsl": MediaType.XSLT,
        "text/json": MediaType.JSON,
    }
)


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
