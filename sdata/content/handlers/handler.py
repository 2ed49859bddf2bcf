# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Content handler contract and registry.

A *content handler* is the wire codec of one or more media types. Like the
rest of the conversion helpers it is stateless: both hooks are class
methods.

* :py:meth:`ContentHandler.write` - serialize a value onto a byte stream and
  return the Content-Type actually written
* :py:meth:`ContentHandler.read`  - parse a byte stream into generic content
"""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, ClassVar, Protocol, runtime_checkable

from ..._errors import UnsupportedContentTypeError
from ...media import MediaType
from ..naming import NamingScheme

__all__ = ("ContentHandler", "ContentHandlerRegistry")

logger = logging.getLogger(__name__)


@runtime_checkable
class ContentHandler(Protocol):
    # media types served by the handler
    media_types: ClassVar[tuple[MediaType, ...]]

    @classmethod
    def write(
        cls,
        value: Any,
        stream: BinaryIO,
        /,
        *,
        naming_scheme: NamingScheme | str | None = None,
    ) -> str: ...

    @classmethod
    def read(
        cls, stream: BinaryIO, /, *, content_type: str | None = None
    ) -> Any: ...


class ContentHandlerRegistry:
    """Keeps a mapping ``MediaType -> handler_cls``."""

    def __init__(self) -> None:
        self._reg: dict[MediaType, type[ContentHandler]] = {}

    def register(self, handler_cls: type[ContentHandler]) -> None:
        media_types = getattr(handler_cls, "media_types", None)
        if not media_types:
            raise AttributeError(
                "Content handler class must define 'media_types' attribute"
            )
        for media_type in media_types:
            if media_type in self._reg:
                logger.warning(
                    "Content handler for '%s' replaced: %s -> %s",
                    media_type.mime,
                    self._reg[media_type].__name__,
                    handler_cls.__name__,
                )
            self._reg[media_type] = handler_cls

    def find(self, media_type: MediaType | None) -> type[ContentHandler] | None:
        if media_type is None:
            return None
        return self._reg.get(media_type)

    def get(self, media_type: MediaType) -> type[ContentHandler]:
        if (handler := self.find(media_type)) is None:
            raise UnsupportedContentTypeError(
                f"No content handler registered for '{getattr(media_type, 'mime', media_type)}'",
                details={"content_type": str(getattr(media_type, "mime", media_type))},
            )
        return handler

    def __contains__(self, media_type: MediaType) -> bool:
        return media_type in self._reg
