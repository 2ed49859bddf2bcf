# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from .atom_handler import AtomHandler
from .handler import ContentHandler, ContentHandlerRegistry
from .json_handler import JsonHandler
from .text_handler import BinaryHandler, FormHandler, TextHandler
from .xml_handler import XmlHandler

content_handlers = ContentHandlerRegistry()
for _handler in (
    JsonHandler,
    XmlHandler,
    AtomHandler,
    TextHandler,
    BinaryHandler,
    FormHandler,
):
    content_handlers.register(_handler)
del _handler

__all__ = (
    "ContentHandler",
    "ContentHandlerRegistry",
    "content_handlers",
    "AtomHandler",
    "BinaryHandler",
    "FormHandler",
    "JsonHandler",
    "TextHandler",
    "XmlHandler",
)
