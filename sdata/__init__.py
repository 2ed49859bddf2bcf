# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

import logging

from ._errors import (
    DeserializationError,
    MappingError,
    RequestAbortedError,
    RequestInProgressError,
    SDataError,
    SDataProtocolError,
    SerializationError,
    TransportError,
    TransportTimeoutError,
    UnsupportedContentTypeError,
    UsageError,
)
from ._sentinel import Undefined
from .client import SDataClient, SDataParameters, SDataResult, format_constant
from .config import SDataSettings, settings
from .content import (
    Collection,
    ContentMapper,
    ProtocolInfo,
    ProtocolObject,
    ProtocolProperty,
    Resource,
    deserialize,
    get_protocol_value,
    serialize,
    set_protocol_value,
)
from .framework import (
    AttachedFile,
    Diagnosis,
    SDataRequest,
    SDataResponse,
    SDataTracking,
)
from .media import HttpMethod, MediaType
from .version import __version__

logger = logging.getLogger(__name__)

__all__ = (
    "__version__",
    "AttachedFile",
    "Collection",
    "ContentMapper",
    "DeserializationError",
    "Diagnosis",
    "HttpMethod",
    "MappingError",
    "MediaType",
    "ProtocolInfo",
    "ProtocolObject",
    "ProtocolProperty",
    "RequestAbortedError",
    "RequestInProgressError",
    "Resource",
    "SDataClient",
    "SDataError",
    "SDataParameters",
    "SDataProtocolError",
    "SDataRequest",
    "SDataResponse",
    "SDataResult",
    "SDataSettings",
    "SDataTracking",
    "SerializationError",
    "TransportError",
    "TransportTimeoutError",
    "Undefined",
    "UnsupportedContentTypeError",
    "UsageError",
    "deserialize",
    "format_constant",
    "get_protocol_value",
    "logger",
    "serialize",
    "set_protocol_value",
    "settings",
)
