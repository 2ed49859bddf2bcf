# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from .annotations import (
    Ignore,
    Name,
    ProtocolMember,
    SimpleArray,
    XmlArrayItem,
    XmlElement,
    get_resource_path,
    get_schema_type,
    resource_path,
    schema_type,
)
from .mapper import (
    ContentMapper,
    Shape,
    as_collection,
    as_dictionaries,
    as_dictionary,
    classify,
    deserialize,
    get_protocol_value,
    is_collection,
    is_dictionary,
    is_object,
    is_scalar,
    serialize,
    set_protocol_value,
    to_typed_collection,
)
from .naming import (
    CAMEL_CASE,
    DEFAULT,
    LOWER_CASE,
    PASCAL_CASE,
    UPPER_CASE,
    NamingScheme,
    get_naming_scheme,
)
from .protocol import (
    PROTOCOL_PREFIX,
    Collection,
    ProtocolInfo,
    ProtocolObject,
    ProtocolProperty,
    Resource,
)

__all__ = (
    "PROTOCOL_PREFIX",
    "Collection",
    "ContentMapper",
    "ProtocolInfo",
    "ProtocolObject",
    "ProtocolProperty",
    "Resource",
    "Shape",
    "NamingScheme",
    "DEFAULT",
    "PASCAL_CASE",
    "CAMEL_CASE",
    "LOWER_CASE",
    "UPPER_CASE",
    "get_naming_scheme",
    "Ignore",
    "Name",
    "ProtocolMember",
    "SimpleArray",
    "XmlArrayItem",
    "XmlElement",
    "schema_type",
    "resource_path",
    "get_schema_type",
    "get_resource_path",
    "classify",
    "is_scalar",
    "is_dictionary",
    "is_collection",
    "is_object",
    "as_dictionary",
    "as_collection",
    "as_dictionaries",
    "to_typed_collection",
    "serialize",
    "deserialize",
    "get_protocol_value",
    "set_protocol_value",
)
