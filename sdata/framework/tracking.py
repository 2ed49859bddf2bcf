# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Progress envelope returned by long-running SData operations."""

from __future__ import annotations

from xml.parsers.expat import ExpatError

import xmltodict
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..content.handlers.xml_handler import SDATA_NS, local_name

__all__ = ("SDataTracking",)


class SDataTracking(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    phase: str | None = None
    phase_detail: str | None = Field(default=None, alias="phaseDetail")
    progress: float | None = None
    elapsed_seconds: int | None = Field(default=None, alias="elapsedSeconds")
    remaining_seconds: int | None = Field(default=None, alias="remainingSeconds")
    polling_millis: int | None = Field(default=None, alias="pollingMillis")

    @classmethod
    def probe(cls, data: bytes) -> SDataTracking | None:
        """Parse ``data`` as a tracking envelope, None when it is not one."""
        try:
            document = xmltodict.parse(data, process_namespaces=True)
        except ExpatError:
            return None
        (root, node), = document.items()
        if root != f"{SDATA_NS}:tracking":
            return None
        if not isinstance(node, dict):
            node = {}
        values = {
            local_name(k): v
            for k, v in node.items()
            if not k.startswith("@") and k.startswith(SDATA_NS)
        }
        try:
            return cls.model_validate(values)
        except ValidationError:
            return None
