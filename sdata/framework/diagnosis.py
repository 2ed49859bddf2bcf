# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..content.protocol import PROTOCOL_PREFIX, ProtocolObject, ProtocolProperty

__all__ = ("Diagnosis",)

_DIAGNOSIS_FIELDS = frozenset({"severity", "sdataCode", "applicationCode", "message"})
_CONTAINER_KEYS = ("diagnoses", "diagnosis", "$diagnoses")


class Diagnosis(BaseModel):
    """One error or warning record reported by an SData service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    severity: str | None = None
    sdata_code: str | None = Field(default=None, alias="sdataCode")
    application_code: str | None = Field(default=None, alias="applicationCode")
    message: str | None = None
    stack_trace: str | None = Field(default=None, alias="stackTrace")
    payload_path: str | None = Field(default=None, alias="payloadPath")

    @classmethod
    def from_content(cls, content: Any) -> list[Diagnosis]:
        """Collect the diagnoses found anywhere in parsed error content."""
        return [
            cls.model_validate(
                {k.removeprefix(PROTOCOL_PREFIX): _text(v) for k, v in record.items()}
            )
            for record in _records(content)
        ]


def _text(value: Any) -> Any:
    return None if value is None else str(value)


def _is_diagnosis(record: Mapping) -> bool:
    return any(
        str(k).removeprefix(PROTOCOL_PREFIX) in _DIAGNOSIS_FIELDS for k in record
    )


def _records(content: Any) -> Iterator[Mapping]:
    if isinstance(content, ProtocolObject) and content.info is not None:
        if (nested := content.info.get_value(ProtocolProperty.DIAGNOSES)) is not None:
            yield from _records(nested)
    if isinstance(content, Mapping):
        if _is_diagnosis(content):
            yield content
            return
        for key in _CONTAINER_KEYS:
            if key in content:
                yield from _records(content[key])
    elif isinstance(content, list):
        for item in content:
            yield from _records(item)
