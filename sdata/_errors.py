# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Error hierarchy for the SData client.

Every failure surfaced to callers derives from :class:`SDataError`. The
class attribute ``code`` is the machine-readable classification value.
"""

from __future__ import annotations

from typing import Any, ClassVar

__all__ = (
    "SDataError",
    "TransportError",
    "TransportTimeoutError",
    "SDataProtocolError",
    "MappingError",
    "SerializationError",
    "DeserializationError",
    "UsageError",
    "RequestInProgressError",
    "RequestAbortedError",
    "UnsupportedContentTypeError",
)


class SDataError(Exception):
    """Base for all SData client errors."""

    default_message: ClassVar[str] = "SData error"
    default_status_code: ClassVar[int] = 500
    code: ClassVar[str] = "sdata_error"

    __slots__ = ("message", "details", "status_code", "context")

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message or self.default_message)
        if cause:
            self.__cause__ = cause  # preserves traceback
        self.message = message or self.default_message
        self.details = details or {}
        self.status_code = status_code or type(self).default_status_code
        self.context = context or {}

    def to_dict(self, *, include_cause: bool = False) -> dict[str, Any]:
        data = {
            "error": self.__class__.__name__,
            "code": type(self).code,
            "message": self.message,
            "status_code": self.status_code,
            **({"details": self.details} if self.details else {}),
            **({"context": self.context} if self.context else {}),
        }
        if include_cause and (cause := self.get_cause()):
            data["cause"] = repr(cause)
        return data

    def get_cause(self) -> BaseException | None:
        """Get the cause of this error, if any."""
        return self.__cause__

    @classmethod
    def from_value(
        cls,
        value: Any,
        *,
        expected: str | None = None,
        message: str | None = None,
        cause: BaseException | None = None,
        **extra: Any,
    ):
        """Create an error describing an offending value."""
        details = {
            "value": value,
            "type": type(value).__name__,
            **({"expected": expected} if expected else {}),
            **extra,
        }
        return cls(message=message, details=details, cause=cause)


class TransportError(SDataError):
    """The HTTP exchange failed below the protocol level."""

    default_message = "Transport failure"
    default_status_code = 503
    code = "transport_failure"


class TransportTimeoutError(TransportError):
    """Every attempt timed out and the retry budget is spent."""

    default_message = "Transport timeout, retry budget exhausted"
    default_status_code = 504
    code = "transport_timeout_exhausted"


class SDataProtocolError(SDataError):
    """The server answered with a failure status.

    ``content`` holds whatever could be parsed from the response body and
    ``diagnoses`` the SData diagnosis records found in it.
    """

    default_message = "Protocol status failure"
    code = "protocol_status_failure"

    __slots__ = ("content", "diagnoses")

    def __init__(
        self,
        message: str | None = None,
        *,
        content: Any = None,
        diagnoses: list | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.content = content
        self.diagnoses = diagnoses or []


class MappingError(SDataError):
    """Content could not be mapped between typed and generic form."""

    default_message = "Content mapping failed"
    default_status_code = 422
    code = "mapping_failure"


class SerializationError(MappingError):
    default_message = "Serialization failed"
    code = "serialization_failure"


class DeserializationError(MappingError):
    default_message = "Deserialization failed"
    code = "deserialization_failure"


class UsageError(SDataError):
    """The caller used the API incorrectly; raised before any I/O."""

    default_message = "Invalid usage"
    default_status_code = 400
    code = "usage_error"


class RequestInProgressError(UsageError):
    default_message = "Existing request in progress"
    default_status_code = 409
    code = "concurrent_request_in_progress"


class RequestAbortedError(SDataError):
    default_message = "Request aborted"
    default_status_code = 499
    code = "request_aborted"


class UnsupportedContentTypeError(SDataError):
    default_message = "Content type not supported"
    default_status_code = 415
    code = "unsupported_content_type"
