# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for SData client error classes."""

import pytest

from sdata._errors import (
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
from sdata.framework import Diagnosis


class TestSDataError:
    """Tests for base SDataError class."""

    def test_default_initialization(self):
        error = SDataError()
        assert str(error) == "SData error"
        assert error.message == "SData error"
        assert error.details == {}
        assert error.context == {}
        assert error.status_code == 500

    def test_custom_message(self):
        error = SDataError("Custom error message", status_code=404)
        assert str(error) == "Custom error message"
        assert error.status_code == 404

    def test_with_cause(self):
        """Test error with underlying cause."""
        cause = ValueError("Original error")
        error = SDataError("Wrapped error", cause=cause)
        assert error.get_cause() is cause
        assert error.__cause__ is cause

    def test_to_dict(self):
        error = SDataError("Error", details={"key": "value"}, context={"uri": "x"})
        assert error.to_dict() == {
            "error": "SDataError",
            "code": "sdata_error",
            "message": "Error",
            "status_code": 500,
            "details": {"key": "value"},
            "context": {"uri": "x"},
        }

    def test_to_dict_with_cause(self):
        error = SDataError("Error", cause=KeyError("k"))
        assert error.to_dict(include_cause=True)["cause"] == "KeyError('k')"
        assert "cause" not in error.to_dict()

    def test_from_value(self):
        error = DeserializationError.from_value(
            "abc", expected="int", message="Not a number", path="Age"
        )
        assert error.message == "Not a number"
        assert error.details == {
            "value": "abc",
            "type": "str",
            "expected": "int",
            "path": "Age",
        }


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_cls, parent, code",
        [
            (TransportError, SDataError, "transport_failure"),
            (TransportTimeoutError, TransportError, "transport_timeout_exhausted"),
            (SDataProtocolError, SDataError, "protocol_status_failure"),
            (MappingError, SDataError, "mapping_failure"),
            (SerializationError, MappingError, "serialization_failure"),
            (DeserializationError, MappingError, "deserialization_failure"),
            (UsageError, SDataError, "usage_error"),
            (RequestInProgressError, UsageError, "concurrent_request_in_progress"),
            (RequestAbortedError, SDataError, "request_aborted"),
            (UnsupportedContentTypeError, SDataError, "unsupported_content_type"),
        ],
    )
    def test_classification(self, error_cls, parent, code):
        error = error_cls()
        assert isinstance(error, parent)
        assert error.code == code
        assert error.to_dict()["code"] == code
        assert error.message == error_cls.default_message


class TestSDataProtocolError:
    def test_carries_content_and_diagnoses(self):
        diagnosis = Diagnosis(severity="Error", message="boom")
        error = SDataProtocolError(
            "500 Internal Server Error",
            status_code=500,
            content={"detail": "x"},
            diagnoses=[diagnosis],
        )
        assert error.status_code == 500
        assert error.content == {"detail": "x"}
        assert error.diagnoses == [diagnosis]

    def test_defaults(self):
        error = SDataProtocolError()
        assert error.content is None
        assert error.diagnoses == []
