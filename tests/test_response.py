# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

import httpx
import pytest
from conftest import json_response

from sdata.content import Collection, Resource
from sdata.framework import Diagnosis, SDataResponse, SDataTracking, read_content
from sdata.media import MediaType
from sdata.mime import MimeMessage, MimePart

TRACKING = b"""<sdata:tracking xmlns:sdata="http://schemas.sage.com/sdata/2008/1">
  <sdata:phase>Archiving</sdata:phase>
  <sdata:phaseDetail>Compressing files</sdata:phaseDetail>
  <sdata:progress>50</sdata:progress>
  <sdata:elapsedSeconds>10</sdata:elapsedSeconds>
  <sdata:remainingSeconds>10</sdata:remainingSeconds>
  <sdata:pollingMillis>500</sdata:pollingMillis>
</sdata:tracking>"""


class TestReadContent:
    def test_empty_body(self):
        assert read_content(b"", "application/json") == (None, ())

    def test_json(self):
        content, files = read_content(b'{"$resources": []}', "application/json; charset=utf-8")
        assert isinstance(content, Collection)
        assert files == ()

    def test_tracking(self):
        content, _ = read_content(TRACKING, "application/xml")
        assert isinstance(content, SDataTracking)
        assert content.phase == "Archiving"
        assert content.phase_detail == "Compressing files"
        assert content.progress == 50.0
        assert content.polling_millis == 500

    def test_other_xml_is_text(self):
        content, _ = read_content(b"<Account><Name>Acme</Name></Account>", "text/xml")
        assert content == "<Account><Name>Acme</Name></Account>"

    def test_unknown_type_is_text(self):
        content, _ = read_content(b"plain", "application/x-custom")
        assert content == "plain"

    def test_atom(self):
        body = (
            b'<entry xmlns="http://www.w3.org/2005/Atom">'
            b"<title>Acme</title></entry>"
        )
        content, _ = read_content(body, "application/atom+xml; type=entry")
        assert isinstance(content, Resource)

    def test_multipart(self):
        message = MimeMessage(
            parts=[
                MimePart(b'{"Name": "Acme"}', content_type="application/json"),
                MimePart(
                    b"\x89PNG",
                    content_type="image/png",
                    disposition="attachment; filename=logo.png",
                ),
                MimePart(b"notes", content_type="text/plain"),
            ],
            boundary="part",
        )
        content, files = read_content(
            message.to_bytes(), "multipart/related; boundary=part"
        )
        assert content == {"Name": "Acme"}
        assert [f.file_name for f in files] == ["logo.png", None]
        assert files[0].stream.read() == b"\x89PNG"
        assert files[1].content_type == "text/plain"


class TestSDataResponse:
    def test_headers(self):
        response = SDataResponse.from_httpx(
            json_response(
                201,
                {"Name": "Acme"},
                ETag="v2",
                Location="http://example.com/accounts('A1')",
            )
        )
        assert response.is_success
        assert response.etag == "v2"
        assert response.location == "http://example.com/accounts('A1')"
        assert response.content_type is MediaType.JSON
        assert response.reason_phrase == "Created"
        assert response.diagnoses == ()

    def test_redirect_location_fallback(self):
        response = SDataResponse.from_httpx(
            json_response(200, {}), "http://example.com/moved"
        )
        assert response.location == "http://example.com/moved"

    def test_no_content(self):
        response = SDataResponse.from_httpx(
            httpx.Response(204, headers={"Content-Type": "application/json"}, content=b"junk")
        )
        assert response.content is None
        assert response.files == ()

    def test_frozen(self):
        response = SDataResponse.from_httpx(json_response(200, {}))
        with pytest.raises(Exception):
            response.status_code = 500

    def test_xml_diagnoses(self):
        body = (
            b'<sdata:diagnoses xmlns:sdata="http://schemas.sage.com/sdata/2008/1">'
            b"<sdata:diagnosis><sdata:severity>Error</sdata:severity>"
            b"<sdata:sdataCode>BadWhereSyntax</sdata:sdataCode>"
            b"<sdata:message>Unexpected token</sdata:message>"
            b"</sdata:diagnosis></sdata:diagnoses>"
        )
        response = SDataResponse.from_httpx(
            httpx.Response(400, headers={"Content-Type": "application/xml"}, content=body)
        )
        assert not response.is_success
        assert isinstance(response.content, str)
        (diagnosis,) = response.diagnoses
        assert diagnosis == Diagnosis(
            severity="Error", sdata_code="BadWhereSyntax", message="Unexpected token"
        )


class TestDiagnosis:
    def test_from_resource_records(self):
        content = Resource(
            {
                "diagnoses": [
                    {"$severity": "Warning", "$message": "Slow"},
                    {"severity": "Error", "applicationCode": "E42"},
                ]
            }
        )
        warning, error = Diagnosis.from_content(content)
        assert warning.severity == "Warning"
        assert warning.message == "Slow"
        assert error.application_code == "E42"

    def test_nothing_found(self):
        assert Diagnosis.from_content("oops") == []
        assert Diagnosis.from_content(None) == []
