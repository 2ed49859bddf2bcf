# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for request execution: redirects, retries, headers and abort."""

import asyncio
import socket
import threading
import time
from xml.etree import ElementTree

import httpx
import pytest
from conftest import BASE_URI, Recorder, json_response

from sdata._errors import (
    RequestAbortedError,
    RequestInProgressError,
    SDataProtocolError,
    TransportError,
    TransportTimeoutError,
    UsageError,
)
from sdata.framework import (
    AttachedFile,
    RequestState,
    RequestStateMachine,
    SDataRequest,
    apply_selector,
    infer_content_type,
)
from sdata.framework.transport import AbortableTransport
from sdata.media import HttpMethod, MediaType
from sdata.mime import MimeMessage

ACCOUNTS = f"{BASE_URI}/accounts"


def make_request(recorder, settings, uri=ACCOUNTS, method=HttpMethod.GET, content=None):
    return SDataRequest(
        uri, method, content, settings=settings, transport=recorder.transport
    )


@pytest.fixture
def silent_server():
    """A local server that reads one request and never answers it."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    server.settimeout(10)
    received = threading.Event()
    done = threading.Event()

    def serve():
        try:
            conn, _ = server.accept()
        except OSError:
            return
        with conn:
            conn.recv(65536)
            received.set()
            done.wait(10)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    host, port = server.getsockname()
    try:
        yield f"http://{host}:{port}/sdata/app/-/-/accounts", received
    finally:
        done.set()
        server.close()
        thread.join(5)


class TestStateMachine:
    def test_lifecycle(self):
        machine = RequestStateMachine()
        assert machine.state is RequestState.IDLE
        machine.begin()
        assert machine.state is RequestState.RUNNING
        with pytest.raises(RequestInProgressError):
            machine.begin()
        assert machine.abort()
        assert machine.aborted
        assert not machine.abort()
        machine.finish()
        assert machine.state is RequestState.IDLE

    def test_abort_when_idle(self):
        machine = RequestStateMachine()
        assert not machine.abort()
        assert machine.state is RequestState.IDLE

    @pytest.mark.parametrize(
        "expected, new",
        [
            (RequestState.IDLE, RequestState.ABORTED),
            (RequestState.ABORTED, RequestState.RUNNING),
        ],
    )
    def test_invalid_transition(self, expected, new):
        with pytest.raises(ValueError, match="Invalid transition"):
            RequestStateMachine().compare_and_set(expected, new)


class TestHelpers:
    @pytest.mark.parametrize(
        "url, expected",
        [
            (ACCOUNTS, "/sdata/app/-/-/accounts('A1')"),
            (f"{ACCOUNTS}('B2')", "/sdata/app/-/-/accounts('A1')"),
            (f"{ACCOUNTS}/", "/sdata/app/-/-/accounts('A1')"),
        ],
    )
    def test_apply_selector(self, url, expected):
        assert apply_selector(url, "'A1'").path == expected

    def test_selector_keeps_query(self):
        url = apply_selector(f"{ACCOUNTS}?select=Name", "'A1'")
        assert url.params["select"] == "Name"

    @pytest.mark.parametrize(
        "content, expected",
        [
            ({"Name": "Acme"}, MediaType.ATOM_ENTRY),
            ([{"Name": "Acme"}], MediaType.ATOM),
            ("hello", MediaType.TEXT),
            (42, MediaType.TEXT),
            (ElementTree.Element("Account"), MediaType.XML),
        ],
    )
    def test_infer_content_type(self, content, expected):
        assert infer_content_type(content) is expected

    def test_binary_needs_content_type(self):
        with pytest.raises(UsageError):
            infer_content_type(b"\x89PNG")


class TestExchange:
    def test_get(self, settings):
        recorder = Recorder(
            lambda r: json_response(200, {"$key": "A1", "Name": "Acme"}, ETag="v1")
        )
        response = make_request(recorder, settings).get_response()
        assert response.status_code == 200
        assert response.content == {"Name": "Acme"}
        assert response.content.info.key == "A1"
        assert response.etag == "v1"
        assert response.content_type is MediaType.JSON
        assert recorder.last.method == "GET"
        assert recorder.last.headers["User-Agent"] == "PythonSDataClient"

    def test_headers(self, settings):
        recorder = Recorder()
        request = make_request(recorder, settings)
        request.selector = "'A1'"
        request.etag = "v1"
        request.accept = [MediaType.JSON, MediaType.XML]
        request.accept_language = "fr-FR"
        request.user_agent = "tests"
        request.get_response()

        sent = recorder.last
        assert sent.url.path.endswith("accounts('A1')")
        assert sent.headers["If-None-Match"] == "v1"
        assert "If-Match" not in sent.headers
        assert sent.headers["Accept"] == "application/json,application/xml"
        assert sent.headers["Accept-Language"] == "fr-FR"
        assert sent.headers["User-Agent"] == "tests"

    def test_method_override(self, settings):
        recorder = Recorder()
        request = make_request(recorder, settings, method=HttpMethod.PUT, content={"Name": "Acme"})
        request.use_http_method_override = True
        request.content_type = MediaType.JSON
        request.etag = "v1"
        request.get_response()

        sent = recorder.last
        assert sent.method == "POST"
        assert sent.headers["X-HTTP-Method-Override"] == "PUT"
        assert sent.headers["If-Match"] == "v1"
        assert sent.headers["Content-Type"] == "application/json"
        assert sent.content == b'{"Name":"Acme"}'

    def test_inferred_content_type(self, settings):
        recorder = Recorder()
        make_request(
            recorder, settings, method=HttpMethod.POST, content={"Name": "Acme"}
        ).get_response()
        assert recorder.last.headers["Content-Type"] == "application/atom+xml;type=entry"
        assert b"<entry" in recorder.last.content

    def test_no_content_no_body(self, settings):
        recorder = Recorder()
        make_request(recorder, settings, method=HttpMethod.DELETE).get_response()
        assert recorder.last.content == b""
        assert "Content-Type" not in recorder.last.headers

    def test_form_parts(self, settings):
        recorder = Recorder()
        request = make_request(recorder, settings, method=HttpMethod.POST)
        request.form = {"description": "logo"}
        request.get_response()

        content_type = recorder.last.headers["Content-Type"]
        assert content_type.startswith("multipart/form-data; boundary=")
        message = MimeMessage.parse(recorder.last.content, content_type)
        (part,) = message.parts
        assert part.content == b"logo"
        assert part.disposition == "inline; name=description"

    def test_files_are_related(self, settings):
        recorder = Recorder()
        request = make_request(
            recorder, settings, method=HttpMethod.POST, content={"Name": "Acme"}
        )
        request.content_type = MediaType.JSON
        request.files = [AttachedFile.from_bytes(b"\x89PNG", "logo.png", "image/png")]
        request.get_response()

        content_type = recorder.last.headers["Content-Type"]
        assert content_type.startswith("multipart/related; boundary=")
        content, attachment = MimeMessage.parse(recorder.last.content, content_type).parts
        assert content.content_type == "application/json"
        assert content.content == b'{"Name":"Acme"}'
        assert attachment.is_attachment
        assert attachment.content == b"\x89PNG"

    def test_cookies_kept_between_calls(self, settings):
        recorder = Recorder(
            lambda r: json_response(200, {}, **{"Set-Cookie": "session=abc; Path=/"})
        )
        request = make_request(recorder, settings)
        request.get_response()
        assert request.cookies.get("session") == "abc"
        request.get_response()
        assert recorder.last.headers["Cookie"] == "session=abc"

    def test_basic_auth(self, settings):
        recorder = Recorder()
        request = make_request(recorder, settings)
        request.username = "admin"
        request.password = "secret"
        request.get_response()
        assert recorder.last.headers["Authorization"] == "Basic YWRtaW46c2VjcmV0"


class TestRedirects:
    def test_follows_chain(self, settings):
        hops = {
            "/a": (302, "/b"),
            "/b": (307, "http://other.example.com/c"),
            "/c": (302, "/d"),
        }

        def handler(request):
            if request.url.path in hops:
                status, location = hops[request.url.path]
                return httpx.Response(status, headers={"Location": location})
            return json_response(200, {"Name": "Acme"})

        recorder = Recorder(handler)
        response = make_request(
            recorder, settings, uri="http://example.com/a", method=HttpMethod.POST, content="x"
        ).get_response()

        assert [str(r.url) for r in recorder.requests] == [
            "http://example.com/a",
            "http://example.com/b",
            "http://other.example.com/c",
            "http://other.example.com/d",
        ]
        assert all(r.method == "POST" and r.content == b"x" for r in recorder.requests)
        assert response.location == "http://other.example.com/d"

    def test_other_redirects_are_responses(self, settings):
        recorder = Recorder(
            lambda r: httpx.Response(301, headers={"Location": "/elsewhere"})
        )
        response = make_request(recorder, settings).get_response()
        assert response.status_code == 301
        assert response.location == "/elsewhere"
        assert len(recorder.requests) == 1


class TestFailures:
    @pytest.mark.parametrize("budget", [0, 1, 3])
    def test_timeout_budget(self, settings, budget):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        recorder = Recorder(handler)
        request = make_request(recorder, settings)
        request.timeout_retry_attempts = budget
        with pytest.raises(TransportTimeoutError) as exc_info:
            request.get_response()
        assert len(recorder.requests) == budget + 1
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)
        assert request.state is RequestState.IDLE

    def test_timeout_then_success(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectTimeout("timed out", request=request)
            return json_response(200, {"Name": "Acme"})

        response = make_request(Recorder(handler), settings).get_response()
        assert response.content == {"Name": "Acme"}
        assert len(calls) == 2

    def test_connect_error_not_retried(self, settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        recorder = Recorder(handler)
        request = make_request(recorder, settings)
        request.timeout_retry_attempts = 5
        with pytest.raises(TransportError) as exc_info:
            request.get_response()
        assert type(exc_info.value) is TransportError
        assert len(recorder.requests) == 1

    def test_protocol_failure(self, settings):
        body = {
            "$diagnoses": [
                {
                    "severity": "Error",
                    "sdataCode": "ResourceNotFound",
                    "message": "No account 'A9'",
                }
            ]
        }
        recorder = Recorder(lambda r: json_response(404, body))
        with pytest.raises(SDataProtocolError) as exc_info:
            make_request(recorder, settings).get_response()

        error = exc_info.value
        assert error.status_code == 404
        assert error.message == "404 Not Found"
        (diagnosis,) = error.diagnoses
        assert diagnosis.sdata_code == "ResourceNotFound"
        assert diagnosis.message == "No account 'A9'"
        assert error.context["method"] == "GET"

    def test_reusable_after_failure(self, settings):
        statuses = iter([500, 200])
        recorder = Recorder(lambda r: json_response(next(statuses), {}))
        request = make_request(recorder, settings)
        with pytest.raises(SDataProtocolError):
            request.get_response()
        assert request.get_response().status_code == 200


class TestSingleFlight:
    def test_blocking_in_progress(self, settings):
        started = threading.Event()
        release = threading.Event()

        def handler(request):
            started.set()
            release.wait(5)
            return json_response(200, {})

        request = make_request(Recorder(handler), settings)
        results = []
        worker = threading.Thread(target=lambda: results.append(request.get_response()))
        worker.start()
        try:
            assert started.wait(5)
            assert request.state is RequestState.RUNNING
            with pytest.raises(RequestInProgressError):
                request.get_response()
        finally:
            release.set()
            worker.join(5)
        assert results[0].status_code == 200
        assert request.state is RequestState.IDLE

    def test_blocking_abort_interrupts_read(self, settings, silent_server):
        uri, received = silent_server
        request = SDataRequest(uri, settings=settings)
        request.timeout = 30
        request.timeout_retry_attempts = 0
        errors = []

        def run():
            try:
                request.get_response()
            except Exception as exc:
                errors.append(exc)

        worker = threading.Thread(target=run)
        worker.start()
        assert received.wait(5)
        time.sleep(0.2)
        started = time.monotonic()
        request.abort()
        worker.join(5)

        assert not worker.is_alive()
        assert time.monotonic() - started < 5
        assert isinstance(errors[0], RequestAbortedError)
        assert request.state is RequestState.IDLE

    def test_abort_when_idle_is_noop(self, settings):
        request = make_request(Recorder(), settings)
        request.abort()
        assert request.state is RequestState.IDLE
        assert request.get_response().status_code == 200

    @pytest.mark.asyncio
    async def test_async_in_progress_and_abort(self, settings):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(10)
            return json_response(200, {})

        request = make_request(Recorder(handler), settings)
        task = asyncio.create_task(request.aget_response())
        await asyncio.wait_for(started.wait(), 5)

        with pytest.raises(RequestInProgressError):
            await request.aget_response()

        request.abort()
        with pytest.raises(RequestAbortedError):
            await asyncio.wait_for(task, 5)
        assert request.state is RequestState.IDLE

    @pytest.mark.asyncio
    async def test_async_timeout_budget(self, settings):
        async def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        recorder = Recorder(handler)
        request = make_request(recorder, settings)
        request.timeout_retry_attempts = 2
        with pytest.raises(TransportTimeoutError):
            await request.aget_response()
        assert len(recorder.requests) == 3


class TestAbortableTransport:
    def test_refuses_connections_after_abort(self, silent_server):
        uri, _ = silent_server
        transport = AbortableTransport(trust_env=False)
        transport.abort()
        with httpx.Client(transport=transport, timeout=5) as client:
            with pytest.raises(httpx.ConnectError):
                client.get(uri)


class TestBeginGetResponse:
    @pytest.mark.asyncio
    async def test_task_with_callback(self, settings):
        done = []
        request = make_request(
            Recorder(lambda r: json_response(200, {"Name": "Acme"})), settings
        )
        handle = request.begin_get_response(done.append)
        assert isinstance(handle, asyncio.Task)

        response = await handle
        await asyncio.sleep(0)
        assert response.content == {"Name": "Acme"}
        assert done == [handle]

    def test_loop_in_other_thread(self, settings):
        loop = asyncio.new_event_loop()
        runner = threading.Thread(target=loop.run_forever, daemon=True)
        runner.start()
        try:
            request = make_request(Recorder(), settings)
            handle = request.begin_get_response(loop=loop)
            assert handle.result(timeout=5).status_code == 200
        finally:
            loop.call_soon_threadsafe(loop.stop)
            runner.join(5)
            loop.close()

    def test_requires_loop(self, settings):
        request = make_request(Recorder(), settings)
        with pytest.raises(UsageError):
            request.begin_get_response()
        assert request.state is RequestState.IDLE
