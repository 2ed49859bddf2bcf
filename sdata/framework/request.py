# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""One logical SData call.

A call may span several HTTP exchanges: protocol redirects are followed
deliberately (so credentials and content are replayed by the client, never
by the transport) and timeouts are retried up to
``timeout_retry_attempts`` times. The blocking and the asyncio execution
share every decision; only the suspension point differs.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import io
import logging
import re
from collections.abc import Callable
from http import HTTPStatus
from typing import Any
from xml.etree import ElementTree

import httpx

from .._errors import (
    RequestAbortedError,
    SDataProtocolError,
    TransportError,
    TransportTimeoutError,
    UsageError,
)
from ..config import SDataSettings
from ..config import settings as default_settings
from ..content.handlers import content_handlers
from ..content.mapper import Shape, classify
from ..content.naming import get_naming_scheme
from ..media import HttpMethod, MediaType
from ..mime import MimeMessage, MimePart
from .attached_file import AttachedFile
from .executor import RequestState, RequestStateMachine
from .response import SDataResponse
from .transport import AbortableTransport

__all__ = ("SDataRequest", "apply_selector", "infer_content_type")

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({HTTPStatus.FOUND, HTTPStatus.TEMPORARY_REDIRECT})

_SELECTOR = re.compile(r"\(.*\)$")


def apply_selector(url: httpx.URL | str, selector: str) -> httpx.URL:
    """Put ``selector`` on the last path segment, replacing any there."""
    url = httpx.URL(url)
    head, _, last = url.path.rstrip("/").rpartition("/")
    return url.copy_with(path=f"{head}/{_SELECTOR.sub('', last)}({selector})")


def infer_content_type(content: Any) -> MediaType:
    if isinstance(content, ElementTree.Element):
        return MediaType.XML
    match classify(content):
        case Shape.MAPPING | Shape.OBJECT:
            return MediaType.ATOM_ENTRY
        case Shape.SEQUENCE:
            return MediaType.ATOM
    if isinstance(content, (bytes, bytearray)):
        raise UsageError("content_type is required for binary content")
    return MediaType.TEXT


class SDataRequest:
    """A reusable, single-flight request.

    Configure the public attributes, then call :meth:`get_response`,
    ``await`` :meth:`aget_response` or schedule :meth:`begin_get_response`.
    Starting it again while an exchange is in flight raises
    :class:`~sdata.RequestInProgressError`.
    """

    def __init__(
        self,
        uri: str | httpx.URL,
        method: HttpMethod | str = HttpMethod.GET,
        content: Any = None,
        *,
        settings: SDataSettings | None = None,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or default_settings
        self.uri = str(uri)
        self.method = HttpMethod(method)
        self.selector: str | None = None
        self.content = content
        self.content_type: MediaType | None = None
        self.etag: str | None = None
        self.form: dict[str, str] = {}
        self.files: list[AttachedFile] = []
        self.accept: list[MediaType] = []
        self.accept_language: str | None = None
        self.username: str | None = None
        self.password: str | None = None
        self.credentials: httpx.Auth | tuple[str, str] | None = None
        self.proxy: str | httpx.Proxy | None = None
        self.cookies = httpx.Cookies()
        self.timeout = self.settings.timeout
        self.timeout_retry_attempts = self.settings.timeout_retry_attempts
        self.user_agent = self.settings.user_agent
        self.use_http_method_override = self.settings.use_http_method_override
        self.naming_scheme = get_naming_scheme(self.settings.naming_scheme)
        self.transport = transport

        self._state = RequestStateMachine()
        self._abortable: AbortableTransport | None = None
        self._inflight: asyncio.Future | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def __repr__(self) -> str:
        return f"SDataRequest({self.method.value} {self.uri!r}, state={self.state.name})"

    @property
    def state(self) -> RequestState:
        return self._state.state

    @property
    def has_content(self) -> bool:
        return self.content is not None or bool(self.form) or bool(self.files)

    # ------------------------------------------------------------------ #
    # exchange construction                                              #
    # ------------------------------------------------------------------ #
    def _auth(self) -> httpx.Auth | tuple[str, str] | None:
        if self.credentials is not None:
            return self.credentials
        if self.username is not None:
            return httpx.BasicAuth(self.username, self.password or "")
        if self.settings.trust_env:
            try:
                return httpx.NetRCAuth()
            except FileNotFoundError:
                return None
        return None

    def _client_options(self) -> dict[str, Any]:
        return {
            "timeout": httpx.Timeout(self.timeout),
            "follow_redirects": False,
            "auth": self._auth(),
            "proxy": self.proxy,
            "trust_env": self.settings.trust_env,
            "cookies": self.cookies,
            "transport": self.transport,
        }

    def _write_content(self) -> tuple[bytes | None, str | None]:
        if not self.has_content:
            return None, None

        body = content_type = None
        if self.content is not None:
            media_type = self.content_type or infer_content_type(self.content)
            handler = content_handlers.get(media_type)
            stream = io.BytesIO()
            content_type = handler.write(
                self.content, stream, naming_scheme=self.naming_scheme
            )
            body = stream.getvalue()

        if not self.form and not self.files:
            return body, content_type

        message = MimeMessage()
        if body is not None:
            message.parts.append(MimePart(body, content_type))
        for name, value in self.form.items():
            message.parts.append(
                MimePart(
                    str(value).encode("utf-8"),
                    "text/plain; charset=utf-8",
                    f"inline; name={name}",
                    "binary",
                )
            )
        message.parts.extend(file.to_part() for file in self.files)
        subtype = "related" if self.files else "form-data"
        return message.to_bytes(), f"multipart/{subtype}; boundary={message.boundary}"

    def _build_request(
        self,
        client: httpx.Client | httpx.AsyncClient,
        uri: str,
        body: bytes | None,
        content_type: str | None,
    ) -> httpx.Request:
        url = apply_selector(uri, self.selector) if self.selector else httpx.URL(uri)
        method = self.method
        headers = {"User-Agent": self.user_agent}
        if self.use_http_method_override and method not in (
            HttpMethod.GET,
            HttpMethod.POST,
        ):
            headers["X-HTTP-Method-Override"] = method.value
            method = HttpMethod.POST
        if self.accept:
            headers["Accept"] = ",".join(m.mime for m in self.accept)
        if self.accept_language:
            headers["Accept-Language"] = self.accept_language
        if self.etag:
            precondition = "If-None-Match" if self.method is HttpMethod.GET else "If-Match"
            headers[precondition] = self.etag
        if content_type:
            headers["Content-Type"] = content_type
        return client.build_request(method.value, url, headers=headers, content=body)

    # ------------------------------------------------------------------ #
    # shared loop decisions                                              #
    # ------------------------------------------------------------------ #
    def _raise_if_aborted(self, cause: BaseException | None = None) -> None:
        if self._state.aborted:
            raise RequestAbortedError(
                context={"uri": self.uri}, cause=cause
            ) from cause

    def _on_failure(
        self, exc: Exception, request: httpx.Request, attempts: int
    ) -> int:
        """Classify a failed send; returns the remaining retry budget."""
        self._raise_if_aborted(exc)
        context = {"uri": str(request.url), "method": request.method}
        if isinstance(exc, httpx.TimeoutException):
            if attempts > 0:
                logger.info(
                    "Timeout on %s %s, retrying (%d left)",
                    request.method,
                    request.url,
                    attempts - 1,
                )
                return attempts - 1
            raise TransportTimeoutError(context=context, cause=exc) from exc
        if isinstance(exc, httpx.RequestError):
            raise TransportError(str(exc) or None, context=context, cause=exc) from exc
        raise exc

    def _on_response(
        self,
        request: httpx.Request,
        response: httpx.Response,
        redirect_location: str | None,
    ) -> tuple[str | None, SDataResponse | None]:
        """Next address to follow, or the finished response."""
        self._raise_if_aborted()
        self.cookies.extract_cookies(response)
        location = response.headers.get("location")
        if response.status_code in REDIRECT_STATUSES and location:
            location = str(request.url.join(location))
            logger.info("Following redirect from %s to %s", request.url, location)
            return location, None

        result = SDataResponse.from_httpx(response, redirect_location)
        if not result.is_success:
            raise SDataProtocolError(
                f"{result.status_code} {result.reason_phrase or ''}".strip(),
                status_code=result.status_code,
                content=result.content,
                diagnoses=list(result.diagnoses),
                context={"uri": str(request.url), "method": request.method},
            )
        return None, result

    # ------------------------------------------------------------------ #
    # blocking execution                                                 #
    # ------------------------------------------------------------------ #
    def get_response(self) -> SDataResponse:
        self._state.begin()
        try:
            body, content_type = self._write_content()
            options = self._client_options()
            if options["transport"] is None:
                options["transport"] = self._abortable = AbortableTransport(
                    trust_env=self.settings.trust_env
                )
            with httpx.Client(**options) as client:
                uri, redirect_location = self.uri, None
                attempts = self.timeout_retry_attempts
                while True:
                    self._raise_if_aborted()
                    request = self._build_request(client, uri, body, content_type)
                    logger.debug("%s %s", request.method, request.url)
                    try:
                        response = client.send(request)
                    except httpx.RequestError as exc:
                        attempts = self._on_failure(exc, request, attempts)
                        continue
                    next_uri, result = self._on_response(
                        request, response, redirect_location
                    )
                    if result is not None:
                        return result
                    uri = redirect_location = next_uri
        finally:
            self._abortable = None
            self._state.finish()

    # ------------------------------------------------------------------ #
    # asyncio execution                                                  #
    # ------------------------------------------------------------------ #
    async def aget_response(self) -> SDataResponse:
        self._state.begin()
        return await self._execute_async()

    def begin_get_response(
        self,
        callback: Callable[[Any], None] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> asyncio.Task | concurrent.futures.Future:
        """Schedule the request and return its pending handle.

        Without ``loop`` the request runs as a task of the running loop.
        With a loop running in another thread a
        :class:`concurrent.futures.Future` is returned, which may be waited
        on synchronously. ``callback`` receives the handle once done.
        """
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        loop = loop or running
        if loop is None:
            raise UsageError("begin_get_response requires an event loop")

        self._state.begin()
        coro = self._execute_async()
        try:
            if loop is running:
                handle = loop.create_task(coro)
            else:
                handle = asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError:
            coro.close()
            self._state.finish()
            raise
        if callback is not None:
            handle.add_done_callback(callback)
        return handle

    async def _execute_async(self) -> SDataResponse:
        try:
            body, content_type = self._write_content()
            self._loop = asyncio.get_running_loop()
            async with httpx.AsyncClient(**self._client_options()) as client:
                uri, redirect_location = self.uri, None
                attempts = self.timeout_retry_attempts
                while True:
                    self._raise_if_aborted()
                    request = self._build_request(client, uri, body, content_type)
                    logger.debug("%s %s", request.method, request.url)
                    self._inflight = asyncio.ensure_future(client.send(request))
                    try:
                        response = await self._inflight
                    except asyncio.CancelledError:
                        if self._state.aborted:
                            raise RequestAbortedError(
                                context={"uri": str(request.url)}
                            ) from None
                        raise
                    except httpx.RequestError as exc:
                        attempts = self._on_failure(exc, request, attempts)
                        continue
                    finally:
                        self._inflight = None
                    next_uri, result = self._on_response(
                        request, response, redirect_location
                    )
                    if result is not None:
                        return result
                    uri = redirect_location = next_uri
        finally:
            self._inflight = None
            self._loop = None
            self._state.finish()

    def abort(self) -> None:
        """Cancel the exchange in flight; no-op when nothing is running.

        Asyncio sends are cancelled. Blocking sends over the default
        transport have their sockets shut down, so a read in progress
        fails at once instead of waiting out the timeout.
        """
        if not self._state.abort():
            return
        logger.debug("Aborting %s %s", self.method.value, self.uri)
        if (inflight := self._inflight) is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(inflight.cancel)
        if (transport := self._abortable) is not None:
            transport.abort()
