# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Blocking transport whose in-flight exchanges can be interrupted.

Closing an :class:`httpx.Client` from another thread does not wake a
``recv`` that is already blocked. :class:`AbortableTransport` keeps every
socket its connection pool opens and :meth:`AbortableTransport.abort`
shuts them down, so the blocked read returns at once.
"""

from __future__ import annotations

import logging
import socket
import ssl
import threading
import typing
from collections.abc import Iterator
from contextlib import contextmanager

import httpcore
import httpx

__all__ = ("AbortableTransport",)

logger = logging.getLogger(__name__)

# most specific first
_ERROR_MAP: dict[type[Exception], type[httpx.TransportError]] = {
    httpcore.ConnectTimeout: httpx.ConnectTimeout,
    httpcore.ReadTimeout: httpx.ReadTimeout,
    httpcore.WriteTimeout: httpx.WriteTimeout,
    httpcore.PoolTimeout: httpx.PoolTimeout,
    httpcore.TimeoutException: httpx.TimeoutException,
    httpcore.ConnectError: httpx.ConnectError,
    httpcore.ReadError: httpx.ReadError,
    httpcore.WriteError: httpx.WriteError,
    httpcore.NetworkError: httpx.NetworkError,
    httpcore.ProxyError: httpx.ProxyError,
    httpcore.UnsupportedProtocol: httpx.UnsupportedProtocol,
    httpcore.RemoteProtocolError: httpx.RemoteProtocolError,
    httpcore.LocalProtocolError: httpx.LocalProtocolError,
    httpcore.ProtocolError: httpx.ProtocolError,
}


@contextmanager
def _map_errors() -> Iterator[None]:
    try:
        yield
    except Exception as exc:
        for core_error, error in _ERROR_MAP.items():
            if isinstance(exc, core_error):
                raise error(str(exc)) from exc
        raise


class _TrackedStream(httpcore.NetworkStream):
    """Delegates to a live stream; follows it through a TLS upgrade."""

    def __init__(self, stream: httpcore.NetworkStream, owner: _TrackingBackend):
        self._stream = stream
        self._owner = owner

    def read(self, max_bytes: int, timeout: float | None = None) -> bytes:
        return self._stream.read(max_bytes, timeout)

    def write(self, buffer: bytes, timeout: float | None = None) -> None:
        self._stream.write(buffer, timeout)

    def close(self) -> None:
        self._owner.forget(self)
        self._stream.close()

    def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: str | None = None,
        timeout: float | None = None,
    ) -> httpcore.NetworkStream:
        self._stream = self._stream.start_tls(ssl_context, server_hostname, timeout)
        return self

    def get_extra_info(self, info: str) -> typing.Any:
        return self._stream.get_extra_info(info)

    def shutdown(self) -> None:
        sock = self._stream.get_extra_info("socket")
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already closed by the peer or by the pool
            pass


class _TrackingBackend(httpcore.NetworkBackend):
    """The default sync backend, remembering the streams it opened."""

    def __init__(self) -> None:
        self._backend = httpcore.SyncBackend()
        self._streams: set[_TrackedStream] = set()
        self._lock = threading.Lock()
        self._shut = False

    def _track(self, stream: httpcore.NetworkStream) -> _TrackedStream:
        tracked = _TrackedStream(stream, self)
        with self._lock:
            if not self._shut:
                self._streams.add(tracked)
                return tracked
        # connected after shutdown_all
        stream.close()
        raise httpcore.ConnectError("Connection shut down")

    def forget(self, stream: _TrackedStream) -> None:
        with self._lock:
            self._streams.discard(stream)

    def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: typing.Iterable | None = None,
    ) -> httpcore.NetworkStream:
        return self._track(
            self._backend.connect_tcp(
                host,
                port,
                timeout=timeout,
                local_address=local_address,
                socket_options=socket_options,
            )
        )

    def connect_unix_socket(
        self,
        path: str,
        timeout: float | None = None,
        socket_options: typing.Iterable | None = None,
    ) -> httpcore.NetworkStream:
        return self._track(
            self._backend.connect_unix_socket(
                path, timeout=timeout, socket_options=socket_options
            )
        )

    def sleep(self, seconds: float) -> None:
        self._backend.sleep(seconds)

    def shutdown_all(self) -> int:
        """Shut down open streams and refuse new ones."""
        with self._lock:
            self._shut = True
            streams = list(self._streams)
        for stream in streams:
            stream.shutdown()
        return len(streams)


class _ResponseStream(httpx.SyncByteStream):
    def __init__(self, stream: typing.Iterable[bytes]):
        self._stream = stream

    def __iter__(self) -> Iterator[bytes]:
        with _map_errors():
            yield from self._stream

    def close(self) -> None:
        if hasattr(self._stream, "close"):
            self._stream.close()


class AbortableTransport(httpx.BaseTransport):
    """An HTTP/1.1 connection pool that :meth:`abort` can interrupt.

    Used for blocking requests when no transport is injected. Proxied
    requests go through httpx's own proxy transports and are not covered.
    """

    def __init__(self, *, trust_env: bool = True):
        self._backend = _TrackingBackend()
        self._pool = httpcore.ConnectionPool(
            ssl_context=httpx.create_ssl_context(trust_env=trust_env),
            network_backend=self._backend,
        )

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        assert isinstance(request.stream, httpx.SyncByteStream)
        core_request = httpcore.Request(
            method=request.method,
            url=httpcore.URL(
                scheme=request.url.raw_scheme,
                host=request.url.raw_host,
                port=request.url.port,
                target=request.url.raw_path,
            ),
            headers=request.headers.raw,
            content=request.stream,
            extensions=request.extensions,
        )
        with _map_errors():
            core_response = self._pool.handle_request(core_request)
        return httpx.Response(
            status_code=core_response.status,
            headers=core_response.headers,
            stream=_ResponseStream(core_response.stream),
            extensions=core_response.extensions,
        )

    def abort(self) -> None:
        """Shut down every open connection, waking any blocked read."""
        count = self._backend.shutdown_all()
        logger.debug("Shut down %d open connection(s)", count)

    def close(self) -> None:
        self._pool.close()
