# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Typed convenience layer over :class:`~sdata.framework.SDataRequest`."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ._errors import UsageError
from .config import SDataSettings
from .config import settings as default_settings
from .content.annotations import get_resource_path
from .content.mapper import ContentMapper, get_protocol_value
from .content.naming import NamingScheme, get_naming_scheme
from .content.protocol import ProtocolProperty
from .content.reflection import item_type_of
from .framework.attached_file import AttachedFile
from .framework.request import SDataRequest
from .framework.response import SDataResponse
from .media import HttpMethod, MediaType

__all__ = ("SDataClient", "SDataParameters", "SDataResult", "format_constant")

T = TypeVar("T")


def format_constant(value: Any) -> str:
    """Render a value as an SData query literal (``'A''1'``, ``true``...)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return f"@{value.isoformat()}@"
    if isinstance(value, UUID):
        value = str(value)
    text = str(value).replace("'", "''")
    return f"'{text}'"


class SDataParameters(BaseModel):
    """Everything describing one call made through :class:`SDataClient`."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    method: HttpMethod = HttpMethod.GET
    path: str | None = None
    selector: str | None = None
    content: Any = None
    content_type: MediaType | None = None
    etag: str | None = None
    include: str | None = None
    select: str | None = None
    precedence: int | None = None
    form: dict[str, str] = Field(default_factory=dict)
    files: list[AttachedFile] = Field(default_factory=list)
    accept: list[MediaType] = Field(default_factory=list)
    accept_language: str | None = None

    def query(self) -> dict[str, str]:
        params = {}
        if self.include:
            params["include"] = self.include
        if self.select:
            params["select"] = self.select
        if self.precedence is not None:
            params["precedence"] = str(self.precedence)
        return params


class SDataResult(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status_code: int
    content_type: MediaType | None = None
    etag: str | None = None
    location: str | None = None
    content: Any = None
    files: tuple[AttachedFile, ...] = ()


class SDataClient:
    """Client bound to one SData service root.

    Example:
        >>> client = SDataClient("http://example.com/sdata/app/-/-")
        >>> account = client.get("A1", result_type=Account)
        >>> client.put(account)
    """

    def __init__(
        self,
        base_uri: str | httpx.URL,
        *,
        username: str | None = None,
        password: str | None = None,
        credentials: httpx.Auth | tuple[str, str] | None = None,
        format: MediaType | None = None,
        naming_scheme: NamingScheme | str | None = None,
        settings: SDataSettings | None = None,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
    ):
        self.base_uri = str(base_uri).rstrip("/")
        self.username = username
        self.password = password
        self.credentials = credentials
        self.settings = settings or default_settings
        self.format = format
        self.naming_scheme = get_naming_scheme(
            naming_scheme or self.settings.naming_scheme
        )
        self.transport = transport
        self.cookies = httpx.Cookies()

    @property
    def mapper(self) -> ContentMapper:
        return ContentMapper(self.naming_scheme)

    # ------------------------------------------------------------------ #
    # generic execution                                                  #
    # ------------------------------------------------------------------ #
    def create_request(self, parameters: SDataParameters) -> SDataRequest:
        url = httpx.URL(
            f"{self.base_uri}/{parameters.path.lstrip('/')}"
            if parameters.path
            else self.base_uri
        )
        if query := parameters.query():
            url = url.copy_merge_params(query)

        request = SDataRequest(
            url,
            parameters.method,
            parameters.content,
            settings=self.settings,
            transport=self.transport,
        )
        request.selector = parameters.selector
        request.etag = parameters.etag
        request.form = dict(parameters.form)
        request.files = list(parameters.files)
        request.accept_language = parameters.accept_language
        request.username = self.username
        request.password = self.password
        request.credentials = self.credentials
        request.cookies = self.cookies
        request.naming_scheme = self.naming_scheme
        if parameters.accept:
            request.accept = list(parameters.accept)
        elif self.format is not None:
            request.accept = [self.format]
        if parameters.content is not None:
            request.content_type = (
                parameters.content_type
                or self.format
                or self.settings.default_format
            )
        return request

    def _result(self, response: SDataResponse, result_type: Any) -> SDataResult:
        content = response.content
        if content is not None and result_type is not None:
            content = self.mapper.deserialize(content, result_type)
        return SDataResult(
            status_code=response.status_code,
            content_type=response.content_type,
            etag=response.etag,
            location=response.location,
            content=content,
            files=response.files,
        )

    def execute(
        self, parameters: SDataParameters, result_type: Any = object
    ) -> SDataResult:
        response = self.create_request(parameters).get_response()
        return self._result(response, result_type)

    async def aexecute(
        self, parameters: SDataParameters, result_type: Any = object
    ) -> SDataResult:
        response = await self.create_request(parameters).aget_response()
        return self._result(response, result_type)

    # ------------------------------------------------------------------ #
    # typed helpers                                                      #
    # ------------------------------------------------------------------ #
    def _path(self, path: str | None, cls: type) -> str:
        if path:
            return path
        cls = item_type_of(cls) or cls
        return get_resource_path(cls) or self.naming_scheme.get_type_name(cls)

    def _get_parameters(
        self,
        key: Any,
        path: str | None,
        result_type: type,
        include: str | None,
        select: str | None,
        precedence: int | None,
    ) -> SDataParameters:
        return SDataParameters(
            path=self._path(path, result_type),
            selector=None if key is None else format_constant(key),
            include=include,
            select=select,
            precedence=precedence,
        )

    def _write_parameters(
        self, method: HttpMethod, content: Any, path: str | None
    ) -> SDataParameters:
        if content is None:
            raise UsageError("content is required")
        parameters = SDataParameters(
            method=method,
            path=self._path(path, type(content)),
            content=content if method is not HttpMethod.DELETE else None,
            content_type=self.format or MediaType.JSON,
        )
        if method is not HttpMethod.POST:
            key = get_protocol_value(content, ProtocolProperty.KEY)
            if key is None:
                raise UsageError(
                    f"{method.value} requires content with a key",
                    details={"type": type(content).__name__},
                )
            parameters.selector = format_constant(key)
            etag = get_protocol_value(content, ProtocolProperty.ETAG)
            parameters.etag = None if etag is None else str(etag)
        return parameters

    def get(
        self,
        key: Any = None,
        path: str | None = None,
        *,
        result_type: type[T] = object,
        include: str | None = None,
        select: str | None = None,
        precedence: int | None = None,
    ) -> T:
        parameters = self._get_parameters(
            key, path, result_type, include, select, precedence
        )
        return self.execute(parameters, result_type).content

    def post(self, content: T, path: str | None = None) -> T:
        parameters = self._write_parameters(HttpMethod.POST, content, path)
        return self.execute(parameters, type(content)).content

    def put(self, content: T, path: str | None = None) -> T:
        parameters = self._write_parameters(HttpMethod.PUT, content, path)
        return self.execute(parameters, type(content)).content

    def delete(self, content: Any, path: str | None = None) -> None:
        parameters = self._write_parameters(HttpMethod.DELETE, content, path)
        self.execute(parameters, None)

    async def aget(
        self,
        key: Any = None,
        path: str | None = None,
        *,
        result_type: type[T] = object,
        include: str | None = None,
        select: str | None = None,
        precedence: int | None = None,
    ) -> T:
        parameters = self._get_parameters(
            key, path, result_type, include, select, precedence
        )
        return (await self.aexecute(parameters, result_type)).content

    async def apost(self, content: T, path: str | None = None) -> T:
        parameters = self._write_parameters(HttpMethod.POST, content, path)
        return (await self.aexecute(parameters, type(content))).content

    async def aput(self, content: T, path: str | None = None) -> T:
        parameters = self._write_parameters(HttpMethod.PUT, content, path)
        return (await self.aexecute(parameters, type(content))).content

    async def adelete(self, content: Any, path: str | None = None) -> None:
        parameters = self._write_parameters(HttpMethod.DELETE, content, path)
        await self.aexecute(parameters, None)
