# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

import httpx
import orjson
import pytest

from sdata.config import SDataSettings

BASE_URI = "http://example.com/sdata/app/-/-"


@pytest.fixture
def settings():
    """Settings isolated from the environment, netrc and proxies."""
    return SDataSettings(_env_file=None, trust_env=False)


def json_response(status_code: int = 200, data=None, **headers) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"Content-Type": "application/json", **headers},
        content=b"" if data is None else orjson.dumps(data),
    )


class Recorder:
    """Records requests and answers them from a handler function."""

    def __init__(self, handler=None):
        self.requests: list[httpx.Request] = []
        self.handler = handler or (lambda request: json_response(200, {}))

    def __call__(self, request: httpx.Request):
        request.read()
        self.requests.append(request)
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]
