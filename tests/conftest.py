"""Pytest configuration and shared fixtures."""

import json
import os
import struct
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio

# Keep unit tests independent of the developer's environment
os.environ.setdefault("READINESS_SETTLE_SECONDS", "0")

from testbox.config.docker import DockerConfig
from testbox.services.container import Docker, DockerTransport

API_VERSION = "1.45"

ResponseFactory = Callable[[httpx.Request], httpx.Response]


class FakeEngine:
    """Routes requests made through httpx.MockTransport to canned responses.

    Every request is recorded so tests can assert on what reached the
    engine (and on what did not).
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], ResponseFactory] = {}
        self.requests: List[httpx.Request] = []

    def route(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json_body: Any = None,
        content: Union[bytes, Any, None] = None,
        headers: Optional[Dict[str, str]] = None,
        handler: Optional[ResponseFactory] = None,
    ) -> None:
        if handler is None:

            def handler(request: httpx.Request) -> httpx.Response:
                if json_body is not None:
                    return httpx.Response(status_code, json=json_body, headers=headers)
                body = content() if callable(content) else content
                return httpx.Response(status_code, content=body, headers=headers)

        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and self._path(request) == path
        ]

    def _path(self, request: httpx.Request) -> str:
        prefix = f"/v{API_VERSION}"
        path = request.url.path
        return path[len(prefix):] if path.startswith(prefix) else path

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, self._path(request)))
        if handler is None:
            return httpx.Response(
                404, json={"message": f"No such route: {request.method} {self._path(request)}"}
            )
        return handler(request)


def build_frame(stream_type: int, payload: Union[bytes, str]) -> bytes:
    """Build one multiplexed stream frame."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return struct.pack(">BxxxL", stream_type, len(payload)) + payload


def request_json(request: httpx.Request) -> Any:
    """Decode the JSON body a request carried."""
    return json.loads(request.content) if request.content else None


@pytest.fixture
def frame():
    """Builder for multiplexed frames: ``frame(1, "line\\n")``."""
    return build_frame


@pytest.fixture
def read_json():
    """Decoder for request bodies."""
    return request_json


@pytest.fixture
def engine() -> FakeEngine:
    """Fake Docker engine behind httpx.MockTransport."""
    return FakeEngine()


@pytest_asyncio.fixture
async def transport(engine):
    """DockerTransport wired to the fake engine."""
    config = DockerConfig(
        docker_host="tcp://engine:2375",
        docker_api_version=API_VERSION,
        docker_timeout=5,
    )
    transport = DockerTransport(config, transport=httpx.MockTransport(engine))
    yield transport
    await transport.aclose()


@pytest.fixture
def docker(transport) -> Docker:
    """Docker facade over the fake engine."""
    return Docker(transport)
