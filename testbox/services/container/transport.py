"""HTTP transport for the Docker engine control API.

Requests are single-shot: a failure surfaces to the caller immediately and
is never retried.
"""

import json
from typing import Any, Dict, Mapping, Optional

import httpx
import structlog

from ...config import settings
from ...config.docker import DockerConfig
from ...models.errors import (
    ControlPlaneError,
    NotFoundError,
    OperationTimeout,
    TransportError,
)
from .stream import ControlStream

logger = structlog.get_logger(__name__)


def encode_query(query: Optional[Mapping[str, Any]]) -> Optional[Dict[str, str]]:
    """Stringify query parameters the way the engine expects.

    ``None`` values are dropped, booleans become ``"true"``/``"false"``,
    mappings and lists are sent as compact JSON (e.g. ``filters``).
    """
    if not query:
        return None
    params: Dict[str, str] = {}
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, (dict, list, tuple)):
            params[key] = json.dumps(value, separators=(",", ":"))
        else:
            params[key] = str(value)
    return params


def decode_body(content: bytes) -> Any:
    """Decode a response body as JSON, falling back to text."""
    if not content:
        return None
    try:
        return json.loads(content)
    except ValueError:
        return content.decode("utf-8", errors="replace")


class DockerTransport:
    """Issues requests against the engine and decodes the responses.

    Each instance owns its own connection pool, so independent engines (or
    isolated tests) each get their own transport.
    """

    def __init__(
        self,
        config: Optional[DockerConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Engine endpoint settings, defaults to ``settings.docker``
            transport: Override the httpx transport (e.g. ``httpx.MockTransport``)
        """
        config = config or settings.docker
        self.base_url = config.get_base_url()
        self.timeout = config.docker_timeout

        if transport is None:
            socket_path = config.get_socket_path()
            transport = (
                httpx.AsyncHTTPTransport(uds=socket_path)
                if socket_path
                else httpx.AsyncHTTPTransport()
            )

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=httpx.Timeout(timeout=self.timeout),
        )

        logger.debug(
            "Initialized Docker transport",
            docker_host=config.docker_host,
            base_url=self.base_url,
        )

    @classmethod
    def from_settings(cls) -> "DockerTransport":
        """Create a transport from the global settings."""
        return cls(settings.docker)

    async def request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Send a single-shot request.

        Args:
            method: HTTP method
            path: API path below the version prefix, e.g. ``/containers/create``
            query: Query parameters, stringified by ``encode_query``
            body: JSON-serializable request body
            timeout: Override the configured request timeout

        Returns:
            Decoded JSON body, or None when the engine sent no content

        Raises:
            NotFoundError: The engine answered 404
            ControlPlaneError: Any other non-2xx answer
            OperationTimeout: The request timed out
            TransportError: The engine could not be reached
        """
        request_timeout = timeout if timeout is not None else self.timeout
        try:
            response = await self.client.request(
                method,
                path,
                params=encode_query(query),
                json=body,
                timeout=request_timeout,
            )
        except httpx.TimeoutException as e:
            raise OperationTimeout(f"{method} {path}", request_timeout) from e
        except httpx.TransportError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            raise self._error_for(method, path, response.status_code, response.content)

        logger.debug(
            "Engine request completed",
            method=method,
            path=path,
            status_code=response.status_code,
        )
        return decode_body(response.content)

    async def get(self, path: str, query: Optional[Mapping[str, Any]] = None, **kwargs) -> Any:
        return await self.request("GET", path, query=query, **kwargs)

    async def post(
        self,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        **kwargs,
    ) -> Any:
        return await self.request("POST", path, query=query, body=body, **kwargs)

    async def delete(
        self, path: str, query: Optional[Mapping[str, Any]] = None, **kwargs
    ) -> Any:
        return await self.request("DELETE", path, query=query, **kwargs)

    async def stream(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        multiplexed: bool = False,
    ) -> ControlStream:
        """
        Send a request and return its body as a stream.

        Returns once response headers arrive. The stream has no read timeout
        since follow-mode logs may stay idle indefinitely.

        Args:
            method: HTTP method
            path: API path below the version prefix
            query: Query parameters
            body: JSON-serializable request body
            multiplexed: Whether the body uses stdout/stderr frame headers

        Raises:
            NotFoundError: The engine answered 404
            ControlPlaneError: Any other non-2xx answer
            TransportError: The engine could not be reached
        """
        request = self.client.build_request(
            method,
            path,
            params=encode_query(query),
            json=body,
            timeout=httpx.Timeout(self.timeout, read=None),
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise OperationTimeout(f"{method} {path}", self.timeout) from e
        except httpx.TransportError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            try:
                content = await response.aread()
            finally:
                await response.aclose()
            raise self._error_for(method, path, response.status_code, content)

        logger.debug(
            "Engine stream opened",
            method=method,
            path=path,
            content_type=response.headers.get("content-type"),
        )
        return ControlStream(response, multiplexed=multiplexed)

    async def ping(self) -> bool:
        """Check whether the engine answers ``/_ping``."""
        try:
            await self.request("GET", "/_ping")
            return True
        except (ControlPlaneError, TransportError, OperationTimeout) as e:
            logger.debug("Engine ping failed", error=str(e))
            return False

    def _error_for(
        self, method: str, path: str, status_code: int, content: bytes
    ) -> ControlPlaneError:
        body = decode_body(content)
        logger.debug(
            "Engine request failed",
            method=method,
            path=path,
            status_code=status_code,
        )
        if status_code == 404:
            return NotFoundError(body=body)
        return ControlPlaneError(status_code, body=body)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "DockerTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
