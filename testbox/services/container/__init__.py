"""Container engine services.

This package drives the Docker engine control API:
- transport.py: HTTP client for the engine socket
- stream.py: Streamed responses and stdout/stderr demultiplexing
- client.py: Docker facade for creating containers and pulling images
- container.py: Container handle and lifecycle operations
- exec.py: One-shot command execution in containers
- image.py: Image pulling
- readiness.py: Waiting for a readiness marker in container logs
- utils.py: Shared utilities for container operations
"""

from .client import Docker
from .container import Container
from .exec import ExecInstance
from .image import ImageResolver, parse_image_reference
from .readiness import wait_for_marker
from .stream import ControlStream, StreamControl, StreamType, demultiplex
from .transport import DockerTransport, encode_query
from .utils import with_timeout

__all__ = [
    "Docker",
    "Container",
    "ExecInstance",
    "ImageResolver",
    "parse_image_reference",
    "wait_for_marker",
    "ControlStream",
    "StreamControl",
    "StreamType",
    "demultiplex",
    "DockerTransport",
    "encode_query",
    "with_timeout",
]
