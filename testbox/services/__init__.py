"""Services for provisioning test containers."""

from .container import Container, Docker, DockerTransport, ExecInstance, ImageResolver
from .ports import MIN_PORT, MAX_PORT, CheckedPort, check_port, get_port, make_range, random_port

__all__ = [
    "Container",
    "Docker",
    "DockerTransport",
    "ExecInstance",
    "ImageResolver",
    "MIN_PORT",
    "MAX_PORT",
    "CheckedPort",
    "check_port",
    "get_port",
    "make_range",
    "random_port",
]
