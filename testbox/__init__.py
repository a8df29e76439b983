"""testbox: short-lived service containers for test suites."""

from .services.container import Container, Docker, DockerTransport, ExecInstance, StreamControl
from .services.ports import get_port, random_port
from .models.container import ContainerConfig, ContainerState

__version__ = "0.1.0"

__all__ = [
    "Container",
    "ContainerConfig",
    "ContainerState",
    "Docker",
    "DockerTransport",
    "ExecInstance",
    "StreamControl",
    "get_port",
    "random_port",
]
