"""Data models for testbox."""

from .container import (
    ContainerConfig,
    ContainerState,
    ExecConfig,
    ExecResult,
    HostConfig,
    PortBinding,
)
from .errors import (
    ErrorType,
    ErrorDetail,
    TestboxException,
    ControlPlaneError,
    NotFoundError,
    InvalidStateTransition,
    PortRangeError,
    PortExhaustedError,
    OperationTimeout,
    ReadinessTimeout,
    StreamEnded,
    StreamConsumedError,
    InvalidOptionError,
    TransportError,
    ExecFailed,
)

__all__ = [
    # Container models
    "ContainerConfig",
    "ContainerState",
    "ExecConfig",
    "ExecResult",
    "HostConfig",
    "PortBinding",
    # Error models
    "ErrorType",
    "ErrorDetail",
    "TestboxException",
    "ControlPlaneError",
    "NotFoundError",
    "InvalidStateTransition",
    "PortRangeError",
    "PortExhaustedError",
    "OperationTimeout",
    "ReadinessTimeout",
    "StreamEnded",
    "StreamConsumedError",
    "InvalidOptionError",
    "TransportError",
    "ExecFailed",
]
