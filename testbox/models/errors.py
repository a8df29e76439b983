"""Error models and exception classes for testbox."""

from typing import Any, List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class ErrorType(str, Enum):
    """Error type enumeration."""

    CONTROL_PLANE = "control_plane"
    RESOURCE_NOT_FOUND = "resource_not_found"
    INVALID_STATE = "invalid_state"
    VALIDATION = "validation"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    TIMEOUT = "timeout"
    STREAM = "stream"
    TRANSPORT = "transport"
    EXECUTION_FAILED = "execution_failed"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Offending field or parameter")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


# Custom Exception Classes


class TestboxException(Exception):
    """Base exception for testbox."""

    # Keeps pytest from collecting the class when imported into test modules
    __test__ = False

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.CONTROL_PLANE,
        status_code: Optional[int] = None,
        details: Optional[List[ErrorDetail]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or []
        super().__init__(message)


class ControlPlaneError(TestboxException):
    """The engine answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        body: Any = None,
        message: Optional[str] = None,
        **kwargs,
    ):
        self.body = body
        error_message = message or _message_from_body(body) or "Engine request failed"
        kwargs.setdefault("error_type", ErrorType.CONTROL_PLANE)
        super().__init__(
            message=f"{error_message} (status {status_code})",
            status_code=status_code,
            **kwargs,
        )


class NotFoundError(ControlPlaneError):
    """Operation against a removed or unknown resource."""

    def __init__(self, body: Any = None, message: Optional[str] = None, **kwargs):
        super().__init__(
            404, body=body, message=message, error_type=ErrorType.RESOURCE_NOT_FOUND, **kwargs
        )


class InvalidStateTransition(ControlPlaneError):
    """Lifecycle transition rejected locally before reaching the engine."""

    def __init__(self, operation: str, state: str, **kwargs):
        self.operation = operation
        self.state = state
        super().__init__(
            409,
            message=f"Cannot {operation} while {state}",
            error_type=ErrorType.INVALID_STATE,
            **kwargs,
        )


class PortRangeError(TestboxException, ValueError):
    """Invalid port range bound."""

    def __init__(self, bound: str, message: str):
        self.bound = bound
        super().__init__(
            message=message,
            error_type=ErrorType.VALIDATION,
            details=[ErrorDetail(field=bound, message=message)],
        )


class PortExhaustedError(TestboxException):
    """Every candidate port was busy."""

    def __init__(self, message: str = "No free port available", **kwargs):
        super().__init__(message=message, error_type=ErrorType.RESOURCE_EXHAUSTED, **kwargs)


class OperationTimeout(TestboxException):
    """A caller-supplied deadline elapsed."""

    def __init__(self, operation: str, timeout: float, message: Optional[str] = None):
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            message=message or f"{operation} did not finish within {timeout} seconds",
            error_type=ErrorType.TIMEOUT,
        )


class ReadinessTimeout(OperationTimeout):
    """Readiness marker not observed before the deadline."""

    def __init__(self, marker: str, timeout: float):
        self.marker = marker
        super().__init__(
            "wait_for_marker",
            timeout,
            message=f"Marker {marker!r} not seen in logs within {timeout} seconds",
        )


class StreamEnded(TestboxException):
    """Log stream closed before the readiness marker appeared."""

    def __init__(self, marker: str):
        self.marker = marker
        super().__init__(
            message=f"Log stream ended before marker {marker!r} appeared",
            error_type=ErrorType.STREAM,
        )


class StreamConsumedError(TestboxException):
    """A single-use stream was iterated a second time."""

    def __init__(self, message: str = "Stream has already been consumed"):
        super().__init__(message=message, error_type=ErrorType.STREAM)


class InvalidOptionError(TestboxException, ValueError):
    """Unsupported connection option key."""

    def __init__(self, key: str, allowed: List[str]):
        self.key = key
        super().__init__(
            message=f"Invalid connection option key: {key}",
            error_type=ErrorType.VALIDATION,
            details=[
                ErrorDetail(
                    field=key,
                    message=f"Allowed keys: {', '.join(sorted(allowed)) or 'none'}",
                )
            ],
        )


class TransportError(TestboxException):
    """Socket-level failure talking to the engine."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_type=ErrorType.TRANSPORT, **kwargs)


class ExecFailed(TestboxException):
    """A command run inside a container exited non-zero."""

    def __init__(self, cmd: List[str], exit_code: Optional[int], stderr: str = ""):
        self.cmd = cmd
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            message=f"Command {' '.join(cmd)!r} exited with {exit_code}",
            error_type=ErrorType.EXECUTION_FAILED,
        )


def _message_from_body(body: Any) -> Optional[str]:
    """Pull the engine's ``message`` field out of an error body."""
    if isinstance(body, dict):
        message = body.get("message")
        return str(message) if message else None
    if isinstance(body, str) and body.strip():
        return body.strip()
    return None
