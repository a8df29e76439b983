"""Ephemeral TCP port allocation.

A port counts as free when a listener can be bound to it and released
again. Nothing remembers which ports were handed out, so two callers (or
two processes) can be given the same port; whoever binds second loses and
should allocate again.
"""

import errno
import os
import random
import socket
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import structlog

from ..config import settings
from ..models.errors import PortExhaustedError, PortRangeError

logger = structlog.get_logger(__name__)

MIN_PORT = 1024
MAX_PORT = 65535

_ADDR_IN_USE = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


@dataclass(frozen=True)
class CheckedPort:
    """Outcome of a single bind probe."""

    valid: bool
    port: int


def check_port(port: int, hostname: str = "0.0.0.0") -> CheckedPort:
    """Try to bind a listener on ``hostname:port`` and release it.

    Args:
        port: Port to probe
        hostname: Interface to bind on

    Returns:
        CheckedPort with ``valid=False`` when the address is in use

    Raises:
        OSError: Any bind failure other than "address in use"
    """
    family = socket.AF_INET6 if ":" in hostname else socket.AF_INET
    with socket.socket(family, socket.SOCK_STREAM) as sock:
        if os.name != "nt":
            # Lets TIME_WAIT leftovers count as free; a live listener still conflicts.
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((hostname, port))
            sock.listen(1)
        except OSError as e:
            if e.errno not in _ADDR_IN_USE:
                raise
            return CheckedPort(valid=False, port=port)
    return CheckedPort(valid=True, port=port)


def make_range(start: int, end: int) -> List[int]:
    """Build an inclusive ascending list of ports.

    Args:
        start: Must be strictly between 1024 and 65535
        end: Must be strictly between 1024 and 65535 and greater than start

    Raises:
        PortRangeError: Naming the offending bound
    """
    if not MIN_PORT < start < MAX_PORT:
        raise PortRangeError("start", f"`start` must be between {MIN_PORT} and {MAX_PORT}")
    if not MIN_PORT < end < MAX_PORT:
        raise PortRangeError("end", f"`end` must be between {MIN_PORT} and {MAX_PORT}")
    if not end > start:
        raise PortRangeError("end", "`end` must be greater than `start`")
    return list(range(start, end + 1))


def random_port(hostname: Optional[str] = None, max_attempts: Optional[int] = None) -> int:
    """Return a free port drawn uniformly from the registered range.

    Conflicting draws are rejected and redrawn, up to ``max_attempts`` times.

    Raises:
        PortExhaustedError: Every draw hit a busy port
    """
    hostname = hostname or settings.port_probe_host
    if max_attempts is None:
        max_attempts = settings.port_random_max_attempts

    for _ in range(max_attempts):
        candidate = random.randint(MIN_PORT + 1, MAX_PORT - 1)
        if check_port(candidate, hostname).valid:
            return candidate
        logger.debug("Random port busy", port=candidate)

    raise PortExhaustedError(f"No free random port after {max_attempts} attempts")


def get_port(
    port: Union[int, Sequence[int], None] = None,
    hostname: Optional[str] = None,
) -> int:
    """Return an available port.

    Args:
        port: Nothing (scan the whole range), a preferred port (fall back to
            the first free port above it), or an ordered list of candidates
            (fall back to the first free port above the last one)
        hostname: Interface to probe, defaults to ``settings.port_probe_host``

    Raises:
        PortExhaustedError: No free port remains at or above the candidates
        PortRangeError: A preferred port lies outside the registered range
    """
    hostname = hostname or settings.port_probe_host

    # 0 and booleans carry no preference
    if isinstance(port, bool) or port == 0:
        port = None

    if isinstance(port, int):
        _require_registered(port)
        if check_port(port, hostname).valid:
            return port
        logger.debug("Preferred port busy", port=port)
        candidates = _range_above(port)
    elif port:
        candidates = list(port)
        for candidate in candidates:
            _require_registered(candidate)
    else:
        candidates = make_range(MIN_PORT + 1, MAX_PORT - 1)

    # Each round starts above the previous round's last candidate, so the
    # loop ends once the top of the range has been scanned.
    while candidates:
        for candidate in candidates:
            if check_port(candidate, hostname).valid:
                return candidate
        logger.debug(
            "All candidate ports busy, widening",
            first=candidates[0],
            last=candidates[-1],
        )
        candidates = _range_above(candidates[-1])

    raise PortExhaustedError()


def _require_registered(port: int) -> None:
    if not MIN_PORT < port < MAX_PORT:
        raise PortRangeError(
            "port", f"`port` must be between {MIN_PORT} and {MAX_PORT}, got {port}"
        )


def _range_above(port: int) -> List[int]:
    """Candidates from ``port + 1`` up to ``MAX_PORT - 1``."""
    start = max(port + 1, MIN_PORT + 1)
    if start > MAX_PORT - 1:
        return []
    if start == MAX_PORT - 1:
        return [start]
    return make_range(start, MAX_PORT - 1)
