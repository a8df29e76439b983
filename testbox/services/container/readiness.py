"""Readiness waiting on container log output."""

import time
from typing import TYPE_CHECKING, Optional

import structlog

from ...models.errors import ReadinessTimeout, StreamEnded
from .stream import StreamControl
from .utils import with_timeout

if TYPE_CHECKING:
    from .container import Container

logger = structlog.get_logger(__name__)


async def wait_for_marker(
    container: "Container",
    marker: str,
    timeout: Optional[float] = None,
) -> None:
    """
    Block until a log line containing ``marker`` appears.

    Follows the container's stdout and stderr from the beginning of its log,
    so a marker printed before the call is still seen. Reading stops at the
    first matching line.

    Args:
        container: Started container to watch
        marker: Substring that signals readiness
        timeout: Deadline in seconds, None waits forever

    Raises:
        ReadinessTimeout: The deadline passed before the marker appeared
        StreamEnded: The log stream closed before the marker appeared
    """
    start_time = time.perf_counter()

    def _match(line: str) -> StreamControl:
        if marker in line:
            return StreamControl.STOP
        return StreamControl.CONTINUE

    stopped = await with_timeout(
        container.logs(_match, follow=True, tail="all", stdout=True, stderr=True),
        timeout,
        "wait_for_marker",
        error_factory=lambda: ReadinessTimeout(marker, timeout),
    )

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    if not stopped:
        logger.warning(
            "Log stream ended before readiness marker",
            container_id=container.id[:12],
            marker=marker,
            elapsed_ms=f"{elapsed_ms:.1f}",
        )
        raise StreamEnded(marker)

    logger.info(
        "Container ready",
        container_id=container.id[:12],
        marker=marker,
        elapsed_ms=f"{elapsed_ms:.1f}",
    )
