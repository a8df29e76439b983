"""One-shot command execution inside a running container."""

from typing import AsyncIterator, Dict, List, Optional, Any

import structlog

from ...models.container import ExecResult
from ...models.errors import InvalidStateTransition
from .stream import ControlStream, StreamType
from .transport import DockerTransport
from .utils import quote_id, with_timeout

logger = structlog.get_logger(__name__)


class ExecInstance:
    """An exec created in a container.

    Goes from created to started exactly once. The attached output is a
    stream that can be read a single time, through ``output()`` or
    ``wait()``.
    """

    def __init__(
        self,
        transport: DockerTransport,
        exec_id: str,
        container_id: Optional[str] = None,
        tty: bool = False,
    ):
        self._transport = transport
        self._id = exec_id
        self._container_id = container_id
        self._tty = tty
        self._stream: Optional[ControlStream] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def started(self) -> bool:
        return self._stream is not None

    async def start(self) -> "ExecInstance":
        """Start the exec with stdout and stderr attached.

        Returns once the engine accepts the request; output is read later.
        """
        if self._stream is not None:
            raise InvalidStateTransition("start exec", "started")

        self._stream = await self._transport.stream(
            "POST",
            f"/exec/{quote_id(self._id)}/start",
            body={"Detach": False, "Tty": self._tty},
            multiplexed=not self._tty,
        )
        logger.debug(
            "Started exec",
            exec_id=self._id[:12],
            container_id=(self._container_id or "")[:12],
        )
        return self

    def _require_stream(self) -> ControlStream:
        if self._stream is None:
            raise InvalidStateTransition("read output of exec", "created")
        return self._stream

    async def output(self) -> AsyncIterator[str]:
        """Yield output lines from stdout and stderr, interleaved."""
        stream = self._require_stream()
        async with stream:
            async for line in stream.lines():
                yield line

    async def wait(self, timeout: Optional[float] = None) -> ExecResult:
        """
        Drain the output and report the exit code.

        Args:
            timeout: Deadline in seconds, None waits forever

        Raises:
            OperationTimeout: The command did not finish in time
        """
        stream = self._require_stream()

        async def _collect() -> Dict[StreamType, List[str]]:
            collected: Dict[StreamType, List[str]] = {
                StreamType.STDOUT: [],
                StreamType.STDERR: [],
            }
            async with stream:
                async for kind, line in stream.tagged_lines():
                    collected.setdefault(kind, []).append(line)
            return collected

        collected = await with_timeout(_collect(), timeout, f"exec {self._id[:12]}")
        details = await self.inspect()
        result = ExecResult(
            exit_code=details.get("ExitCode"),
            stdout="\n".join(collected[StreamType.STDOUT]),
            stderr="\n".join(collected[StreamType.STDERR]),
        )
        logger.debug("Exec finished", exec_id=self._id[:12], exit_code=result.exit_code)
        return result

    async def inspect(self) -> Dict[str, Any]:
        """Return low-level information about the exec."""
        return await self._transport.get(f"/exec/{quote_id(self._id)}/json")

    async def close(self) -> None:
        """Release the output stream without reading it."""
        if self._stream is not None:
            await self._stream.aclose()
