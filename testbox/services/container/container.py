"""Container handle and lifecycle operations."""

from inspect import isawaitable
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, Optional, Union

import structlog

from ...models.container import ContainerState, ExecConfig
from ...models.errors import ControlPlaneError, InvalidStateTransition, NotFoundError
from .exec import ExecInstance
from .readiness import wait_for_marker
from .stream import StreamControl
from .transport import DockerTransport
from .utils import quote_id, with_timeout

logger = structlog.get_logger(__name__)

LineHandler = Callable[[str], Union[Optional[StreamControl], Awaitable[Optional[StreamControl]]]]


class Container:
    """Handle for a container created on the engine.

    The id and creation warnings never change. The lifecycle state is kept
    on the handle so that illegal transitions (``stop`` before ``start``,
    anything after ``remove``) fail locally without an engine round trip.
    """

    def __init__(
        self,
        transport: DockerTransport,
        container_id: str,
        warnings: Optional[Iterable[str]] = None,
        tty: bool = False,
        state: ContainerState = ContainerState.CREATED,
    ):
        self._transport = transport
        self._id = container_id
        self._warnings = tuple(warnings or ())
        self._tty = tty
        self._state = state

    def __repr__(self) -> str:
        return f"Container(id={self._id[:12]!r}, state={self._state.value!r})"

    @property
    def id(self) -> str:
        return self._id

    @property
    def warnings(self) -> tuple:
        return self._warnings

    @property
    def tty(self) -> bool:
        return self._tty

    @property
    def state(self) -> ContainerState:
        return self._state

    @property
    def _path(self) -> str:
        return f"/containers/{quote_id(self._id)}"

    def _require_exists(self) -> None:
        if self._state is ContainerState.REMOVED:
            raise NotFoundError(message=f"Container {self._id[:12]} has been removed")

    def _require_state(self, operation: str, *allowed: ContainerState) -> None:
        self._require_exists()
        if self._state not in allowed:
            raise InvalidStateTransition(operation, self._state.value)

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        try:
            return await self._transport.request(method, path, **kwargs)
        except NotFoundError:
            self._state = ContainerState.REMOVED
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, detach_keys: Optional[str] = None) -> None:
        """Start the container (also restarts a stopped one).

        Raises:
            InvalidStateTransition: The container is already started
        """
        self._require_state("start", ContainerState.CREATED, ContainerState.STOPPED)
        await self._call("POST", f"{self._path}/start", query={"detachKeys": detach_keys})
        self._state = ContainerState.STARTED
        logger.info("Started container", container_id=self._id[:12])

    async def stop(self, signal: Optional[str] = None, t: Optional[int] = None) -> None:
        """
        Stop the container.

        Args:
            signal: Signal to send, e.g. ``SIGINT``
            t: Seconds to wait before the engine kills the container

        Raises:
            InvalidStateTransition: The container was never started or is stopped
        """
        self._require_state("stop", ContainerState.STARTED)
        try:
            await self._call("POST", f"{self._path}/stop", query={"signal": signal, "t": t})
        except ControlPlaneError as e:
            # 304: the container already exited on its own
            if e.status_code != 304:
                raise
            logger.debug("Container already stopped", container_id=self._id[:12])
        self._state = ContainerState.STOPPED
        logger.info("Stopped container", container_id=self._id[:12])

    async def remove(self, force: bool = False, v: bool = False, link: bool = False) -> None:
        """
        Remove the container.

        Args:
            force: Kill the container first if it is running
            v: Remove anonymous volumes associated with the container
            link: Remove the named link instead of the container
        """
        self._require_exists()
        await self._call(
            "DELETE", self._path, query={"force": force, "v": v, "link": link}
        )
        self._state = ContainerState.REMOVED
        logger.info("Removed container", container_id=self._id[:12], force=force)

    async def inspect(self) -> Dict[str, Any]:
        """Return low-level information about the container.

        Raises:
            NotFoundError: The container has been removed
        """
        self._require_exists()
        return await self._call("GET", f"{self._path}/json")

    async def host_port(self, container_port: Union[int, str]) -> Optional[int]:
        """Return the host port published for ``container_port``, if any."""
        key = str(container_port)
        if "/" not in key:
            key = f"{key}/tcp"
        details = await self.inspect()
        bindings = (details.get("NetworkSettings") or {}).get("Ports") or {}
        for binding in bindings.get(key) or []:
            host_port = binding.get("HostPort")
            if host_port:
                return int(host_port)
        return None

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def stream_logs(
        self,
        follow: bool = True,
        tail: Union[int, str] = "all",
        stdout: bool = True,
        stderr: bool = False,
        timestamps: bool = False,
    ) -> AsyncIterator[str]:
        """
        Yield log lines lazily.

        With ``follow`` the sequence only ends when the container stops
        producing output or the consumer stops iterating.
        """
        self._require_exists()
        try:
            stream = await self._transport.stream(
                "GET",
                f"{self._path}/logs",
                query={
                    "stdout": stdout,
                    "stderr": stderr,
                    "follow": follow,
                    "tail": tail,
                    "timestamps": timestamps,
                },
                multiplexed=not self._tty,
            )
        except NotFoundError:
            self._state = ContainerState.REMOVED
            raise

        async with stream:
            async for line in stream.lines():
                yield line

    async def logs(
        self,
        handler: LineHandler,
        follow: bool = True,
        tail: Union[int, str] = "all",
        stdout: bool = True,
        stderr: bool = False,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Feed each log line to ``handler`` until it returns ``StreamControl.STOP``.

        Args:
            handler: Called per line, may be a coroutine function
            follow: Keep reading as new output arrives
            tail: Number of lines from the end to start with, or ``"all"``
            stdout: Include stdout
            stderr: Include stderr
            timeout: Deadline in seconds, None waits forever

        Returns:
            True if the handler stopped the stream, False if the stream ended

        Raises:
            OperationTimeout: The deadline passed first
        """

        async def _consume() -> bool:
            lines = self.stream_logs(follow=follow, tail=tail, stdout=stdout, stderr=stderr)
            try:
                async for line in lines:
                    outcome = handler(line)
                    if isawaitable(outcome):
                        outcome = await outcome
                    if outcome is StreamControl.STOP:
                        return True
            finally:
                await lines.aclose()
            return False

        return await with_timeout(_consume(), timeout, f"logs of {self._id[:12]}")

    async def wait_for_log(self, marker: str, timeout: Optional[float] = None) -> None:
        """Block until a log line contains ``marker``."""
        await wait_for_marker(self, marker, timeout=timeout)

    # ------------------------------------------------------------------
    # Exec
    # ------------------------------------------------------------------

    async def exec(self, cmd: Union[str, Iterable[str]], **options: Any) -> ExecInstance:
        """
        Run a command inside the running container.

        Creates the exec and starts it straight away with stdout and stderr
        attached.

        Args:
            cmd: Command as a string or argument list
            **options: Exec options such as ``env``, ``working_dir``, ``user``

        Returns:
            The started ExecInstance
        """
        self._require_state("exec in", ContainerState.STARTED)
        config = ExecConfig(cmd=[cmd] if isinstance(cmd, str) else list(cmd), **options)
        config.attach_stdout = True
        config.attach_stderr = True

        created = await self._call("POST", f"{self._path}/exec", body=config.to_wire())
        instance = ExecInstance(
            self._transport, created["Id"], container_id=self._id, tty=config.tty
        )
        return await instance.start()
