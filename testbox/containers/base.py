"""Shared start/stop flow for single-service test containers."""

import asyncio
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type, TypeVar

import structlog

from ..config import settings
from ..models.container import ContainerConfig
from ..models.errors import TestboxException
from ..services.container import Container, Docker
from ..services.ports import get_port
from .connection import ConnectionInfo, build_connection_url

logger = structlog.get_logger(__name__)

S = TypeVar("S", bound="ServiceContainer")


class ServiceContainer:
    """A started service container plus the credentials to reach it.

    Subclasses describe the service through class attributes and
    ``environment()``; ``start()`` runs the whole provisioning flow:
    allocate a host port, pull, create with the port bound, start, and wait
    for the readiness marker.
    """

    DEFAULT_IMAGE: ClassVar[str]
    CONTAINER_PORT: ClassVar[int]
    READY_MARKER: ClassVar[str]
    SCHEME: ClassVar[str]
    OPTION_KEYS: ClassVar[Tuple[str, ...]] = ()
    DEFAULT_USERNAME: ClassVar[str]
    DEFAULT_PASSWORD: ClassVar[str]

    def __init__(
        self,
        container: Container,
        port: int,
        username: str,
        password: str,
        docker: Docker,
        owns_docker: bool = False,
    ):
        self.container = container
        self.port = port
        self.username = username
        self.password = password
        self._docker = docker
        self._owns_docker = owns_docker

    @classmethod
    def environment(cls, username: str, password: str) -> Dict[str, str]:
        """Environment variables that configure the service's credentials."""
        raise NotImplementedError

    @classmethod
    async def start(
        cls: Type[S],
        image: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        docker: Optional[Docker] = None,
        timeout: Optional[float] = None,
    ) -> S:
        """
        Provision and start a new service container.

        Args:
            image: Image reference, defaults to ``DEFAULT_IMAGE``
            username: Service user, defaults to ``DEFAULT_USERNAME``
            password: Service password, defaults to ``DEFAULT_PASSWORD``
            docker: Engine facade to use; one is created from settings if omitted
            timeout: Readiness deadline, defaults to ``settings.readiness_timeout``

        Raises:
            ReadinessTimeout: The service did not log its marker in time
            StreamEnded: The container exited before becoming ready
            ControlPlaneError: The engine rejected the pull or creation
        """
        image = image or cls.DEFAULT_IMAGE
        username = username or cls.DEFAULT_USERNAME
        password = password or cls.DEFAULT_PASSWORD
        timeout = timeout if timeout is not None else settings.readiness_timeout

        owns_docker = docker is None
        docker = docker or Docker.from_settings()
        try:
            # Probing may scan thousands of ports
            loop = asyncio.get_running_loop()
            port = await loop.run_in_executor(None, get_port)
            await docker.pull_image(image, timeout=timeout)

            config = (
                ContainerConfig(image=image)
                .set_env(**cls.environment(username, password))
                .bind_port(cls.CONTAINER_PORT, port, host_ip=settings.container_host_ip)
            )
            container = await docker.create_container(config)
            try:
                await container.start()
                await container.wait_for_log(cls.READY_MARKER, timeout=timeout)
                if settings.readiness_settle_seconds:
                    await asyncio.sleep(settings.readiness_settle_seconds)
            except BaseException:
                # Includes cancellation from an outer deadline
                await _discard(container)
                raise
        except BaseException:
            if owns_docker:
                await docker.close()
            raise

        logger.info(
            "Service container started",
            service=cls.__name__,
            image=image,
            container_id=container.id[:12],
            port=port,
        )
        return cls(container, port, username, password, docker, owns_docker=owns_docker)

    @property
    def connection_info(self) -> ConnectionInfo:
        """Connection info for the service."""
        return ConnectionInfo(
            host=settings.connection_host,
            port=self.port,
            user=self.username,
            password=self.password,
        )

    def url(self, database: str, options: Optional[Mapping[str, Any]] = None) -> str:
        """
        Return the connection URL for ``database``.

        Raises:
            InvalidOptionError: An option key is not supported by the service
        """
        return build_connection_url(
            self.SCHEME,
            self.connection_info,
            database,
            options=options,
            allowed_options=self.OPTION_KEYS,
        )

    async def stop(self) -> None:
        """Force-remove the container."""
        try:
            await self.container.remove(force=True)
        finally:
            if self._owns_docker:
                await self._docker.close()

    async def __aenter__(self: S) -> S:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


async def _discard(container: Container) -> None:
    """Remove a container that failed to come up, keeping the original error."""
    try:
        await container.remove(force=True)
    except TestboxException as e:
        logger.warning(
            "Failed to remove container after failed start",
            container_id=container.id[:12],
            error=str(e),
        )
