"""Docker engine facade: create containers and pull images."""

from typing import Any, Dict, Optional, Union

import structlog

from ...models.container import ContainerConfig, ContainerState
from .container import Container
from .image import ImageResolver
from .transport import DockerTransport
from .utils import quote_id

logger = structlog.get_logger(__name__)

_STATUS_TO_STATE = {
    "created": ContainerState.CREATED,
    "running": ContainerState.STARTED,
    "paused": ContainerState.STARTED,
    "restarting": ContainerState.STARTED,
    "exited": ContainerState.STOPPED,
    "dead": ContainerState.STOPPED,
    "removing": ContainerState.STOPPED,
}


class Docker:
    """Entry point for provisioning containers on one engine.

    The transport is injected, so several engines (or isolated test
    doubles) can be driven side by side::

        async with Docker.from_settings() as docker:
            await docker.pull_image("postgres:16")
            container = await docker.create_container(config)
    """

    def __init__(self, transport: DockerTransport):
        self.transport = transport
        self.images = ImageResolver(transport)

    @classmethod
    def from_settings(cls) -> "Docker":
        """Create a facade with a transport built from the global settings."""
        return cls(DockerTransport.from_settings())

    async def create_container(
        self,
        config: Union[ContainerConfig, Dict[str, Any]],
        name: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> Container:
        """
        Create a new container.

        Args:
            config: ContainerConfig, or a dict already in engine wire format
            name: Container name
            platform: Platform, e.g. ``linux/amd64``

        Returns:
            Handle for the created (not yet started) container

        Raises:
            NotFoundError: The image is not present locally
            ControlPlaneError: The engine rejected the configuration
        """
        if isinstance(config, ContainerConfig):
            body = config.to_wire()
            tty = config.tty
        else:
            body = dict(config)
            tty = bool(body.get("Tty", False))

        created = await self.transport.post(
            "/containers/create",
            query={"name": name, "platform": platform},
            body=body,
        )
        container = Container(
            self.transport,
            created["Id"],
            warnings=created.get("Warnings") or [],
            tty=tty,
        )
        for warning in container.warnings:
            logger.warning(
                "Container created with warning",
                container_id=container.id[:12],
                warning=warning,
            )
        logger.info(
            "Created container",
            container_id=container.id[:12],
            image=body.get("Image"),
            name=name,
        )
        return container

    async def pull_image(self, image: str, timeout: Optional[float] = None) -> None:
        """Pull an image from its registry."""
        await self.images.pull(image, timeout=timeout)

    async def get_container(self, container_id: str) -> Container:
        """
        Build a handle for an existing container.

        The lifecycle state is taken from the engine's current status.

        Raises:
            NotFoundError: No such container
        """
        details = await self.transport.get(f"/containers/{quote_id(container_id)}/json")
        status = (details.get("State") or {}).get("Status", "created")
        return Container(
            self.transport,
            details["Id"],
            tty=bool((details.get("Config") or {}).get("Tty", False)),
            state=_STATUS_TO_STATE.get(status, ContainerState.CREATED),
        )

    async def ping(self) -> bool:
        """Check whether the engine is reachable."""
        return await self.transport.ping()

    async def close(self) -> None:
        """Close the underlying transport."""
        await self.transport.aclose()

    async def __aenter__(self) -> "Docker":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
