"""Image pulling."""

import json
from typing import Optional, Tuple

import structlog

from ...models.errors import ControlPlaneError
from .stream import ControlStream
from .transport import DockerTransport
from .utils import with_timeout

logger = structlog.get_logger(__name__)

DEFAULT_TAG = "latest"


def parse_image_reference(reference: str) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Split ``repo[:tag][@digest]`` into its parts.

    A colon only separates a tag when it appears after the last slash, so
    registry ports (``localhost:5000/app``) stay part of the repository.

    Returns:
        Tuple of (repository, tag, digest)
    """
    name, _, digest = reference.partition("@")
    repository, tag = name, None
    last_segment = name.rsplit("/", 1)[-1]
    if ":" in last_segment:
        repository, tag = name.rsplit(":", 1)
    return repository, tag or None, digest or None


class ImageResolver:
    """Pulls images and waits for the pull to finish."""

    def __init__(self, transport: DockerTransport):
        self._transport = transport

    async def pull(
        self,
        reference: str,
        timeout: Optional[float] = None,
        platform: Optional[str] = None,
    ) -> None:
        """
        Pull ``reference`` and drain its progress stream.

        A reference without tag or digest pulls ``latest`` rather than
        every tag of the repository.

        Args:
            reference: Image reference, e.g. ``postgres:16``
            timeout: Deadline in seconds, None waits forever
            platform: Platform to pull, e.g. ``linux/amd64``

        Raises:
            ControlPlaneError: The engine rejected the pull or reported an
                error while pulling
            OperationTimeout: The deadline passed first
        """
        repository, tag, digest = parse_image_reference(reference)
        logger.info("Pulling image", image=reference)

        stream = await self._transport.stream(
            "POST",
            "/images/create",
            query={
                "fromImage": repository,
                "tag": digest or tag or DEFAULT_TAG,
                "platform": platform,
            },
        )
        await with_timeout(self._drain(stream, reference), timeout, f"pull {reference}")
        logger.info("Pulled image", image=reference)

    async def _drain(self, stream: ControlStream, reference: str) -> None:
        async with stream:
            async for line in stream.lines():
                if not line.strip():
                    continue
                try:
                    event = json.loads(line)
                except ValueError:
                    logger.debug("Skipping non-JSON pull event", image=reference, line=line)
                    continue

                error = event.get("error") or (event.get("errorDetail") or {}).get("message")
                if error:
                    logger.error("Image pull failed", image=reference, error=error)
                    raise ControlPlaneError(stream.status_code, body=event, message=error)

                status = event.get("status")
                if status and "id" not in event:
                    logger.debug("Pull progress", image=reference, status=status)
