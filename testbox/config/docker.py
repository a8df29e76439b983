"""Docker engine connection configuration."""

from typing import Optional
from urllib.parse import urlsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Host part of the base URL when talking over a unix socket; the engine ignores it.
UNIX_SOCKET_HOST = "docker"


class DockerConfig(BaseSettings):
    """Docker engine endpoint settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    docker_host: str = Field(default="unix:///var/run/docker.sock")
    docker_api_version: str = Field(default="1.45")
    docker_timeout: float = Field(default=60.0, gt=0)

    def get_socket_path(self) -> Optional[str]:
        """Get the unix socket path, or None for TCP endpoints."""
        if self.docker_host.startswith("unix://"):
            return urlsplit(self.docker_host).path
        return None

    def get_base_url(self) -> str:
        """Get the versioned HTTP base URL for the engine API."""
        parts = urlsplit(self.docker_host)
        if parts.scheme == "unix":
            origin = f"http://{UNIX_SOCKET_HOST}"
        elif parts.scheme == "tcp":
            origin = f"http://{parts.netloc}"
        else:
            origin = f"{parts.scheme}://{parts.netloc}"
        version = self.docker_api_version.lstrip("v")
        return f"{origin}/v{version}"
