"""Configuration management for testbox.

Usage:
    from testbox.config import settings

    # Access grouped settings
    settings.docker.get_base_url()
    settings.ports.port_probe_host

    # Or the flat fields
    settings.docker_host
    settings.log_level
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .docker import DockerConfig
from .ports import PortsConfig
from .logging import LoggingConfig

SUPPORTED_HOST_SCHEMES = ("unix://", "tcp://", "http://", "https://")


class Settings(BaseSettings):
    """Settings with environment variable support.

    Flat fields are read from the environment; grouped views
    (``settings.docker``) are built from them on access.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Docker engine
    docker_host: str = Field(default="unix:///var/run/docker.sock")
    docker_api_version: str = Field(default="1.45")
    docker_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Timeout in seconds for non-streaming engine requests",
    )

    # Ports
    port_probe_host: str = Field(default="0.0.0.0")
    port_random_max_attempts: int = Field(default=1000, ge=1)
    container_host_ip: str = Field(
        default="0.0.0.0", description="Interface published container ports bind to"
    )
    connection_host: str = Field(
        default="127.0.0.1", description="Host used in service connection URLs"
    )

    # Readiness
    readiness_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Default readiness deadline for service wrappers; unset waits forever",
    )
    readiness_settle_seconds: float = Field(
        default=0.25,
        ge=0,
        description="Pause after the readiness marker before handing out a container",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("docker_host")
    @classmethod
    def validate_docker_host(cls, v):
        """Ensure the engine endpoint uses a scheme the transport can dial."""
        if not v.startswith(SUPPORTED_HOST_SCHEMES):
            raise ValueError(
                f"DOCKER_HOST must start with one of {', '.join(SUPPORTED_HOST_SCHEMES)}"
            )
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Only console and json renderers exist."""
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("LOG_FORMAT must be 'console' or 'json'")
        return v

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def docker(self) -> DockerConfig:
        """Access Docker engine configuration group."""
        return DockerConfig(
            docker_host=self.docker_host,
            docker_api_version=self.docker_api_version,
            docker_timeout=self.docker_timeout,
        )

    @property
    def ports(self) -> PortsConfig:
        """Access port configuration group."""
        return PortsConfig(
            port_probe_host=self.port_probe_host,
            port_random_max_attempts=self.port_random_max_attempts,
            container_host_ip=self.container_host_ip,
            connection_host=self.connection_host,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
        )


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "DockerConfig",
    "PortsConfig",
    "LoggingConfig",
]
