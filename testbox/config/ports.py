"""Port allocation and publishing configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PortsConfig(BaseSettings):
    """Where ports are probed and published."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    port_probe_host: str = Field(default="0.0.0.0")
    port_random_max_attempts: int = Field(default=1000, ge=1)
    container_host_ip: str = Field(default="0.0.0.0")
    connection_host: str = Field(default="127.0.0.1")
