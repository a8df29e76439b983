"""Container and exec request models.

Field names are snake_case in Python and serialize to the engine's
PascalCase wire names through aliases.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ContainerState(str, Enum):
    """Lifecycle state of a container handle."""

    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"
    REMOVED = "removed"


class PortBinding(BaseModel):
    """Host side of a published container port."""

    model_config = ConfigDict(populate_by_name=True)

    host_ip: str = Field(default="0.0.0.0", alias="HostIp")
    host_port: str = Field(..., alias="HostPort")


class HostConfig(BaseModel):
    """Host-level container settings."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    port_bindings: Dict[str, List[PortBinding]] = Field(
        default_factory=dict, alias="PortBindings"
    )
    binds: Optional[List[str]] = Field(default=None, alias="Binds")
    auto_remove: Optional[bool] = Field(default=None, alias="AutoRemove")


class ContainerConfig(BaseModel):
    """Body of ``POST /containers/create``.

    Unknown engine fields are accepted as extras and passed through
    unchanged, so callers can use any option the engine supports.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    image: str = Field(..., alias="Image")
    env: Optional[List[str]] = Field(default=None, alias="Env")
    cmd: Optional[List[str]] = Field(default=None, alias="Cmd")
    entrypoint: Optional[List[str]] = Field(default=None, alias="Entrypoint")
    working_dir: Optional[str] = Field(default=None, alias="WorkingDir")
    labels: Optional[Dict[str, str]] = Field(default=None, alias="Labels")
    tty: bool = Field(default=False, alias="Tty")
    exposed_ports: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, alias="ExposedPorts"
    )
    host_config: HostConfig = Field(default_factory=HostConfig, alias="HostConfig")

    def bind_port(
        self,
        container_port: Union[int, str],
        host_port: int,
        host_ip: str = "0.0.0.0",
    ) -> "ContainerConfig":
        """Expose ``container_port`` and publish it on ``host_ip:host_port``."""
        key = _port_key(container_port)
        self.exposed_ports[key] = {}
        self.host_config.port_bindings.setdefault(key, []).append(
            PortBinding(host_ip=host_ip, host_port=str(host_port))
        )
        return self

    def set_env(self, **values: Any) -> "ContainerConfig":
        """Append ``KEY=value`` entries to the environment."""
        env = list(self.env or [])
        env.extend(f"{key}={value}" for key, value in values.items())
        self.env = env
        return self

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the engine's JSON shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ExecConfig(BaseModel):
    """Body of ``POST /containers/{id}/exec``."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    cmd: List[str] = Field(..., alias="Cmd")
    env: Optional[List[str]] = Field(default=None, alias="Env")
    working_dir: Optional[str] = Field(default=None, alias="WorkingDir")
    user: Optional[str] = Field(default=None, alias="User")
    privileged: Optional[bool] = Field(default=None, alias="Privileged")
    tty: bool = Field(default=False, alias="Tty")
    attach_stdout: bool = Field(default=True, alias="AttachStdout")
    attach_stderr: bool = Field(default=True, alias="AttachStderr")

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the engine's JSON shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ExecResult(BaseModel):
    """Collected outcome of a finished exec instance."""

    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""


def _port_key(container_port: Union[int, str]) -> str:
    """Normalize ``5432`` to the engine's ``5432/tcp`` key."""
    key = str(container_port)
    return key if "/" in key else f"{key}/tcp"
