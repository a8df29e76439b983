"""MongoDB test container."""

from typing import ClassVar, Dict, Tuple

from .base import ServiceContainer


class MongoTestContainer(ServiceContainer):
    """MongoDB running in a throwaway container."""

    DEFAULT_IMAGE: ClassVar[str] = "mongo:7"
    CONTAINER_PORT: ClassVar[int] = 27017
    READY_MARKER: ClassVar[str] = "Waiting for connections"
    SCHEME: ClassVar[str] = "mongodb"
    OPTION_KEYS: ClassVar[Tuple[str, ...]] = ("authSource", "replicaSet", "directConnection")
    DEFAULT_USERNAME: ClassVar[str] = "root"
    DEFAULT_PASSWORD: ClassVar[str] = "password"

    @classmethod
    def environment(cls, username: str, password: str) -> Dict[str, str]:
        return {
            "MONGO_INITDB_ROOT_USERNAME": username,
            "MONGO_INITDB_ROOT_PASSWORD": password,
        }
