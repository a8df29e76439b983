"""Ready-made service containers and connection URL helpers."""

from .base import ServiceContainer
from .connection import (
    ConnectionInfo,
    ConnectionUrl,
    build_connection_url,
    parse_connection_url,
    validate_options,
)
from .mongodb import MongoTestContainer
from .postgres import PostgresTestContainer

__all__ = [
    "ServiceContainer",
    "ConnectionInfo",
    "ConnectionUrl",
    "build_connection_url",
    "parse_connection_url",
    "validate_options",
    "MongoTestContainer",
    "PostgresTestContainer",
]
