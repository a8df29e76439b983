"""Utility modules for testbox."""

from .logging import setup_logging, get_logger, bind_context, clear_context

__all__ = [
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
