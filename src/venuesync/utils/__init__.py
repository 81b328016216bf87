"""Shared utilities (logging, file helpers)."""

from venuesync.utils.files import atomic_write_bytes, atomic_write_text, remove_quietly
from venuesync.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    "atomic_write_bytes",
    "atomic_write_text",
    "remove_quietly",
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
]
