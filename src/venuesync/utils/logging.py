"""
Logging configuration for venuesync.

Everything logs below the ``venuesync`` logger. The console goes through
rich's RichHandler unless a plain stream is asked for; long-running services
add a file handler with a grep-friendly line format.
"""

import logging
import sys
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

ROOT_LOGGER = "venuesync"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class FileFormatter(logging.Formatter):
    """``<time> [LEVEL   ] logger: message``, one record per line."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s", datefmt=_DATEFMT)


class ConsoleFormatter(logging.Formatter):
    """Plain console format; errors are prefixed with their source location."""

    def __init__(self) -> None:
        super().__init__(datefmt=_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        if record.levelno >= logging.ERROR and record.pathname:
            text = f"{Path(record.pathname).name}:{record.lineno} - {text}"
        line = f"{record.levelname}: {self.formatTime(record)} - {text}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _parse_level(level: str | int) -> int:
    """Numeric level for a name such as ``"debug"``; unknown names mean INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelNamesMapping().get(str(level).upper())
    return value if value is not None else logging.INFO


def _console_handler(level: int, use_rich: bool, format_string: str | None) -> logging.Handler:
    if use_rich:
        return RichHandler(
            level=level,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
            omit_repeated_times=False,
        )
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string) if format_string else ConsoleFormatter())
    return handler


def _file_handler(path: str | Path, mode: str) -> logging.Handler:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode=mode)
    # The logger level decides what reaches the file
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(FileFormatter())
    return handler


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    format_string: str | None = None,
    file_mode: str = "a",
    console_enabled: bool = True,
    use_rich: bool = True,
) -> logging.Logger:
    """
    (Re)configure the ``venuesync`` logger.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Level name or number
        log_file: Also write to this file when set
        format_string: Line format for the plain console handler
        file_mode: 'a' appends to ``log_file``, 'w' truncates it
        console_enabled: Emit to stderr at all
        use_rich: RichHandler console instead of the plain format
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    numeric = _parse_level(level)
    logger.setLevel(numeric)

    if console_enabled:
        logger.addHandler(_console_handler(numeric, use_rich, format_string))
    if log_file:
        logger.addHandler(_file_handler(log_file, file_mode))
    return logger


def setup_logging_from_config(config: dict[str, Any], project_dir: Path | None = None) -> logging.Logger:
    """
    Apply the ``logging`` section of a configuration mapping.

    Keys: ``level``, ``file`` (relative paths resolve against ``project_dir``),
    ``file_enabled``, ``file_mode``, ``format``, ``console_enabled`` and
    ``console_type`` (``rich`` or ``plain``).
    """
    section = config.get("logging") or {}

    log_file: str | Path | None = None
    if section.get("file_enabled", True):
        log_file = section.get("file") or section.get("log_file")
    if log_file and project_dir is not None and not Path(log_file).is_absolute():
        log_file = project_dir / log_file

    return setup_logging(
        level=section.get("level", logging.INFO),
        log_file=log_file,
        format_string=section.get("format"),
        file_mode=section.get("file_mode", "a"),
        console_enabled=section.get("console_enabled", True),
        use_rich=section.get("console_type", "rich") == "rich",
    )


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger under the venuesync namespace; handlers live on the root ``venuesync`` logger."""
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
