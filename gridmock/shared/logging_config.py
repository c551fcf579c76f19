"""
Shared logging configuration helpers.

Provides a single entry point to configure logging so that the server
process, the stop helper and the test suite do not fight over
logging.basicConfig.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# uvicorn installs its own handlers on these; keep their level in step
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def parse_level(level: Union[int, str]) -> int:
    """Translate a level name like "debug" into its logging constant."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(
    *,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    include_console: bool = True,
    force: bool = False,
) -> None:
    """
    Configure root logging once.

    Args:
        level: Default logging level to apply (constant or level name).
        log_file: Optional filename to log to. None skips file logging.
        include_console: Whether to emit logs to stderr as well.
        force: When True, reconfigure even if handlers already exist.
    """
    level = parse_level(level)
    root_logger = logging.getLogger()

    if root_logger.handlers and not force:
        root_logger.setLevel(level)
        return

    handlers: list[logging.Handler] = []
    formatter = logging.Formatter(DEFAULT_FORMAT)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if include_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers or None,
        format=DEFAULT_FORMAT,
        force=force,
    )

    for name in UVICORN_LOGGERS:
        logging.getLogger(name).setLevel(level)
