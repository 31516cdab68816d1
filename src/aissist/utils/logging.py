"""Logging setup for the AIssist command runner.

Every record written by the installed handlers carries the id of the command
that was running when it was emitted (``-`` outside a command), so a single
log file can interleave several runs and still be read per command.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator

__all__ = ["CommandFilter", "command_scope", "current_command", "setup_logging", "get_log_path"]

_DEFAULT_LOG_DIR = Path.home() / ".aissist" / "logs"
_LOG_FILE_NAME = "aissist.log"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(command)s | %(name)s | %(message)s"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_NO_COMMAND = "-"
_ACTIVE_COMMAND: ContextVar[str] = ContextVar("aissist_command", default=_NO_COMMAND)
_LOG_PATH: Path | None = None


class CommandFilter(logging.Filter):
    """Stamp records with the active command id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.command = _ACTIVE_COMMAND.get()
        return True


@contextmanager
def command_scope(command: str) -> Iterator[None]:
    """Attribute log records emitted inside the block to ``command``."""

    token = _ACTIVE_COMMAND.set(command)
    try:
        yield
    finally:
        _ACTIVE_COMMAND.reset(token)


def current_command() -> str:
    return _ACTIVE_COMMAND.get()


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Install a rotating file handler and, optionally, a stderr handler for warnings."""

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    target_dir = Path(log_dir or os.environ.get("AISSIST_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
        )
    ]
    if console:
        stderr_handler = logging.StreamHandler()
        stderr_handler.setLevel(max(level, logging.WARNING))
        handlers.append(stderr_handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(CommandFilter())

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))

    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the active log file, if logging has been configured."""

    return _LOG_PATH
