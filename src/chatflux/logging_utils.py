"""Runtime logging helpers."""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Generator
from contextvars import ContextVar
from logging import Handler
from typing import Literal, Protocol

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "chat"]

_PROFILE_FORMATS: dict[LogProfile, str] = {
    "chat": "{level} | {extra[bot]} | {message}",
    "default": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[bot]} | {message}",
}
_CONFIGURED: tuple[LogProfile, str] | None = None
_bot_context: ContextVar[str] = ContextVar("bot")
INDENT = "  "


def current_bot() -> str:
    """Get the name of the bot currently handling a message."""
    return _bot_context.get("-")


@contextlib.contextmanager
def bot_context(name: str) -> Generator[str, None, None]:
    reset_token = _bot_context.set(name)
    try:
        yield name
    finally:
        _bot_context.reset(reset_token)


def _build_chat_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Configure process-level logging once."""

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["bot"] = current_bot()

    global _CONFIGURED
    level = (level or os.getenv("CHATFLUX_LOG_LEVEL", "INFO")).upper()
    if (profile, level) == _CONFIGURED:
        return

    logger.remove()
    if profile == "chat":
        logger.add(
            _build_chat_handler(),
            level=level,
            format="{message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=level,
            format=_PROFILE_FORMATS[profile],
            backtrace=False,
            diagnose=False,
        )
    logger.configure(patcher=inject_context)
    _CONFIGURED = (profile, level)


class TraceLogger(Protocol):
    """Level-indented trace sink used by bots and rules."""

    def trace(self, message: str, *, indent: int = 0) -> None: ...


class LoguruTraceLogger:
    """Trace lines as loguru debug records, indented per tree level."""

    def __init__(self, component: str = "chatflux") -> None:
        self._logger = logger.bind(component=component)

    def trace(self, message: str, *, indent: int = 0) -> None:
        self._logger.debug("{}{}", INDENT * indent, message)


class NullTraceLogger:
    def trace(self, message: str, *, indent: int = 0) -> None:
        return None


class RecordingTraceLogger:
    """Keeps trace lines in memory; handy for tests and the CLI."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def trace(self, message: str, *, indent: int = 0) -> None:
        self.lines.append(f"{INDENT * indent}{message}")
