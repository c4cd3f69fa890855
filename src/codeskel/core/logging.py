"""Logging for the indexer, the watcher and the ``skel`` CLI.

Events go through structlog and end in stdlib handlers, one per configured
output, each with its own level and format (console or JSON lines). Events
emitted while a rebuild pass runs carry that pass's ``pass_id``, including
events from extraction pool threads. Console outputs go quiet while a rich
spinner is on screen. The first file output is remembered so error messages
can point at it.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from codeskel.config.models import LoggingConfig, LogOutputConfig

_CONSOLE_DESTINATIONS = ("stderr", "stdout")

_pass_id: ContextVar[str | None] = ContextVar("pass_id", default=None)

_log_file_path: Path | None = None


def get_pass_id() -> str | None:
    return _pass_id.get()


def set_pass_id(pass_id: str | None = None) -> str:
    """Tag the current context with a rebuild pass id; a fresh one if none is given."""
    pid = pass_id or uuid4().hex[:12]
    _pass_id.set(pid)
    return pid


def clear_pass_id() -> None:
    _pass_id.set(None)


def get_log_file_path() -> Path | None:
    """First file output of the active configuration, or None when logging only to a console."""
    return _log_file_path


def _set_log_file_path(path: Path | None) -> None:
    global _log_file_path
    _log_file_path = path


def _add_pass_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if pid := get_pass_id():
        event_dict["pass_id"] = pid
    return event_dict


def _level(name: str | None, default: int) -> int:
    if not name:
        return default
    return logging.getLevelNamesMapping().get(name.upper(), default)


class ConsoleSuppressingFilter(logging.Filter):
    """Drops console records while a rich spinner owns the terminal."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from codeskel.core.progress import is_console_suppressed

        return not is_console_suppressed()


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Install structlog and the root handlers for every configured output.

    Calling it again replaces the previous handlers.

    Args:
        config: The ``logging`` config section. When omitted, a single
            stderr output is built from ``json_format`` and ``level``.
        json_format: Render the stderr output as JSON lines.
        level: Level for the stderr output.
    """
    from codeskel.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )

    default_level = _level(config.level, logging.INFO)
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _add_pass_id,  # type: ignore[list-item]
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(default_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Loggers bound at import time must see a later reconfiguration.
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(default_level)
    # One debug line per filtered change otherwise.
    logging.getLogger("watchfiles.main").setLevel(logging.WARNING)

    _set_log_file_path(None)
    for output in config.outputs:
        is_console = output.destination in _CONSOLE_DESTINATIONS
        if not is_console and _log_file_path is None:
            _set_log_file_path(Path(output.destination))

        handler = _create_handler(output.destination, is_console=is_console)
        handler.setLevel(_level(output.level, default_level))
        handler.setFormatter(_formatter_for(output, is_console, shared_processors))
        root_logger.addHandler(handler)


def _formatter_for(
    output: LogOutputConfig,
    is_console: bool,
    shared_processors: list[structlog.types.Processor],
) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=is_console and sys.stderr.isatty(),
            pad_event_to=0,
            pad_level=False,
        )
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )


def _create_handler(destination: str, is_console: bool = False) -> logging.Handler:
    """A stream handler for ``stderr``/``stdout``, otherwise an appending file handler."""
    handler: logging.Handler
    if destination == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    elif destination == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a")

    if is_console:
        handler.addFilter(ConsoleSuppressingFilter())
    return handler


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
