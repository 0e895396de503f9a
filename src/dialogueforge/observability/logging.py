"""Structured logging for Dialogue Forge.

structlog events are routed through the stdlib ``logging`` tree, so one
configuration covers library loggers too. Output goes to:

- the console, through rich on stderr, at a level chosen by ``-v``;
- optionally ``{project}/logs/forge.jsonl``, one JSON object per event.

Graph identity bound with :func:`graph_context` is merged into every event
logged inside the block, including events from the draft manager and the
connection editor that do not know which scope they run in.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path  # noqa: TC003 - used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator

    from structlog.typing import EventDict, FilteringBoundLogger, Processor

LOG_FILENAME = "forge.jsonl"
QUIET_LOGGERS = ("asyncio",)

_CONSOLE_LEVELS = {0: logging.WARNING, 1: logging.INFO}

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None


def console_level(verbosity: int) -> int:
    """Console threshold for a ``-v`` count: WARNING, INFO, then DEBUG."""
    return _CONSOLE_LEVELS.get(max(verbosity, 0), logging.DEBUG)


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _drop_console_meta(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    # rich already renders time, level and origin
    for key in ("timestamp", "level", "logger"):
        event_dict.pop(key, None)
    return event_dict


def _console_handler(verbosity: int) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=console_level(verbosity),
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _drop_console_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
            foreign_pre_chain=_pre_chain(),
        )
    )
    return handler


def _jsonl_handler(logs_dir: Path) -> logging.FileHandler:
    handler = logging.FileHandler(logs_dir / LOG_FILENAME, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            foreign_pre_chain=_pre_chain(),
        )
    )
    return handler


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    project_path: Path | None = None,
) -> None:
    """Configure console and optional file logging.

    Safe to call again; a previously opened log file is closed first.

    Args:
        verbosity: ``-v`` count. 0 shows warnings, 1 info, 2 or more debug.
        log_to_file: Also write every event to ``{project_path}/logs/forge.jsonl``.
        project_path: Directory owning the logs folder. Required with ``log_to_file``.

    Raises:
        ValueError: If ``log_to_file`` is set without ``project_path``.
    """
    global _configured, _file_handler, _logs_dir

    if log_to_file and project_path is None:
        raise ValueError("project_path is required when log_to_file=True")

    close_file_logging()
    _logs_dir = None

    handlers: list[logging.Handler] = [_console_handler(verbosity)]
    if log_to_file and project_path is not None:
        _logs_dir = project_path / "logs"
        _logs_dir.mkdir(parents=True, exist_ok=True)
        _file_handler = _jsonl_handler(_logs_dir)
        handlers.append(_file_handler)

    # The file takes everything; the console handler filters by verbosity.
    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *_pre_chain(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Return a bound logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    logger: FilteringBoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def graph_context(graph_id: str | int | None = None, scope: str | None = None) -> Iterator[None]:
    """Bind ``graph_id`` and ``scope`` to every event logged in the block.

    Bindings are context-local, so concurrent resolutions in separate tasks
    keep their own graph id. Arguments left as None are not bound.
    """
    bound = {
        key: str(value)
        for key, value in (("graph_id", graph_id), ("scope", scope))
        if value is not None
    }
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def get_logs_dir() -> Path | None:
    """Directory receiving the JSONL log, None when file logging is off."""
    return _logs_dir


def close_file_logging() -> None:
    """Detach and close the JSONL handler, if one is open."""
    global _file_handler
    if _file_handler is None:
        return
    logging.getLogger().removeHandler(_file_handler)
    _file_handler.close()
    _file_handler = None
