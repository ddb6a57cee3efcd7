"""
observability/logger.py — Jarvis Structured Logger

structlog routed through stdlib logging. Every line is JSON in
<log_dir>/jarvis.log (rotating). The terminal stays quiet unless
logging.console_output is set, because the REPL owns stdout.

Turn context (session_id, user_id) is bound with bind_session() at the
start of a turn and dropped with clear_session() at the end, so dispatcher
and gateway lines can be grouped per turn without passing ids around.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog

LOG_FILE_NAME = "jarvis.log"

# Client libraries that log every request at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "aiosqlite")

_PRE_CHAIN: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.format_exc_info,
]


def _formatter(renderer: Any) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=_PRE_CHAIN,
    )


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path = "./data/logs",
    json_format: bool = True,
    console_output: bool = False,
    max_bytes: int = 100 * 1024 * 1024,
    backup_count: int = 5,
) -> Path:
    """
    Configure logging once at startup and return the log file path.

    json_format only affects the console; the file is always JSON.
    """
    log_path = Path(log_dir).expanduser() / LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    handlers: list[logging.Handler] = [file_handler]

    if console_output:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_formatter(
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(colors=True)
        ))
        handlers.append(console)

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=_PRE_CHAIN + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return log_path


def get_logger(name: str = "jarvis") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_session(session_id: str, user_id: str) -> None:
    structlog.contextvars.bind_contextvars(session_id=session_id, user_id=user_id)


def clear_session() -> None:
    structlog.contextvars.unbind_contextvars("session_id", "user_id")
