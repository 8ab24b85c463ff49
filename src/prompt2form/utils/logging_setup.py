"""Structured logging for prompt2form: console plus JSON and/or text files."""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

import structlog

from prompt2form.config import settings

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "redis")

SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def _handler(handler: logging.Handler, renderer) -> logging.Handler:
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=SHARED_PROCESSORS,
        )
    )
    return handler


def _file_handler(directory: Path, filename: str, renderer) -> logging.Handler:
    directory.mkdir(parents=True, exist_ok=True)
    return _handler(logging.FileHandler(directory / filename, encoding="utf-8"), renderer)


def setup_logging() -> structlog.stdlib.BoundLogger:
    """
    Route structlog through the stdlib root logger.

    Console output goes to stderr so command results on stdout stay
    machine-readable. File outputs follow ``settings.log_format``:
    ``logs/json/*.json``, ``logs/text/*.log`` or both.
    """
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=SHARED_PROCESSORS + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(
        _handler(logging.StreamHandler(sys.stderr), structlog.dev.ConsoleRenderer(colors=True))
    )

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    if settings.log_format in ("json", "both"):
        root_logger.addHandler(
            _file_handler(
                settings.log_dir / "json",
                f"prompt2form_{timestamp}.json",
                structlog.processors.JSONRenderer(),
            )
        )
    if settings.log_format in ("text", "both"):
        root_logger.addHandler(
            _file_handler(
                settings.log_dir / "text",
                f"prompt2form_{timestamp}.log",
                structlog.dev.ConsoleRenderer(colors=False),
            )
        )

    return structlog.get_logger()


@contextmanager
def request_context(**values) -> Iterator[None]:
    """Bind key/values to every log line emitted inside the block."""
    structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*values)
