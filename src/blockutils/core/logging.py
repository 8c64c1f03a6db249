"""
blockutils structured logging.

Provides structured output for debugging and an audit trail of
destructive format operations.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, WrappedLogger

if TYPE_CHECKING:
    from blockutils.core.config import LoggingConfig


_configured = False


def add_timestamp(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to log events."""
    event_dict["timestamp"] = datetime.now().isoformat()
    return event_dict


def add_log_level(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add log level to event dict."""
    event_dict["level"] = method_name.upper()
    return event_dict


def setup_logging(config: LoggingConfig) -> None:
    """Configure structured logging for blockutils."""
    global _configured

    if _configured:
        return

    handlers: list[logging.Handler] = []

    if config.console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, config.level))
        handlers.append(console_handler)

    if config.file_enabled:
        config.log_directory.mkdir(parents=True, exist_ok=True)
        log_file = config.log_directory / f"blockutils_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # Audit trail keeps everything
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG,
        handlers=handlers,
        format="%(message)s",
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.json_format:
        renderers: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name or "blockutils")


class OperationLogger:
    """Context manager for logging operations with start/end tracking."""

    def __init__(
        self,
        operation: str,
        logger: structlog.stdlib.BoundLogger | None = None,
        **context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.context = context
        self.start_time: datetime | None = None
        self.failed = False

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None:
            return 0.0
        return (datetime.now() - self.start_time).total_seconds()

    def __enter__(self) -> OperationLogger:
        self.start_time = datetime.now()
        self.logger.info(
            f"Starting {self.operation}",
            operation=self.operation,
            **self.context,
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration = self.elapsed_seconds

        if exc_type is not None or self.failed:
            self.logger.error(
                f"Failed {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                error_type=exc_type.__name__ if exc_type else None,
                error=str(exc_val) if exc_val else None,
                **self.context,
            )
        else:
            self.logger.info(
                f"Completed {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                **self.context,
            )

    def update(self, **additional_context: Any) -> None:
        """Update the operation context."""
        self.context.update(additional_context)

    def fail(self, **additional_context: Any) -> None:
        """Mark the operation failed without raising."""
        self.failed = True
        self.context.update(additional_context)
