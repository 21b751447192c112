"""
BlockForge structured logging.

Every privileged command and every device-mutating operation is logged
with structured context so failures can be diagnosed from the log alone.
A ``result=`` keyword holding a CommandResult is expanded into its
command line, exit code, timeout flag and output streams.
"""

from __future__ import annotations

import logging
import sys
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, WrappedLogger

if TYPE_CHECKING:
    from blockforge.core.config import LoggingConfig


_configured = False

# Captured output longer than this is cut in log events.
MAX_LOGGED_OUTPUT = 2000


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


def _truncate(text: str) -> str:
    if len(text) <= MAX_LOGGED_OUTPUT:
        return text
    return text[:MAX_LOGGED_OUTPUT] + f"... ({len(text) - MAX_LOGGED_OUTPUT} more chars)"


def expand_command_result(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace a ``result`` CommandResult with flat, renderable fields."""
    result = event_dict.get("result")
    if result is None or not hasattr(result, "command_line"):
        return event_dict

    del event_dict["result"]
    event_dict.setdefault("command_line", result.command_line)
    event_dict["code"] = result.code
    event_dict["timeout"] = result.timeout
    event_dict["stdout"] = _truncate(result.stdout)
    event_dict["stderr"] = _truncate(result.stderr)
    return event_dict


def setup_logging(config: LoggingConfig) -> None:
    """
    Configure stdlib handlers and structlog processors.

    Only the first call takes effect; embedding applications that set up
    logging themselves can skip it entirely.
    """
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
        log_file = config.log_directory / f"blockforge_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, format="%(message)s")

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_log_level,
        expand_command_result,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if config.json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name or "blockforge")


class OperationLogger:
    """
    Context manager logging start, completion and failure of an operation.

    Failures caused by a command carry that command's result, so the log
    line names the tool that failed and what it printed. Exceptions are
    never suppressed.
    """

    def __init__(
        self,
        operation: str,
        logger: structlog.stdlib.BoundLogger | None = None,
        **context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.context = context
        self.started: float | None = None

    def __enter__(self) -> OperationLogger:
        self.started = time.monotonic()
        self.logger.info(f"Starting {self.operation}", operation=self.operation, **self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration = time.monotonic() - self.started if self.started is not None else 0.0

        if exc_type is None:
            self.logger.info(
                f"Completed {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                **self.context,
            )
            return

        failure: dict[str, Any] = {
            "error_type": exc_type.__name__,
            "error": str(exc_val),
        }
        result = getattr(exc_val, "result", None)
        if result is not None:
            failure["result"] = result
        self.logger.error(
            f"Failed {self.operation}",
            operation=self.operation,
            duration_seconds=duration,
            **failure,
            **self.context,
        )
