"""
Structured logging configuration for the resilience engine.

Provides consistent logging format across all modules with:
- JSON structured output for CI log collectors
- Human-readable output for interactive runs
- Suite/scenario context tracking across async tasks
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path

# Context variable for the suite / scenario currently executing
current_context: ContextVar[str | None] = ContextVar("current_context", default=None)


class ResilienceFormatter(logging.Formatter):
    """
    Custom formatter for orchestrator logs.

    Includes timestamp, level, module, context (if set), and message.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.timestamp = datetime.now(UTC).isoformat()

        context = current_context.get()
        record.context = f"[{context}] " if context else ""

        return super().format(record)


class JSONFormatter(ResilienceFormatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        super().format(record)
        payload = {
            "timestamp": record.timestamp,
            "level": record.levelname,
            "module": record.name,
            "context": current_context.get(),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    level: str = "INFO", json_output: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """
    Configure logging for the resilience engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON lines
        log_file: Optional file receiving the same records as stdout

    Returns:
        Configured root logger
    """
    root = logging.getLogger()
    root.handlers.clear()

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    if json_output:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = ResilienceFormatter(
            "%(timestamp)s | %(levelname)-8s | %(name)s | %(context)s%(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_log_context(context: str) -> None:
    """Set the suite/scenario name prefixed to log lines."""
    current_context.set(context)


def clear_log_context() -> None:
    """Clear the current log context."""
    current_context.set(None)
