"""
Simple asynchronous logging for contextrank.
"""

import os
import re
import time
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Pattern

import yaml
from loguru import logger as loguru_logger


class AsyncLogger:
    """
    Asynchronous logger with a flat format.

    Format: timestamp | level | component | message
    Context is passed as keyword arguments and kept in the record extras.
    """

    # Single handler shared between every instance
    _handler_id = None

    def __init__(self, component: str, debug_mode: bool = False):
        self.component = component
        self.debug_mode = debug_mode
        self._setup_async_handler()

    def _setup_async_handler(self):
        """
        Add the shared file sink once.

        - Non-blocking (enqueue=True)
        - Rotation at 10 MB
        """
        if AsyncLogger._handler_id is None:
            AsyncLogger._handler_id = loguru_logger.add(
                os.getenv("CONTEXTRANK_LOG_FILE", "contextrank.log"),
                level=os.getenv("CONTEXTRANK_LOG_LEVEL", "DEBUG" if self.debug_mode else "INFO"),
                format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[component]} | {message}",
                rotation="10 MB",
                compression="zip",
                enqueue=True,
            )

    def log(self, level: str, message: str, **context):
        """Record a message without blocking the caller."""
        loguru_logger.bind(component=self.component).log(level, message, **context)

    def debug(self, message: str, **context):
        """Log at DEBUG level."""
        self.log("DEBUG", message, **context)

    def info(self, message: str, **context):
        """Log at INFO level."""
        self.log("INFO", message, **context)

    def warning(self, message: str, **context):
        """Log at WARNING level."""
        self.log("WARNING", message, **context)

    def error(self, message: str, include_trace: Optional[bool] = None, **context):
        """
        Log at ERROR level with an optional stack trace.

        Args:
            message: Error message
            include_trace: Whether to attach the stack trace (None = follow debug_mode)
            **context: Additional context
        """
        should_include_trace = include_trace if include_trace is not None else self.debug_mode

        if should_include_trace:
            import traceback

            context["stack_trace"] = traceback.format_exc()

        self.log("ERROR", message, **context)


class SensitiveDataMasker:
    """
    Masks sensitive data before it reaches the logs.

    Item content and queries may carry tokens or keys pasted by callers.
    """

    def __init__(self, patterns: Optional[List[Pattern]] = None):
        self.patterns = patterns or []

    def mask(self, text: str) -> str:
        """
        Mask sensitive data.

        Example:
        - "token=abc123def456" → "token=***"
        - "a1b2c3d4e5f6..." → "a1b2c3d4..."
        """
        masked = text

        # Long alphanumeric runs look like tokens or API keys
        masked = re.sub(r'\b[a-zA-Z0-9]{20,}\b', '***TOKEN***', masked)

        # Long hex hashes keep their first 8 chars
        masked = re.sub(r'\b([a-f0-9]{8})[a-f0-9]{8,}\b', r'\1...', masked)

        masked = re.sub(
            r'(api_key|token|secret|password|key)=[a-zA-Z0-9]{8,}',
            r'\1=***',
            masked,
            flags=re.IGNORECASE,
        )

        for pattern in self.patterns:
            masked = pattern.sub("***", masked)

        return masked

    def preview(self, text: str, limit: int = 50) -> str:
        """Masked, truncated preview used when logging queries."""
        masked = self.mask(text)
        return masked if len(masked) <= limit else masked[:limit] + "..."


class PerformanceLogger:
    """
    Logger specialized in timing operations.
    """

    def __init__(self):
        self.logger = AsyncLogger("performance")

    @contextmanager
    def measure(self, operation: str, **context):
        """
        Context manager that logs the duration of an operation.

        Usage:
        ```
        with perf_logger.measure("index_batch", size=len(items)):
            service.index_batch(items)
        ```
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self.logger.info(
                "Operation completed", operation=operation, duration_ms=duration * 1000, **context
            )


def _get_debug_mode() -> bool:
    """Read debug_mode from .contextrank or the CONTEXTRANK_DEBUG environment variable."""
    config_path = Path(".contextrank")
    if config_path.is_file():
        try:
            with open(config_path, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            return bool(config.get("logging", {}).get("debug_mode", False))
        except (OSError, yaml.YAMLError, AttributeError):
            # Settings reports a broken file with a proper ConfigurationError
            pass

    return os.getenv("CONTEXTRANK_DEBUG", "false").lower() == "true"


logger = AsyncLogger("contextrank", debug_mode=_get_debug_mode())
