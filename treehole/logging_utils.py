"""
Centralized logging and error handling utilities for treehole.

This module provides decorators and helper functions to standardize logging
and error reporting across the codebase.

Features:
- Structured logging with contextual information
- Automatic error type detection and classification
- Performance timing for operations and blocks
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from treehole.llm.exceptions import EventDecodeError, LLMError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and therefore structlog) to stderr at ``level``."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
    )


class ErrorHandler:
    """Error classification shared by logging and stream error chunks."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error into a stable category name.

        Args:
            error: The exception to classify

        Returns:
            One of ``timeout_error``, ``http_status_error``,
            ``connection_error``, ``decode_error``, ``parameter_error``,
            ``llm_error`` or ``unknown_error``.
        """
        if isinstance(error, httpx.TimeoutException | TimeoutError):
            return "timeout_error"
        if isinstance(error, httpx.HTTPStatusError):
            return "http_status_error"
        if isinstance(error, LLMError) and error.status_code is not None:
            return "http_status_error"
        if isinstance(error, httpx.TransportError | ConnectionError | OSError):
            return "connection_error"
        if isinstance(error, EventDecodeError | ValidationError | UnicodeDecodeError):
            return "decode_error"
        if isinstance(error, LLMError):
            return "llm_error"
        if isinstance(error, ValueError | TypeError):
            return "parameter_error"
        return "unknown_error"

    @staticmethod
    def log_error(
        error: BaseException,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> str:
        """Log ``error`` with its category and return the category."""
        error_category = ErrorHandler.classify_error(error)
        logger.error(
            "Operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=error_category,
            error_message=str(error),
            **(context or {}),
        )
        return error_category


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
):
    """
    Log the start, completion and failure of a block of work.

    Yields a logger bound to ``operation`` and ``context``. Completion and
    failure events carry ``duration_ms``; failures also carry the error
    category from ``ErrorHandler.classify_error`` and are re-raised.
    """
    operation_logger = logger.bind(operation=operation, **(context or {}))
    operation_logger.info("Operation started")
    start_time = time.perf_counter()

    try:
        yield operation_logger
    except Exception as e:
        operation_logger.error(
            "Operation failed",
            error_type=type(e).__name__,
            error_category=ErrorHandler.classify_error(e),
            error_message=str(e),
            duration_ms=_elapsed_ms(start_time),
        )
        raise

    operation_logger.info("Operation completed", duration_ms=_elapsed_ms(start_time))


def log_operation(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """Decorator form of ``operation_context`` for async functions."""
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            bound = {"function": func.__name__, **(context or {})}
            async with operation_context(operation, context=bound):
                return await func(*args, **kwargs)

        return wrapper
    return decorator
