"""
Centralized logging and error handling utilities for the chat proxy.

This module provides decorators and helper functions to standardize logging
and error reporting across the proxy and the renderer.

Features:
- Structured logging with contextual information
- Error classification into HTTP status codes and categories
- Structured JSON error payloads for the proxy routes
- Performance timing for async operations
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import structlog
from pydantic import ValidationError

from dat1_chat.exceptions import (
    ChatError,
    ConfigurationError,
    TransportError,
    UpstreamError,
    UserInputError,
)

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
    """Route stdlib and structlog output through one basic handler."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
    )


class ChatErrorHandler:
    """Centralized error classification with structured logging."""

    @staticmethod
    def classify_error(error: Exception) -> tuple[int, str]:
        """
        Classify an error and return an HTTP status code and category.

        Args:
            error: The exception to classify

        Returns:
            Tuple of (http_status, error_category)
        """
        if isinstance(error, ConfigurationError):
            return 500, "configuration_error"
        if isinstance(error, UpstreamError):
            return 502, "upstream_error"
        if isinstance(error, TransportError):
            return 502, "transport_error"
        if isinstance(error, UserInputError):
            return 400, "user_input_error"
        if isinstance(error, ValidationError):
            return 422, "validation_error"
        return 500, "unknown_error"

    @staticmethod
    def to_payload(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> tuple[int, dict[str, Any]]:
        """
        Build a structured error response body and log the failure.

        Args:
            error: Original exception
            operation: Description of the operation that failed
            context: Additional context for logging

        Returns:
            Tuple of (http_status, json_body)
        """
        status, category = ChatErrorHandler.classify_error(error)
        context = context or {}

        logger.error(
            "Operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=category,
            status=status,
            error_message=str(error),
            **context,
        )

        error_data: dict[str, Any] = {
            "message": str(error),
            "category": category,
            "operation": operation,
        }
        if isinstance(error, ChatError) and error.body is not None:
            error_data["upstream_body"] = error.body
            if error.status_code is not None:
                error_data["upstream_status"] = error.status_code

        return status, {"error": error_data}


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def log_operation(
    operation: str,
    *,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging async operations with structured context.

    Args:
        operation: Description of the operation being performed
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            async with operation_context(
                operation,
                context={"function": func.__name__, **(context or {})},
                log_timing=log_timing,
            ):
                return await func(*args, **kwargs)

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Async context manager for operation logging.

    Logs start, success and failure; failures are re-raised unchanged.

    Args:
        operation: Description of the operation
        context: Additional context for logging
        log_timing: Whether to log operation timing

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(operation=operation, **(context or {}))
    operation_logger.debug("Operation started")
    start_time = time.perf_counter()

    try:
        yield operation_logger
    except Exception as e:
        error_log_data: dict[str, Any] = {
            "error_type": type(e).__name__,
            "error_message": str(e),
        }
        if log_timing:
            error_log_data["duration_ms"] = _elapsed_ms(start_time)
        operation_logger.error("Operation failed", **error_log_data)
        raise

    log_data: dict[str, Any] = {}
    if log_timing:
        log_data["duration_ms"] = _elapsed_ms(start_time)
    operation_logger.info("Operation completed", **log_data)
