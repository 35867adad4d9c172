"""Observability helpers for instrumenting engine operations."""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Callable, ParamSpec, TypeVar

from style_app.logging_config import get_logger, log_event, operation_context, redact_for_log

LOGGER = get_logger(__name__)
P = ParamSpec("P")
R = TypeVar("R")

# Exceptions that represent caller mistakes rather than engine faults.
_EXPECTED_ERRORS = (ValueError, LookupError)


def _preview_kwargs(kwargs: dict, max_keys: int = 6) -> dict:
    preview: dict = {}
    for idx, (key, value) in enumerate(kwargs.items()):
        if idx >= max_keys:
            preview["truncated"] = True
            break
        if isinstance(value, (str, int, float, bool)) or value is None:
            preview[key] = value
        else:
            preview[key] = type(value).__name__
    return redact_for_log(preview)


def instrument_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Wrap a callable to emit structured start/complete/failure logs with timings.

    Each call runs inside :func:`operation_context`, so every log line it
    produces shares one correlation id.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with operation_context(operation):
                start = time.perf_counter()
                log_event(LOGGER, logging.INFO, "operation_started", operation=operation, kwargs=_preview_kwargs(kwargs))
                try:
                    result = func(*args, **kwargs)
                except _EXPECTED_ERRORS as exc:
                    log_event(
                        LOGGER,
                        logging.WARNING,
                        "operation_rejected",
                        operation=operation,
                        duration_ms=round((time.perf_counter() - start) * 1000, 2),
                        error=type(exc).__name__,
                    )
                    raise
                except Exception:
                    log_event(
                        LOGGER,
                        logging.ERROR,
                        "operation_failed",
                        operation=operation,
                        duration_ms=round((time.perf_counter() - start) * 1000, 2),
                        exc_info=True,
                    )
                    raise
                log_event(
                    LOGGER,
                    logging.INFO,
                    "operation_completed",
                    operation=operation,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )
                return result

        return wrapper

    return decorator


__all__ = ["instrument_operation"]
