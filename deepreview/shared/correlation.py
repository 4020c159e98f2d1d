"""
Correlation ID utilities for tracing one analysis request through the logs.

The gateway opens a correlation scope per analyze call; every log line
emitted while that call runs (provider attempts, retries, fallthrough)
carries the same id via CorrelationIdFilter.

Usage:
    from deepreview.shared.correlation import correlation_scope, get_correlation_id

    with correlation_scope() as correlation_id:
        ...
"""

import uuid
import contextvars
from contextlib import contextmanager
from typing import Iterator, Optional


# Context variable to store correlation ID for the current analysis request
_correlation_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)


def get_correlation_id() -> Optional[str]:
    """
    Get the correlation ID for the current context.

    Returns:
        The correlation ID string, or None outside an analysis request
    """
    return _correlation_id_ctx.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Set the correlation ID for the current context and return the reset token."""
    return _correlation_id_ctx.set(correlation_id)


def generate_correlation_id() -> str:
    """Generate a new short correlation ID."""
    return uuid.uuid4().hex[:12]


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a correlation ID for the duration of the block.

    Args:
        correlation_id: Existing ID to reuse; a new one is generated if omitted

    Yields:
        The active correlation ID
    """
    active = correlation_id or generate_correlation_id()
    token = _correlation_id_ctx.set(active)
    try:
        yield active
    finally:
        _correlation_id_ctx.reset(token)
