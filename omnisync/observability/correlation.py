"""Trace identifier propagation.

The trace ID lives in a ContextVar, so every asyncio task sees the value
of the context it was spawned from.

Usage:
    token = set_trace_id(request.headers.get("x-omnisync-trace"))
    try:
        ...
    finally:
        reset_trace_id(token)
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token

_trace_id: ContextVar[str] = ContextVar("omnisync_trace_id", default="")


def generate_trace_id() -> str:
    """Return a new trace ID (UUID v4)."""
    return str(uuid.uuid4())


def get_trace_id() -> str | None:
    """Return the current trace ID, or None if unset or not a UUID."""
    value = _trace_id.get()
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return None


def set_trace_id(trace_id: str | None = None) -> Token[str]:
    """Bind a trace ID to the current context, generating one if needed.

    Returns:
        Token for reset_trace_id().
    """
    return _trace_id.set(trace_id or generate_trace_id())


def reset_trace_id(token: Token[str]) -> None:
    """Restore the previous trace ID."""
    _trace_id.reset(token)
