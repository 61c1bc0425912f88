"""Per-request context carried across awaits.

The HTTP layer stores the current route here so adapters and the audit log
can label traffic without threading it through every call.
"""

from contextvars import ContextVar
from typing import Optional

_current_route: ContextVar[Optional[str]] = ContextVar("llm_request_route", default=None)


def set_request_route(route: Optional[str]):
    """Set the route for the current context. Returns a reset token."""
    return _current_route.set(route)


def reset_request_route(token) -> None:
    _current_route.reset(token)


def get_request_route() -> Optional[str]:
    return _current_route.get()
