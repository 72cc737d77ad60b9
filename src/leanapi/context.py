"""Request-scoped context via ContextVar.

Provides:
- ``request_var``: the current ``Request`` for this task.
- ``request_id_var``: the correlation id assigned by ``RequestIdMiddleware``.

``App.dispatch`` sets ``request_var`` for the duration of a request.
``ContextVar`` is task-local under asyncio, so no locks are needed.
"""

from contextvars import ContextVar

from leanapi.http.request import Request

request_var: ContextVar[Request] = ContextVar("leanapi_request")
"""The current request. Set by ``App.dispatch``."""

request_id_var: ContextVar[str | None] = ContextVar("leanapi_request_id", default=None)
"""The current request id, or None outside ``RequestIdMiddleware``."""


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()


def get_request_id() -> str | None:
    return request_id_var.get()
