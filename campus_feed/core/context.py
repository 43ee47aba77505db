"""Per-request identifiers carried in contextvars.

The log processors read these, so audience checks and thread assembly can log
with the request and viewer attached without passing them around.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
viewer_id_var: ContextVar[str | None] = ContextVar("viewer_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Log field name -> variable, in the order fields appear in log events
_CONTEXT_VARS: dict[str, ContextVar[Any]] = {
    "request_id": request_id_var,
    "viewer_id": viewer_id_var,
    "trace_id": trace_id_var,
    "correlation_id": correlation_id_var,
}


def generate_request_id() -> str:
    return str(uuid4())


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID, generating one when none is given.

    Returns:
        The request ID now in effect.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_request_id() -> str:
    return request_id_var.get()


def set_viewer_id(viewer_id: object | None) -> None:
    """Set the ID of the viewer the request acts for."""
    viewer_id_var.set(None if viewer_id is None else str(viewer_id))


def get_viewer_id() -> str | None:
    return viewer_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def get_trace_id() -> str | None:
    return trace_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def get_context() -> dict[str, Any]:
    """Non-empty identifiers of the current request, keyed by log field."""
    return {name: value for name, var in _CONTEXT_VARS.items() if (value := var.get())}


def clear_context() -> None:
    """Reset every identifier; the middleware calls this after each request."""
    request_id_var.set("")
    for var in (viewer_id_var, trace_id_var, correlation_id_var):
        var.set(None)


class RequestContext:
    """Bind identifiers for a block of work outside an HTTP request.

    Usage:
        with RequestContext(viewer_id=profile_id):
            listing = await service.get_threads("event", event_id, loader)

    Previous values are restored on exit, so contexts can nest.
    """

    def __init__(
        self,
        request_id: str | None = None,
        viewer_id: object | None = None,
        trace_id: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self._values: dict[str, Any] = {
            "request_id": request_id or generate_request_id(),
            "viewer_id": None if viewer_id is None else str(viewer_id),
            "trace_id": trace_id,
            "correlation_id": correlation_id,
        }
        self._tokens: list[tuple[ContextVar[Any], Token[Any]]] = []

    @property
    def request_id(self) -> str:
        return self._values["request_id"]

    def __enter__(self) -> "RequestContext":
        for name, value in self._values.items():
            if value is not None:
                var = _CONTEXT_VARS[name]
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, *_: object) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
