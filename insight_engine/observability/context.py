"""
Query context: correlation ID plus the (period, project filter) being served.

Carried in context variables so log lines emitted deep inside an
aggregation can be tied back to the request that triggered them.
"""

import contextvars
import uuid

_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "insight_request_id", default=None
)
_query_var: contextvars.ContextVar[dict | None] = contextvars.ContextVar(
    "insight_query", default=None
)


def get_request_id() -> str | None:
    """Current correlation ID, if any."""
    return _request_id_var.get()


def get_query_fields() -> dict:
    """Period/filter fields for the active query (empty outside a query)."""
    return dict(_query_var.get() or {})


def generate_request_id() -> str:
    return f"req-{uuid.uuid4().hex[:16]}"


class QueryContext:
    """
    Scope a block of work to one request and, optionally, one query.

    Usage:
        with QueryContext(period="2026-01", project_filter="R1337"):
            engine.compute("2026-01", "R1337")
    """

    def __init__(
        self,
        request_id: str | None = None,
        period: str | list[str] | None = None,
        project_filter: str | None = None,
    ):
        self.request_id = request_id or get_request_id() or generate_request_id()
        self.fields: dict = {}
        if period is not None:
            self.fields["period"] = period if isinstance(period, str) else ",".join(period)
        if project_filter:
            self.fields["project_filter"] = project_filter
        self._tokens: list[tuple[contextvars.ContextVar, contextvars.Token]] = []

    def __enter__(self) -> "QueryContext":
        self._tokens.append((_request_id_var, _request_id_var.set(self.request_id)))
        merged = {**get_query_fields(), **self.fields}
        self._tokens.append((_query_var, _query_var.set(merged)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
