"""
Observability: structured logging and request/query context.

Usage:
    from insight_engine.observability import configure_logging, QueryContext

    configure_logging("INFO")
    with QueryContext(period="2026-01"):
        logger.info("Computing metrics")
"""

from .context import QueryContext, generate_request_id, get_query_fields, get_request_id
from .logging import CorrelationIdMiddleware, HumanFormatter, JSONFormatter, configure_logging

__all__ = [
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    "CorrelationIdMiddleware",
    "QueryContext",
    "get_request_id",
    "get_query_fields",
    "generate_request_id",
]
