"""
Resource Insight Engine API Server - REST API for the resource dashboard.
"""
# ruff: noqa: S104
# S104: Development server binding (guarded by __name__ check)

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.insights_router import insights_router
from insight_engine import config
from insight_engine.db import ensure_schema, resolve_db_path
from insight_engine.observability import CorrelationIdMiddleware, configure_logging

logger = logging.getLogger(__name__)

# FastAPI app initialization
app = FastAPI(
    title="Resource Insight Engine API",
    description="Metrics, anomalies and narratives over engineering timesheets",
    version="1.0.0",
)

# CORS middleware - configurable via INSIGHT_ENGINE_CORS_ORIGINS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(insights_router, prefix=config.API_PREFIX)


# ==== DB Startup ====
@app.on_event("startup")
async def converge_schema_on_startup():
    """Converge the database schema and log where it lives."""
    logger.info("=== Resource Insight Engine startup ===")
    logger.info("DB path: %s", resolve_db_path())
    result = ensure_schema()
    logger.info("DB schema version (user_version): %s", result["schema_version"])


if __name__ == "__main__":
    configure_logging(config.LOG_LEVEL, config.LOG_JSON)
    uvicorn.run(app, host="0.0.0.0", port=8420)
