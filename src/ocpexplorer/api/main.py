"""OCP Explorer API — FastAPI application for New Westminster OCP lookups.

Run:
    uvicorn ocpexplorer.api.main:app --reload
    # or
    ocp-api
"""

import logging
import uuid
from contextlib import asynccontextmanager

import mlflow
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from ocpexplorer.api.proxy import router as proxy_router
from ocpexplorer.api.routes import router
from ocpexplorer.config import settings
from ocpexplorer.observability.logging import correlation_id, setup_logging
from ocpexplorer.observability.tracing import init_tracing
from ocpexplorer.services import build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load OCP data and the city boundary on startup."""
    setup_logging(json_format=settings.log_json, level=settings.log_level)
    init_tracing(settings)

    services = build_services(settings)
    await services.initialize()
    app.state.services = services
    logger.info("OCP Explorer API ready (%s)", services.health_checks())
    yield
    logger.info("Shutting down")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Set correlation ID from X-Request-ID header or generate a new one."""

    async def dispatch(self, request: Request, call_next):
        cid = request.headers.get("x-request-id", str(uuid.uuid4()))
        token = correlation_id.set(cid)
        try:
            response = await call_next(request)
            response.headers["x-request-id"] = cid
            return response
        finally:
            correlation_id.reset(token)


app = FastAPI(
    title="OCP Explorer",
    description="Land use, zoning and policy lookups for the New Westminster "
    "Official Community Plan, with natural-language search.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(proxy_router)


@app.get("/health")
async def health(request: Request):
    """Health check — OCP tables, boundary precision, MLflow."""
    checks = request.app.state.services.health_checks()

    try:
        mlflow.search_experiments(max_results=1)
        checks["mlflow"] = "ok"
    except Exception as e:
        checks["mlflow"] = f"error: {e}"

    status = "healthy" if checks["data"] == "ok" and checks["boundary"] == "ok" else "degraded"
    return {"status": status, "checks": checks}


def run():
    """Entry point for `ocp-api` script."""
    uvicorn.run("ocpexplorer.api.main:app", host="0.0.0.0", port=8000, reload=True)
