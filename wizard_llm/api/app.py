"""FastAPI application for the Wizard LLM gateway.

Logging: Uses structured JSON logging.
Set LOG_FORMAT=pretty for development-friendly output.
"""

from contextlib import asynccontextmanager

# Configure structured logging BEFORE importing anything else
from wizard_llm.utils.logging import configure_logging, get_logger, log  # noqa: E402

configure_logging()

MODULE = "api"
logger = get_logger()

from fastapi import FastAPI, Request  # noqa: E402

from wizard_llm.api.routes.health import router as health_router  # noqa: E402
from wizard_llm.api.routes.tasks import router as tasks_router  # noqa: E402
from wizard_llm.llm.client import get_orchestrator  # noqa: E402
from wizard_llm.llm.request_context import reset_request_route, set_request_route  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown."""
    # Fails startup on any unserviceable task
    app.state.orchestrator = get_orchestrator()
    log.info(logger, MODULE, "startup", "LLM gateway ready",
             tasks=len(app.state.orchestrator.registry))

    yield

    log.info(logger, MODULE, "shutdown", "Application shutdown complete")


app = FastAPI(
    title="Wizard LLM Gateway",
    description="LLM task orchestration API",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_route(request: Request, call_next):
    """Expose the request path to the audit log for the duration of the call."""
    token = set_request_route(request.url.path)
    try:
        return await call_next(request)
    finally:
        reset_request_route(token)


app.include_router(health_router)
app.include_router(tasks_router, prefix="/llm", tags=["llm"])
