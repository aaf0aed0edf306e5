import json
import logging

import google.cloud.logging
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.ai.errors import ConfigurationError
from app.api.ai.orchestrator import create_orchestrator_from_settings
from app.api.ai.read_through import ReadThroughService
from app.api.ai.schemas import utcnow
from app.api.routes import router as analysis_router
from app.api.schemas import DataSourceHealth, HealthResponse
from app.config import AGENT_IDS, get_settings
from app.database.database import SessionLocal, init_db

SERVICE_NAME = "venture-agents"

settings = get_settings()

# Configure basic logging for structured output
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s"
)
logger = logging.getLogger(__name__)


def setup_cloud_logging():
    """Attach the Google Cloud Logging handler to the root logger."""
    client = google.cloud.logging.Client()
    default_handler = client.get_default_handler()
    default_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    logging.getLogger().addHandler(default_handler)
    client.setup_logging()
    logger.info("Google Cloud Logging enabled")


if settings.use_cloud_logging:
    setup_cloud_logging()

app = FastAPI(title="Venture Agents Analysis API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(json.dumps({
        "event": "request_received",
        "method": request.method,
        "url": str(request.url)
    }))
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(json.dumps({
            "event": "request_error",
            "error": str(e)
        }), exc_info=True)
        raise e
    logger.info(json.dumps({
        "event": "request_completed",
        "status_code": response.status_code,
        "url": str(request.url)
    }))
    return response


app.include_router(analysis_router)


# ------------------------------------------------------------------
# Orchestrator wiring
# ------------------------------------------------------------------

def build_orchestrator():
    """
    Orchestrator from environment settings, or None when the providers are
    not configured. Analysis requests then fall back to the sample report.
    """
    try:
        return create_orchestrator_from_settings(settings)
    except ConfigurationError as e:
        logger.warning("Agent orchestrator not configured: %s", e)
        return None


def get_orchestrator(request: Request):
    return request.app.state.orchestrator


def _orchestrator_factory():
    orchestrator = app.state.orchestrator
    if orchestrator is None:
        raise ConfigurationError("No LLM provider configured")
    return orchestrator


@app.get("/health", response_model=HealthResponse, response_model_by_alias=True)
def health_check(orchestrator=Depends(get_orchestrator)):
    logger.info("Health check endpoint accessed")
    if orchestrator is None:
        return HealthResponse(
            status="degraded",
            service=SERVICE_NAME,
            agents={agent_id: "disabled" for agent_id in AGENT_IDS},
            providers={},
            timestamp=utcnow(),
        )
    health = orchestrator.get_health_status()
    return HealthResponse(
        status=health["status"],
        service=SERVICE_NAME,
        agents=health["agents"],
        providers=health["providers"],
        active_executions=health["active_executions"],
        metrics=health["metrics"],
        timestamp=utcnow(),
    )


@app.get("/health/data-source", response_model=DataSourceHealth, response_model_by_alias=True)
def data_source_health(orchestrator=Depends(get_orchestrator)):
    if orchestrator is None:
        return DataSourceHealth()
    return DataSourceHealth.model_validate(orchestrator.check_data_source())


@app.get("/health/agents/{agent_id}")
def agent_metrics(agent_id: str, hours: float = Query(24, gt=0, le=168), orchestrator=Depends(get_orchestrator)):
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Agent orchestrator not configured")
    try:
        return orchestrator.agent_metrics(agent_id, hours)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ------------------------------------------------------------------
# Exception Handlers
# ------------------------------------------------------------------

@app.exception_handler(FastAPIHTTPException)
async def http_exception_handler(request: Request, exc: FastAPIHTTPException):
    if exc.status_code == 404:
        logger.warning("HTTP 404 for %s: %s", request.url, exc.detail)
    else:
        logger.error("HTTPException for %s: %s", request.url, exc.detail, exc_info=True)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception for %s: %s", request.url, str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"}
    )


@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info("Database initialized.")

    app.state.orchestrator = build_orchestrator()
    app.state.read_through = ReadThroughService(
        SessionLocal,
        _orchestrator_factory,
        db_timeout=settings.db_fetch_timeout_seconds,
    )
    logger.info("Enabled agents: %s", ", ".join(settings.enabled_agents()))
    logger.info("Application startup complete.")


@app.on_event("shutdown")
async def shutdown_event():
    read_through = getattr(app.state, "read_through", None)
    if read_through is not None:
        read_through.shutdown()
    logger.info("Application shutdown complete.")
