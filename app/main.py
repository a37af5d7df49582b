# app/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import depots, forecast, health, jobs, pipelines, schedule, scheduler, stalls, vehicles
from app.database import create_tables
from app.config import settings
from app.services.av_orchestrator import AVOrchestrator
from app.services.errors import NotFoundError
from app.services.pipeline_repository import InMemoryPipelineRepository
from app.utils.logger import get_logger
import time
import asyncio
import random

logger = get_logger(__name__)

app = FastAPI(
    title="Depot Resource Scheduler API",
    description="Stall allocation, job scheduling and AV service pipelines for EV fleet depots.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Process-wide state: one orchestrator (pipelines + transition log) and one seedable random source
app.state.rng = random.Random(settings.RANDOM_SEED)
app.state.orchestrator = AVOrchestrator(
    repository=InMemoryPipelineRepository(max_events=settings.PIPELINE_EVENT_LOG_SIZE),
    rng=random.Random(settings.RANDOM_SEED),
)
app.state.tick_task = None

# ── CORS (allow the operations dashboard to call the API) ────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to dashboard origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Health check and docs stay open. Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    """Missing fields are listed by name; any other validation failure returns the field errors."""
    errors = exc.errors()
    missing = [str(e["loc"][-1]) for e in errors if e.get("type") == "missing" and e.get("loc")]
    if missing:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing required fields", "missing_fields": missing},
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "detail": jsonable_encoder(errors)},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(depots.router,    prefix="/api/v1", tags=["🏭 Depots"])
app.include_router(vehicles.router,  prefix="/api/v1", tags=["🚙 Vehicles"])
app.include_router(stalls.router,    prefix="/api/v1", tags=["🅿️  Stalls"])
app.include_router(jobs.router,      prefix="/api/v1", tags=["🧾 Jobs"])
app.include_router(scheduler.router, prefix="/api/v1", tags=["⏱  Scheduler"])
app.include_router(pipelines.router, prefix="/api/v1", tags=["🔁 Service Pipelines"])
app.include_router(forecast.router,  prefix="/api/v1", tags=["📈 Demand & Energy"])
app.include_router(schedule.router,  prefix="/api/v1", tags=["📅 Manual Scheduling"])
app.include_router(health.router,    prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Depot scheduler starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")

    if settings.SCHEDULER_AUTO_TICK:
        from app.services.scheduler_loop import scheduler_loop
        orchestrator = app.state.orchestrator if settings.SIMULATE_PIPELINE_PROGRESS else None
        app.state.tick_task = asyncio.create_task(
            scheduler_loop(settings.SCHEDULER_TICK_SECONDS, orchestrator=orchestrator),
            name="scheduler-tick",
        )
        logger.info(f"⏱  In-process tick loop enabled (every {settings.SCHEDULER_TICK_SECONDS}s)")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Depot scheduler shutting down...")
    task = app.state.tick_task
    if task is not None:
        task.cancel()
