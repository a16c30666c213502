from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
import uvicorn

from alumni_api.api.router import api_router
from alumni_api.core.config import get_settings
from alumni_api.core.telemetry import TelemetryRuntime, setup_api_telemetry, shutdown_api_telemetry
from alumni_api.services.notifications import get_notifier
from alumni_api.services.repository import get_repository

settings = get_settings()
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    repository = get_repository()
    # Startup fails once the connect retries are exhausted.
    await repository.connect(
        max_attempts=settings.store_connect_max_attempts,
        retry_base_seconds=settings.store_connect_retry_base_seconds,
        retry_max_seconds=settings.store_connect_retry_max_seconds,
    )
    try:
        yield
    finally:
        if _telemetry_runtime is not None:
            shutdown_api_telemetry(app, _telemetry_runtime)
        await repository.close()
        get_repository.cache_clear()
        get_notifier.cache_clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
_telemetry_runtime = setup_api_telemetry(app, settings)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)


def run() -> None:
    uvicorn.run("alumni_api.main:app", host=settings.http_host, port=settings.http_port)
