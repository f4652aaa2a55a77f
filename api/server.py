"""
ShopClock API Server - REST API for the zone monitor, the app and payroll.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.clock_router import router as clock_router
from api.edit_router import router as edit_router
from api.hours_router import router as hours_router
from api.response_models import HealthResponse
from shopclock import __version__
from shopclock.config import load_settings
from shopclock.observability import CorrelationIdMiddleware, get_correlation_id
from shopclock.service import ClockService, build_service
from shopclock.store import StoreError
from shopclock.validation import ValidationError

logger = logging.getLogger(__name__)


def create_app(service: ClockService | None = None) -> FastAPI:
    """
    Build the FastAPI app around *service*.

    Without a service one is built from load_settings(). The event worker
    runs for the lifetime of the app; without a lifespan (plain TestClient)
    events are applied on the request thread.
    """
    if service is None:
        service = build_service(load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=== ShopClock API Startup ===")
        logger.info("DB path: %s", service.machine.store.db_path)
        service.start()
        try:
            yield
        finally:
            service.stop()

    app = FastAPI(
        title="ShopClock API",
        description="Geofence-driven work hours tracker",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    # CORS middleware - configurable via CORS_ORIGINS env var
    cors_origins_env = os.getenv("CORS_ORIGINS", "*")
    cors_origins = (
        ["*"] if cors_origins_env == "*" else [o.strip() for o in cors_origins_env.split(",")]
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(clock_router, prefix="/api")
    app.include_router(hours_router, prefix="/api")
    app.include_router(edit_router, prefix="/api")

    _register_error_handlers(app)

    @app.get("/api/health", response_model=HealthResponse)
    def health(request: Request):
        """Store reachability and current state."""
        svc: ClockService = request.app.state.service
        try:
            counts = svc.machine.store.table_counts()
            status = "healthy"
        except StoreError as e:
            logger.warning("Health check could not read the store: %s", e)
            counts = {}
            status = "degraded"
        return HealthResponse(
            status=status,
            version=__version__,
            timestamp=datetime.now(UTC).isoformat(),
            state=svc.machine.state.value,
            sessions=counts.get("sessions", 0),
            gaps=counts.get("gaps", 0),
            unsaved_changes=svc.machine.has_unsaved_changes,
        )

    return app


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "request_id": get_correlation_id()},
    )


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError):
        return _error(422, str(exc))

    @app.exception_handler(LookupError)
    async def on_lookup_error(request: Request, exc: LookupError):
        return _error(404, str(exc.args[0]) if exc.args else "not found")

    @app.exception_handler(StoreError)
    async def on_store_error(request: Request, exc: StoreError):
        logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
        return _error(503, "session store unavailable")

    @app.exception_handler(TimeoutError)
    async def on_timeout(request: Request, exc: TimeoutError):
        logger.error("Timed out on %s %s: %s", request.method, request.url.path, exc)
        return _error(503, "clock service busy")
