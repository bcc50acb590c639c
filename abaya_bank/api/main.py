"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from abaya_bank.api.middleware import RequestIDMiddleware, MetricsMiddleware
from abaya_bank.api.v1 import accounts, admin, auth, loans, transactions, users
from abaya_bank.domain.exceptions import DomainException
from abaya_bank.infrastructure.observability.logging import setup_logging
from abaya_bank.jobs.emi_deduction import create_scheduler
from abaya_bank.config import settings

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the EMI cron alongside the API when enabled"""
    scheduler = None
    if settings.emi_job_enabled:
        scheduler = create_scheduler(settings)
        scheduler.start()
        logger.info("EMI deduction scheduler started", extra={"cron_day": settings.emi_cron_day})
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render business rule violations as {"detail": message} with their status"""
    request_id = getattr(request.state, "request_id", None)
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        level,
        exc.message,
        extra={"request_id": request_id, "status_code": exc.status_code, "path": request.url.path},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.error(f"Unexpected error: {exc}", extra={"request_id": request_id, "path": request.url.path})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Abaya Bank",
        description="Accounts, ledger, loans and back-office oversight",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(auth.router, prefix="/v1", tags=["auth"])
    app.include_router(users.router, prefix="/v1", tags=["users"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(admin.router, prefix="/v1", tags=["admin"])

    return app


app = create_app()
