import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vibesbnb.core.config import settings
from vibesbnb.core.errors import AvailabilityError, domain_error_to_http
from vibesbnb.db.session import init_db
from vibesbnb.api.v1.api import api_router
from vibesbnb.services.scheduler import start_scheduler, shutdown_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI Lifespan - 앱 시작/종료 시 실행
    """
    # Startup
    if settings.SCHEDULER_ENABLED:
        start_scheduler(interval_hours=settings.ICAL_SYNC_INTERVAL_HOURS)
    yield
    # Shutdown
    shutdown_scheduler()


async def availability_error_handler(request: Request, exc: AvailabilityError) -> JSONResponse:
    """도메인 에러 → HTTP 응답"""
    http_exc = domain_error_to_http(exc)
    if http_exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


def create_app() -> FastAPI:
    app = FastAPI(
        title="VibesBNB Availability Backend",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AvailabilityError, availability_error_handler)

    # DB 초기화
    init_db()

    # v1 REST API
    app.include_router(api_router, prefix="/api/v1")

    return app

app = create_app()
