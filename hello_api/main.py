from contextlib import asynccontextmanager
from datetime import timedelta

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from hello_api.api.v1.router import v1_router
from hello_api.config import settings
from hello_api.core.database import close_db, init_db
from hello_api.core.exceptions import ApiError, api_error_handler, request_validation_handler
from hello_api.core.middleware import RequestLoggingMiddleware
from hello_api.services.monitoring import MonitoringService

_NAME_TO_LEVEL = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "critical": 50,
}

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _NAME_TO_LEVEL.get(settings.hello_log_level.lower(), 20)
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    await init_db()

    app.state.monitoring = MonitoringService(
        log_capacity=settings.hello_request_log_capacity,
        recent_window=timedelta(minutes=settings.hello_recent_window_minutes),
    )

    logger.info(
        "hello_api_starting",
        db_url=settings.hello_db_url,
        api_version=settings.hello_api_version,
    )
    yield

    await close_db()
    logger.info("hello_api_stopping")


app = FastAPI(
    title="Hello User API",
    description="User management REST API with built-in request monitoring",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)

# Starlette: last-added = outermost
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.hello_cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(v1_router)


@app.get("/")
async def root():
    return {"service": "hello-api", "version": "0.1.0"}
