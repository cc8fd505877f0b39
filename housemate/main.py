"""Main FastAPI application for Housemate API."""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from housemate.api.v1 import groups, tasks, users
from housemate.config import settings
from housemate.core.exceptions import ServiceError
from housemate.services.notifications import broadcaster

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
)


def error_response(status_code: int, kind: str, message: str, **extra) -> JSONResponse:
    content = {"success": False, "kind": kind, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message, exc_info=exc)
    return error_response(exc.status_code, exc.kind, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(422, "validation", "Invalid request", errors=exc.errors())


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning("Concurrent modification on %s %s: %s", request.method, request.url.path, exc)
    return error_response(409, "conflict", "The group was modified concurrently, please retry")


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    message = str(exc) if settings.DEBUG else "Storage failure"
    return error_response(500, "storage-failure", message)


def log_group_event(group_id: int, event: str, payload: dict) -> None:
    logger.debug("Group %s event %s: %s", group_id, event, payload)


broadcaster.subscribe(log_group_event)

# Include API routers
app.include_router(
    users.router,
    prefix=f"{settings.API_V1_PREFIX}/users",
    tags=["Users"]
)

app.include_router(
    groups.router,
    prefix=f"{settings.API_V1_PREFIX}/groups",
    tags=["Groups"]
)

app.include_router(
    tasks.router,
    prefix=f"{settings.API_V1_PREFIX}/tasks",
    tags=["Tasks"]
)


@app.get("/")
def root():
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to Housemate API",
        "docs": "/docs",
        "version": "1.0.0"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
