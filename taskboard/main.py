"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
import logging
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskboard import __version__
from taskboard.config import get_settings
from taskboard.database import engine, init_db
from taskboard.logging_config import setup_logging
from taskboard.routers import tasks, users
from taskboard.schemas.common import ApiResponse
from taskboard.services.errors import TaskboardError

logger = logging.getLogger("taskboard.system")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    init_db()
    yield
    engine.dispose()


def envelope(status_code: int, message: str, data: Any = None, headers: dict | None = None) -> JSONResponse:
    """Render an error in the `{message, data}` envelope."""
    content = {"message": message, "data": {} if data is None else data}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=headers)


async def taskboard_error_handler(request: Request, exc: TaskboardError) -> JSONResponse:
    """Map service errors to their status codes."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return envelope(exc.status_code, exc.message, exc.data)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Store failures outside a persistence guard (e.g. single-record reads)."""
    logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return envelope(500, "Server error")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap routing errors (unknown path, wrong method) in the envelope."""
    return envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query parameters are client errors (400)."""
    return envelope(400, "Invalid request", {"errors": exc.errors()})


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()
    setup_logging(log_dir=settings.log_path, debug=settings.debug)

    app = FastAPI(
        title="Taskboard API",
        description="Users, tasks and the assignments between them",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_origin_regex=settings.cors_origin_regex,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["X-Requested-With", "X-HTTP-Method-Override", "Content-Type", "Accept"],
    )

    app.add_exception_handler(TaskboardError, taskboard_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    api_prefix = settings.api_prefix
    app.include_router(tasks.router, prefix=f"{api_prefix}/tasks", tags=["tasks"])
    app.include_router(users.router, prefix=f"{api_prefix}/users", tags=["users"])

    health_router = APIRouter()

    @health_router.get("/health", response_model=ApiResponse)
    def health() -> ApiResponse:
        """Report that the API is up, with its version."""
        return ApiResponse(message="OK", data={"version": __version__})

    app.include_router(health_router, prefix=api_prefix, tags=["health"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "taskboard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
