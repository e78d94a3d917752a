"""FastAPI application factory.

Main entry point for the gradeflow Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gradeflow import __version__
from gradeflow.config.app_config import load_app_config
from gradeflow.db.database import init_db
from gradeflow.web.routes import (
    chat_router,
    concepts_router,
    grading_router,
    health_router,
    ocr_router,
    practice_router,
    skills_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config = load_app_config()
    init_db(config.db_path)
    logger.info(
        "api_startup",
        db_path=str(config.db_path),
        provider=config.default_provider,
    )
    yield


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report missing or malformed fields as 400 with the error envelope."""
    fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    missing = [f for f, err in zip(fields, exc.errors()) if err.get("type") == "missing"]

    if missing:
        message = f"Missing required fields: {', '.join(missing)}"
    else:
        message = f"Invalid request fields: {', '.join(fields)}"

    logger.warning("request_invalid", path=request.url.path, fields=fields)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": message, "details": str(exc.errors()), "retryable": False},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="gradeflow API",
        description="AI grading and practice-test generation",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(health_router)
    app.include_router(practice_router)
    app.include_router(skills_router)
    app.include_router(grading_router)
    app.include_router(ocr_router)
    app.include_router(chat_router)
    app.include_router(concepts_router)

    return app


# Default app instance for uvicorn
app = create_app()
