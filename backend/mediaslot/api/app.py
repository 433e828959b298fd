"""FastAPI application setup with lifespan and exception handlers."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mediaslot import __version__, validate_dependencies
from mediaslot.api.routes import router
from mediaslot.config import settings
from mediaslot.services.object_store import close_object_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Startup:
        - Validate system dependencies (ffmpeg)

    Shutdown:
        - Close the object store HTTP client
    """
    # Startup
    logger.info("Starting Media Slot API...")
    validate_dependencies()
    logger.info("API startup complete")

    yield

    # Shutdown
    logger.info("Shutting down Media Slot API...")
    await close_object_store()
    logger.info("API shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Media Slot API",
    version=__version__,
    lifespan=lifespan,
)

# CORS for the configured frontend and the Vite dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.server.allowed_origins,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

# Include router with all endpoints
app.include_router(router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"error": message}, the shape browser clients read."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler to prevent stack traces in API responses."""
    logger.error(f"Unhandled exception in {request.method} {request.url.path}: {type(exc).__name__}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc),
        }
    )
