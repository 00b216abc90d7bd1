"""
Store KV Application Entry Point

FastAPI application main entry, including router registration and application configuration.
"""

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter

from storekv import __version__
from storekv.api import (
    connection_router,
    diag_router,
    images_router,
    migrate_router,
    store_router,
)
from storekv.common.errors import AppError
from storekv.config import get_settings
from storekv.container import StoreContainer
from storekv.logging_config import setup_logging
from storekv.scheduler import shutdown_scheduler, start_scheduler

logger = logging.getLogger(__name__)

# Initialize logging configuration
setup_logging()


# Application Lifecycle Management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application Lifecycle Management

    Build the store container on startup, release the pool on shutdown.
    """
    # Startup
    container = StoreContainer()
    await container.init()
    app.state.container = container
    start_scheduler(container)
    yield
    # Shutdown
    shutdown_scheduler()
    await container.shutdown()


settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    description="Key-value persistence and caching layer",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
allowed_origins_str = settings.ALLOWED_ORIGINS.strip()
if allowed_origins_str:
    allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",") if origin.strip()]
else:
    if settings.DEBUG:
        allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    else:
        allowed_origins = []

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global Exception Handler
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Handle application custom exceptions

    In production mode, error details are hidden to prevent information leakage.
    """
    settings = get_settings()
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_details=settings.DEBUG),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle uncaught exceptions

    Stack traces are logged, and only returned to clients in debug mode.
    """
    settings = get_settings()
    logger.error(
        "Uncaught exception: %s\nPath: %s\nTraceback:\n%s",
        str(exc),
        request.url.path,
        traceback.format_exc(),
    )

    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error": {
                    "message": str(exc),
                    "type": type(exc).__name__,
                    "code": "internal_error",
                    "traceback": traceback.format_exc().split("\n"),
                },
            },
        )

    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": {
                "message": "Internal server error",
                "type": "internal_error",
                "code": "internal_error",
            },
        },
    )


# Health Check Endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health Check

    Used for service liveness checks.
    """
    return {"status": "ok"}


api_router = APIRouter(prefix="/api")
api_router.include_router(store_router)
api_router.include_router(images_router)
api_router.include_router(migrate_router)
api_router.include_router(diag_router)
api_router.include_router(connection_router)
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storekv.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
