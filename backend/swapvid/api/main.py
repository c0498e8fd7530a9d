"""
FastAPI Main Application
"""

from fastapi import FastAPI, Request, status
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pathlib import Path

from swapvid.config.settings import settings
from swapvid.services.observability import logger


# Create FastAPI app
app = FastAPI(
    title="SwapVid - Character Swap Video Generation",
    description="Starts character swap generations on an async video provider and tracks them to completion",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _resolve_static_root() -> str:
    static_root = Path(settings.static_root)
    try:
        static_root.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        fallback = Path("data/static").resolve()
        fallback.mkdir(parents=True, exist_ok=True)
        logger.warning(
            "static_root_fallback",
            configured=str(settings.static_root),
            fallback=str(fallback),
        )
        settings.static_root = str(fallback)
        return str(fallback)
    return str(static_root)


# Stored artifacts are served from here when the local backend is active
if settings.artifact_backend == "local":
    static_root = _resolve_static_root()
    app.mount(settings.static_url_prefix, StaticFiles(directory=static_root), name="static")


# Health check endpoint
@app.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns:
        JSON response with service health status
    """
    return {
        "status": "healthy",
        "version": "1.0.0",
        "service": "swapvid-backend",
        "trigger_mode": settings.trigger_mode,
    }


# Exception handlers
def _serialize_validation_errors(errors):
    cleaned = []
    for err in errors:
        err_copy = err.copy()
        ctx = err_copy.get("ctx")
        if ctx:
            err_copy["ctx"] = {
                key: (str(value) if isinstance(value, Exception) else value)
                for key, value in ctx.items()
            }
        cleaned.append(err_copy)
    return cleaned


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle request validation errors (400)
    """
    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=_serialize_validation_errors(exc.errors()),
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": _serialize_validation_errors(exc.errors()),
            }
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Handle generic exceptions (500)
    """
    logger.error(
        "unexpected_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    """
    Initialize application on startup
    """
    logger.info("application_starting", log_level=settings.log_level, trigger_mode=settings.trigger_mode)

    from swapvid.models import init_db

    init_db()

    logger.info("application_started")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup on shutdown
    """
    logger.info("application_shutting_down")


# Import routers
from swapvid.api.routes import generations, provider_status

# Register routers
app.include_router(generations.router, prefix="/v1", tags=["generations"])
app.include_router(provider_status.router, prefix="/v1", tags=["provider"])
