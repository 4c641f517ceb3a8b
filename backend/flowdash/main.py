from pathlib import Path
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from flowdash.core.config import settings
from flowdash.core.database import init_db
from flowdash.core.keys import load_session_keys
from flowdash.core.logging_config import get_logger
from flowdash.core.session import clear_session_cookie

logger = get_logger("main")

app = FastAPI(
    title="FlowDash API",
    description="Factory production logging and inventory",
    version="1.0.0",
    redirect_slashes=False,
)

# Import router after app creation to catch import errors
try:
    from flowdash.api.v1.api import api_router
    logger.info("Successfully imported api_router")
except Exception as e:
    logger.error(f"Failed to import api_router: {e}", exc_info=True)
    raise


@app.on_event("startup")
async def startup_event():
    """Create tables and load the session signing keys. Missing keys abort startup."""
    init_db()
    if getattr(app.state, "session_keys", None) is None:
        app.state.session_keys = load_session_keys(settings)
    logger.info("=== Application startup complete (environment=%s) ===", settings.ENVIRONMENT)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def get_cors_headers(request: Request) -> dict:
    """Get CORS headers based on request origin"""
    origin = request.headers.get("origin")
    if origin and origin in settings.CORS_ORIGINS:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization",
        }
    return {}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to ensure CORS headers are always sent"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    cors_headers = get_cors_headers(request)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.DEBUG and not settings.is_production else "An error occurred",
        },
        headers=cors_headers
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP exception handler with CORS headers. Clears the session cookie when the error asks for it."""
    headers = {**get_cors_headers(request), **(getattr(exc, "headers", None) or {})}
    response = JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers
    )
    if getattr(exc, "clear_session", False):
        clear_session_cookie(response)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Validation exception handler with CORS headers"""
    cors_headers = get_cors_headers(request)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
        headers=cors_headers
    )


try:
    app.include_router(api_router, prefix="/api")
    logger.info("Successfully included api_router")
except Exception as e:
    logger.error(f"Failed to include api_router: {e}", exc_info=True)
    raise

# Serve processed media at /uploads/media/*
upload_dir_abs = Path(settings.UPLOAD_DIR_ABS)
try:
    upload_dir_abs.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(upload_dir_abs)), name="uploads")
except OSError as e:
    logger.warning(f"Upload directory unavailable, /uploads not served: {e}")


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
