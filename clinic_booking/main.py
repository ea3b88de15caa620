from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import time
import logging

import redis

from .api.routes.auth import router as auth_router
from .api.routes.bookings import router as bookings_router
from .api.routes.slots import router as slots_router
from .core.config import Settings, settings as default_settings
from .core.database import Store
from .core.errors import AppError, InternalError, ValidationError

logger = logging.getLogger(__name__)


def _error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                "message": error.get("msg", ""),
            }
            for error in exc.errors()
        ]
        return _error_response(ValidationError(details=details))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": code, "message": str(exc.detail)}},
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.exception(f"Internal server error on {request.method} {request.url.path}")
        return _error_response(InternalError())


def create_app(config: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
    """Build the application around an explicitly constructed store."""
    config = config or default_settings

    logging.basicConfig(level=config.LOG_LEVEL)

    app = FastAPI(
        title=config.APP_NAME,
        version=config.VERSION,
        description="Patients reserve open appointment slots; admins review bookings",
        openapi_url=f"{config.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.state.settings = config
    app.state.store = store or Store(config.get_database_url, echo=config.DEBUG)
    app.state.redis = (
        redis.from_url(config.REDIS_URL, decode_responses=True)
        if config.RATE_LIMIT_ENABLED else None
    )

    # Middleware setup
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Only add TrustedHostMiddleware in production, not in testing
    if not config.TESTING:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=config.ALLOWED_HOSTS)

    # Custom middleware for request logging and timing
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.4f}s"
        )

        return response

    register_exception_handlers(app)

    # Include routers
    app.include_router(auth_router, prefix=config.API_PREFIX)
    app.include_router(slots_router, prefix=config.API_PREFIX)
    app.include_router(bookings_router, prefix=config.API_PREFIX)

    @app.on_event("startup")
    async def startup_event():
        """Initialize application on startup."""
        logger.info(f"Starting {config.APP_NAME}...")
        try:
            app.state.store.init_db()
        except Exception as e:
            logger.error(f"Failed to initialize database: {str(e)}")
            raise
        logger.info("Application startup complete")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on application shutdown."""
        logger.info(f"Shutting down {config.APP_NAME}...")
        app.state.store.dispose()

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": config.VERSION
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clinic_booking.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG,
        log_level="info"
    )
