from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError, SQLAlchemyError, TimeoutError as SQLAlchemyTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from parkease.core.logger import setup_logging
from parkease.middleware import error_handler
from parkease.middleware.cors import configure_cors
from parkease.middleware.logging import RequestLoggerMiddleware

# Routers
from parkease.routers import auth as auth_router
from parkease.routers import devices as devices_router
from parkease.routers import health as health_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    setup_logging()
    description = (
        "ParkEase Backend API.\n\n"
        "Authentication, session and device management for the ParkEase parking and taxi apps."
    )

    openapi_tags = [
        {"name": "authentication", "description": "Guest signup, login, token refresh, validation and logout."},
        {"name": "devices", "description": "Device registry status and signing out other devices."},
        {"name": "health", "description": "Health checks and service status endpoints."},
    ]

    app = FastAPI(
        title="ParkEase Backend API",
        version="0.1.0",
        description=description,
        openapi_tags=openapi_tags,
    )

    # Middleware
    configure_cors(app)
    app.add_middleware(RequestLoggerMiddleware)

    # Exception handlers
    app.add_exception_handler(StarletteHTTPException, error_handler.http_exception_handler)
    app.add_exception_handler(RequestValidationError, error_handler.validation_exception_handler)
    app.add_exception_handler(OperationalError, error_handler.store_unavailable_handler)
    app.add_exception_handler(SQLAlchemyTimeoutError, error_handler.store_unavailable_handler)
    app.add_exception_handler(SQLAlchemyError, error_handler.unhandled_exception_handler)
    app.add_exception_handler(Exception, error_handler.unhandled_exception_handler)

    # Include routers
    app.include_router(health_router.router)
    app.include_router(auth_router.router)
    app.include_router(devices_router.router)

    return app


app = create_app()
