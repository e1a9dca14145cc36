from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parkease.core.config import settings


def configure_cors(app: FastAPI) -> None:
    """Attach CORS using the configured origin list."""
    raw = settings.BACKEND_CORS_ORIGINS or "*"
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Wildcard origins cannot be combined with credentials
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Trial-Hours-Remaining", "Retry-After"],
    )
