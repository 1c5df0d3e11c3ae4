from fastapi import FastAPI
from dermreco.core.config import get_settings
from dermreco.core.handlers import register_error_handlers
from dermreco.core.lifespan import lifespan
from dermreco.api.v1.routers.health import router as health_router
from dermreco.api.v1.routers.recommendations import router as recommendations_router
from dermreco.api.v1.routers.analysis import router as analysis_router
from dermreco.core.logging import configure_logging

from fastapi.middleware.cors import CORSMiddleware
import logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    # ------- CORS -------
    # ALLOWED_ORIGINS is a CSV, e.g. "https://app.example.com,https://www.example.com"
    allowed_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["http://localhost:3000"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=86400,
    )

    register_error_handlers(app)

    # ------- Routes -------
    app.include_router(health_router)
    app.include_router(recommendations_router, prefix=settings.api_prefix)
    app.include_router(analysis_router, prefix=settings.api_prefix)
    return app


app = create_app()
