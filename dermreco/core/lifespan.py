# dermreco/core/lifespan.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from openai import AsyncOpenAI
from dermreco.db import mongo, redis as r
from dermreco.core.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    # Mongo (catalog, onboarding, analyses)
    if settings.MONGO_URI:
        await mongo.connect()
    else:
        logger.warning("No MONGO_URI provided, skipping Mongo connection")

    # Redis optional (final-list cache)
    if settings.REDIS_URL:
        await r.connect()
    else:
        logger.warning("No REDIS_URL provided, skipping Redis connection")

    # One OpenAI client per process; SDK retries off, the service owns the retry policy
    app.state.openai = AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY or "missing",
        timeout=settings.openai_timeout_s,
        max_retries=0,
    )

    yield

    # --- Shutdown ---
    await app.state.openai.close()
    if settings.REDIS_URL:
        await r.disconnect()
    if settings.MONGO_URI:
        await mongo.disconnect()
