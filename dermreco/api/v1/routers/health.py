# dermreco/api/v1/routers/health.py
import subprocess
import time
from functools import lru_cache

from fastapi import APIRouter

from dermreco.core.config import get_settings
from dermreco.db import mongo
from dermreco.db.redis import get_redis

router = APIRouter(tags=["health"])
START_TIME = time.time()

# Collections the recommendation pipeline reads
REQUIRED_COLLECTIONS = ("products", "onboarding_data", "skin_analyses")


@lru_cache(maxsize=1)
def _git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "--short", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except Exception:
        return "unknown"


async def _check_mongo() -> str:
    if not get_settings().MONGO_URI:
        return "skipped"
    try:
        db = mongo.get_db()
        await db.command("ping")
        names = set(await db.list_collection_names())
    except Exception as e:
        return f"error: {e}"
    missing = [c for c in REQUIRED_COLLECTIONS if c not in names]
    return f"error: missing collections {missing}" if missing else "ok"


async def _check_redis() -> str:
    r = get_redis()
    if r is None:
        return "skipped"
    try:
        await r.ping()
        return "ok"
    except Exception as e:
        return f"error: {e}"


@router.get("/health")
async def health():
    """
    Liveness plus dependency checks.

    Mongo and Redis report "skipped" when unconfigured; Redis being down only
    disables the recommendation cache so it never fails the overall status.
    Without an OpenAI key the service is "degraded": analysis reads still work,
    recommendations do not.
    """
    settings = get_settings()
    checks = {
        "mongodb": await _check_mongo(),
        "redis": await _check_redis(),
        "openai_api_key_set": bool(settings.OPENAI_API_KEY),
    }

    if checks["mongodb"].startswith("error"):
        status = "error"
    elif not checks["openai_api_key_set"]:
        status = "degraded"
    else:
        status = "ok"

    return {
        "status": status,
        "app_name": settings.APP_NAME,
        "env": settings.APP_ENV,
        "version": settings.GIT_SHA if settings.GIT_SHA != "unknown" else _git_sha(),
        "models": {"rerank": settings.OPENAI_RERANK_MODEL, "vision": settings.OPENAI_VISION_MODEL},
        "uptime_seconds": int(time.time() - START_TIME),
        "checks": checks,
        "timestamp": int(time.time()),
    }
