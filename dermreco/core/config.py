from functools import lru_cache
from typing import Literal
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production", "test"]

def _env_file_for(app_env: str) -> str:
    return ".env.production" if app_env == "production" else ".env.development"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "DermReco"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo (empty URI = no catalog connection, e.g. tests)
    MONGO_URI: str = ""
    MONGO_DB: str = "dermreco"

    # Redis (optional, final-list cache only)
    REDIS_URL: str = ""

    # Recommendation cache
    recommendation_cache_ttl: int = 10 * 60     # 10 minutes
    recommendation_cache_prefix: str = "reco"

    # OpenAI
    OPENAI_API_KEY: str = ""
    openai_timeout_s: int = 30  # seconds
    OPENAI_RERANK_MODEL: str = "gpt-4o-mini"
    OPENAI_VISION_MODEL: str = "gpt-4o-mini"
    rerank_max_tokens: int = 1500
    vision_max_tokens: int = 1500

    # API
    api_prefix: str = "/api"
    ALLOWED_ORIGINS: str = ""

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
