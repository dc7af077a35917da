import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="COMPETENCY_DATABASE_URL")
    database_pool_size: int = Field(10, alias="COMPETENCY_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="COMPETENCY_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="COMPETENCY_DATABASE_ECHO")
    cache_ttl_seconds: float = Field(600.0, gt=0, alias="COMPETENCY_CACHE_TTL_SECONDS")
    store_timeout_seconds: float = Field(5.0, gt=0, alias="COMPETENCY_STORE_TIMEOUT_SECONDS")
    store_workers: int = Field(8, ge=1, alias="COMPETENCY_STORE_WORKERS")
    default_max_questions: int = Field(20, ge=0, alias="COMPETENCY_DEFAULT_MAX_QUESTIONS")
    max_questions_limit: int = Field(100, ge=1, alias="COMPETENCY_MAX_QUESTIONS_LIMIT")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid competency engine configuration: {exc}") from exc
