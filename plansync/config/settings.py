from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "PlanSync"
    debug: bool = True
    solver_url: str = "http://localhost:8080"
    request_timeout_seconds: float = 10.0
    auto_refresh: bool = False
    poll_interval_seconds: float = 2.0
    cors_origins: List[str] = ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
