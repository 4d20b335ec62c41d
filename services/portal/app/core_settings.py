from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:5000"
    API_TIMEOUT_SEC: float = 30.0
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    # Upstream API is the authority on tokens; verify locally only when the secret is shared
    JWT_VERIFY: bool = False
    AUTH_RELOGIN_THRESHOLD: int = 3
    NOTIFICATION_REFRESH_SEC: int = 30
    PAGE_STATE_TTL_SEC: int = 1800
    PAGE_STATE_MAX_ENTRIES: int = 1024
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

@lru_cache
def get_settings() -> Settings:
    return Settings()
