"""Bot configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    TELEGRAM_BOT_TOKEN: str = ""
    API_BASE_URL: str = "http://localhost:3000"
    REDIS_URL: str = "redis://localhost:6379/0"
    IDENTITY_URL: str = "http://localhost:4000"
    HTTP_TIMEOUT: float = 15.0
    SEARCH_PAGE_LIMIT: int = 10
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()
