"""
Configuration management for the travel statistics service
"""
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    APP_NAME: str = "Travel Statistics"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_URL: str = ""
    REDIS_SOCKET_TIMEOUT: float = 5.0
    REDIS_KEY_PREFIX: str = "stats"

    # API Settings
    API_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["*"]

    # Authentication (bearer JWT issued by the login service)
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "travel-login"
    JWT_LEEWAY_SECONDS: int = 60
    ADMIN_ROLE: str = "ADMIN"

    # Event ingestion
    MAX_BATCH_SIZE: int = 1000
    EVENT_TIMEZONE: str = "UTC"

    # Queries
    MAX_RANGE_DAYS: int = 731

    def get_redis_url(self) -> str:
        """Get Redis connection URL"""
        if self.REDIS_URL:
            return self.REDIS_URL

        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


# Global settings instance
settings = Settings()
