from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    PROJECT_NAME: str = "URL Shortener"

    # Infrastructure Configs (Env Vars)
    POSTGRES_USER: str = "urlshortener"
    POSTGRES_PASSWORD: str = "urlshortener"
    POSTGRES_SERVER: str = "postgres"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "urlshortener"
    # Full SQLAlchemy URL; overrides the POSTGRES_* parts when set
    DATABASE_URL: Optional[str] = None
    DB_POOL_TIMEOUT: int = 5
    DB_STATEMENT_TIMEOUT_MS: int = 3000

    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0
    REDIS_SOCKET_TIMEOUT: float = 1.0

    BASE_URL: str = "http://localhost:8080"
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Shortening engine
    DEFAULT_CACHE_TTL_SECONDS: int = 86400
    REQUEST_TIMEOUT_SECONDS: float = 5.0

    # Rate limiting (create endpoint only)
    RATE_LIMIT_RPM: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_CLEANUP_INTERVAL_SECONDS: int = 300
    RATE_LIMIT_STALE_WINDOWS: int = 2

    @property
    def sqlalchemy_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

settings = Settings()
