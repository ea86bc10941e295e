from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    APP_NAME: str = "Sourcing Marketplace"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 8000

    DATABASE_URL: str = "sqlite+aiosqlite:///./marketplace.db"
    DATABASE_SYNC_URL: str = ""
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_RECYCLE: int = 300
    AUTO_CREATE_TABLES: bool = True
    STORE_RETRY_ATTEMPTS: int = 3

    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    INTERNAL_JOB_SECRET: Optional[str] = None  # Required in production for /internal/jobs/* auth
    CORS_ORIGINS: str = "http://localhost:3000"
    CORS_ORIGIN_REGEX: Optional[str] = None

    # Marketplace rules
    MAX_QUOTATIONS_PER_RFQ: int = 10
    RFQ_AUTO_EXPIRE_DAYS: int = 30
    ADVANCE_PAYMENT_RATIO: float = 0.30
    QUOTATION_VALIDITY_DAYS_MIN: int = 1
    QUOTATION_VALIDITY_DAYS_MAX: int = 365
    ORDER_DELIVERY_DAYS: int = 30

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def quotation_validity_days_range(self) -> tuple[int, int]:
        return self.QUOTATION_VALIDITY_DAYS_MIN, self.QUOTATION_VALIDITY_DAYS_MAX

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
