from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "CASHCLOSE"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./cashclose.db"
    DB_LOCK_TIMEOUT_SECONDS: float = 5.0
    STORE_TIMEZONE: str = "America/Guatemala"
    CURRENCY_CODE: str = "GTQ"
    SIGNIFICANT_DIFFERENCE_PERCENT: Decimal = Decimal("5")
    SIGNIFICANT_DIFFERENCE_AMOUNT: Decimal = Decimal("100")
    REQUIRE_STOCK_CONSISTENCY: bool = True
    CLOSURES_DEFAULT_PAGE_SIZE: int = 10
    CLOSURES_MAX_PAGE_SIZE: int = 100
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True

settings = Settings()
