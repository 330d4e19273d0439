from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # DB
    DATABASE_URL: str = "sqlite:///./discounts.db"

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SWEEP_INTERVAL_SECONDS: int = 60

    # Rule validation
    FORMULA_SAMPLE_PRICE: float = 100.0
    FORMULA_MAX_LENGTH: int = 256

    # Ledger
    PRICE_HISTORY_MAX_PAGE_SIZE: int = 200

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
