from pydantic_settings import BaseSettings

from rentalops.core.enums import WeekendSurchargePolicy


class Settings(BaseSettings):
    DATABASE_URL: str

    REDIS_URL: str

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    RATE_LIMIT: int = 100
    RATE_LIMIT_WINDOW: int = 600  # 10 minutes

    IDEMPOTENCY_TTL: int = 300  # 5 minutes
    PRICE_CACHE_TTL: int = 60   # 60 seconds

    WEBHOOK_URL: str
    WEBHOOK_TIMEOUT: int = 10
    WEBHOOK_RETRIES: int = 3

    CELERY_BROKER_URL: str
    CELERY_BACKEND: str

    # Weekend classification happens in this zone for every booking
    PRICING_TIMEZONE: str = "America/Vancouver"
    WEEKEND_SURCHARGE_POLICY: WeekendSurchargePolicy = WeekendSurchargePolicy.PICKUP_DAY

    API_TITLE: str = "Rental Operations Service"
    API_DESCRIPTION: str = "Booking pricing, return workflow and deposit operations for the rental fleet"
    API_VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
