from pydantic_settings import BaseSettings


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

    COUNTER_OFFER_EXPIRATION_HOURS: int = 24
    MAX_COUNTER_OFFER_EXPIRATION_HOURS: int = 168  # 7 days
    QUOTATION_VALIDITY_HOURS: int = 72

    SWEEP_INTERVAL_SECONDS: int = 60
    EVENT_DISPATCH_INTERVAL_SECONDS: int = 15
    EVENT_BATCH_SIZE: int = 100

    LOCAL_TIMEZONE: str = "Asia/Ho_Chi_Minh"
    HOLIDAYS: str = "01-01,04-30,05-01,09-02"  # MM-DD, comma separated

    API_TITLE: str = "Moving Price Negotiation Service"
    API_DESCRIPTION: str = "Pricing, quotations and counter-offer negotiation for moving bookings"
    API_VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def holiday_dates(self) -> set[tuple[int, int]]:
        dates = set()
        for chunk in self.HOLIDAYS.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            month, day = chunk.split("-")
            dates.add((int(month), int(day)))
        return dates

settings = Settings()
