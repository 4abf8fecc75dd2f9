from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Marquee Ticketing API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Tokens are issued by the identity service; we only verify them.
    SECRET_KEY: str = "changeme"
    JWT_ALGORITHM: str = "HS256"

    # Shared secret the payment collaborator sends on confirmation callbacks
    PAYMENT_CALLBACK_SECRET: str = "change-this-payment-secret"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "marquee_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""

    # Booking references
    BOOKING_REFERENCE_PREFIX: str = "BK"
    BOOKING_REFERENCE_LENGTH: int = 8
    BOOKING_REFERENCE_ATTEMPTS: int = 3
    MAX_SEATS_PER_BOOKING: int = 10

    # How long a seat-map price stays redeemable at checkout
    PRICE_LOCK_MINUTES: int = 120

    # Gate validation window
    GATE_EXPIRY_HOURS: int = 3
    GATE_ADVISORY_HOURS: int = 2

    # Claim feed
    CLAIM_STREAM_POLL_SECONDS: float = 1.0
    CLAIM_FEED_PAGE_SIZE: int = 500

    # Housekeeping loop
    SHOWTIME_CLEANUP_SECONDS: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()
