from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://quotedesk:quotedesk_dev@db:5432/quotedesk"
    STORE_TIMEOUT_SECONDS: float = 10.0

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # Security
    SECRET_KEY: str = "dev-secret-key-not-for-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 8 * 60
    ALLOWED_ORIGINS: str = "*"

    # Google sign-in
    GOOGLE_USERINFO_URL: str = "https://www.googleapis.com/oauth2/v2/userinfo"

    # Email relay
    EMAIL_RELAY_URL: str = "mock_email_relay"
    EMAIL_RELAY_TIMEOUT_SECONDS: float = 30.0
    ADMIN_NOTIFICATION_EMAILS: str = "contracts@quotedesk.app"

    # Customer-facing contract view
    VIEW_URL: str = "http://localhost:5500/view.html"

    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def admin_recipients(self) -> list[str]:
        return [e.strip() for e in self.ADMIN_NOTIFICATION_EMAILS.split(",") if e.strip()]


settings = Settings()
