import os
from urllib.parse import quote_plus
from dotenv import load_dotenv

load_dotenv()


def _as_bool(val, default=False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    # Same DB_* variables alembic used before DATABASE_URL existed
    host = os.getenv("DB_HOST")
    if host:
        user = os.getenv("DB_USER", "postgres")
        password = quote_plus(os.getenv("DB_PASSWORD", ""))
        port = os.getenv("DB_PORT", "5432")
        name = os.getenv("DB_NAME", "reviewloop")
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"

    return "sqlite:///./reviewloop.db"


class Settings:
    DATABASE_URL = _database_url()

    # PUBLIC URLS
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/")

    # TRACKING LINKS
    TRACKING_JWT_SECRET = os.getenv("TRACKING_JWT_SECRET", "dev-tracking-secret")
    TRACKING_TOKEN_TTL_DAYS = int(os.getenv("TRACKING_TOKEN_TTL_DAYS", "7"))

    # CRON (empty secret = cron endpoints locked)
    CRON_SECRET = os.getenv("CRON_SECRET", "")

    # Encryption of stored OAuth tokens
    TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY", "default-secret")

    # GOOGLE (Gmail sending as the tenant)
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_TOKEN_URL = os.getenv("GOOGLE_TOKEN_URL", "https://oauth2.googleapis.com/token")
    GMAIL_SEND_URL = os.getenv(
        "GMAIL_SEND_URL", "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
    )

    # ZEPTO MAIL SETTINGS (platform fallback sender)
    ZEPTO_API_URL = os.getenv("ZEPTO_API_URL", "https://api.zeptomail.in/v1.1/email")
    ZEPTO_API_KEY = os.getenv("ZEPTO_API_KEY")
    ZEPTO_FROM_ADDRESS = os.getenv("ZEPTO_FROM_ADDRESS")

    MAILER_TIMEOUT_SECONDS = float(os.getenv("MAILER_TIMEOUT_SECONDS", "15"))

    # SCHEDULER
    ENABLE_SCHEDULER = _as_bool(os.getenv("ENABLE_SCHEDULER", "1"))
    DAILY_CYCLE_HOUR = int(os.getenv("DAILY_CYCLE_HOUR", "9"))
    SNAPSHOT_HOUR = int(os.getenv("SNAPSHOT_HOUR", "3"))
    SNAPSHOT_DELAY_SECONDS = float(os.getenv("SNAPSHOT_DELAY_SECONDS", "2"))

    # DEFAULTS
    DEFAULT_REVIEW_DELAY_DAYS = int(os.getenv("DEFAULT_REVIEW_DELAY_DAYS", "1"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
