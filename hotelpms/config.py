import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    APP_NAME: str = "HotelPMS"
    # Core settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")

    # Auth & Session
    SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "hotelpms_session")
    SESSION_MAX_AGE_DAYS: int = int(os.getenv("SESSION_MAX_AGE_DAYS", "30"))

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./hotelpms.db")

    # Default superadmin bootstrap
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@hotelpms.local")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "admin12345")
    ADMIN_NOTIFICATION_EMAIL: str = os.getenv("ADMIN_NOTIFICATION_EMAIL", "")
    ADMIN_NOTIFICATION_EMAIL_ENABLE: bool = os.getenv("ADMIN_NOTIFICATION_EMAIL_ENABLE", "false").lower() == "true"

    # Mail Settings (Mailgun)
    MAIL_FROM: str = os.getenv("MAIL_FROM", "noreply@hotelpms.local")
    MAILGUN_API_KEY: str = os.getenv("MAILGUN_API_KEY", "")
    MAILGUN_DOMAIN: str = os.getenv("MAILGUN_DOMAIN", "")

    # Outbox dispatch
    OUTBOX_MAX_ATTEMPTS: int = int(os.getenv("OUTBOX_MAX_ATTEMPTS", "3"))

    # Guest directory
    GUEST_SEARCH_LIMIT: int = int(os.getenv("GUEST_SEARCH_LIMIT", "10"))

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    RATE_LIMIT_DEFAULT: str = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
    RATE_LIMIT_AUTH_API: str = os.getenv("RATE_LIMIT_AUTH_API", "10/minute")

settings = Settings()
