import os
from pathlib import Path
from urllib.parse import urlparse

BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY") or os.urandom(32).hex()
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'kgp.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10 MB
    JSON_SORT_KEYS = False

    # Party branding
    PARTY_NAME = os.environ.get("PARTY_NAME", "Kenya Great Party")
    PARTY_SHORT_NAME = os.environ.get("PARTY_SHORT_NAME", "KGP")
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@kenyagreatparty.org")
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")

    # Membership
    MEMBERSHIP_NUMBER_PREFIX = os.environ.get("MEMBERSHIP_NUMBER_PREFIX", "KGP")
    MEMBERSHIP_NUMBER_DIGITS = 6
    MEMBERSHIP_VALIDITY_DAYS = int(os.environ.get("MEMBERSHIP_VALIDITY_DAYS", "365"))
    RENEWAL_PAYMENT_METHODS = ("mpesa", "card", "bank")

    # Security
    TRUST_PROXY = os.environ.get("TRUST_PROXY", "false").lower() == "true"

    # Login lockout
    MAX_FAILED_LOGINS = int(os.environ.get("MAX_FAILED_LOGINS", "5"))
    ACCOUNT_LOCKOUT_MINUTES = int(os.environ.get("ACCOUNT_LOCKOUT_MINUTES", "15"))

    # Rate limiting
    RATELIMIT_DEFAULT = os.environ.get("RATELIMIT_DEFAULT", "100 per 15 minutes")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")

    # Email (Brevo HTTP API)
    BREVO_API_KEY = os.environ.get("BREVO_API_KEY", "")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "membership@kenyagreatparty.org")
    MAIL_DEFAULT_SENDER_NAME = os.environ.get("MAIL_DEFAULT_SENDER_NAME", "KGP Membership Team")

    # Notification outbox
    NOTIFICATION_MAX_ATTEMPTS = int(os.environ.get("NOTIFICATION_MAX_ATTEMPTS", "5"))
    NOTIFICATION_BATCH_SIZE = int(os.environ.get("NOTIFICATION_BATCH_SIZE", "50"))

    # Session
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 3600 * 8  # 8 hours
    REMEMBER_COOKIE_DURATION = 3600 * 24 * 14  # 14 days
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SECURE = False  # overridden in production
    REMEMBER_COOKIE_SAMESITE = "Lax"

    # Scheduler
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "true").lower() == "true"
    SCHEDULER_NOTIFICATION_INTERVAL_MINUTES = int(os.environ.get("SCHEDULER_NOTIFICATION_INTERVAL_MINUTES", "1"))
    SCHEDULER_MAX_CONSECUTIVE_FAILURES = int(os.environ.get("SCHEDULER_MAX_CONSECUTIVE_FAILURES", "3"))


class DevelopmentConfig(Config):
    DEBUG = True

    @classmethod
    def init_app(cls, app):
        if not os.environ.get("SECRET_KEY"):
            app.logger.warning("SECRET_KEY not set -- using an ephemeral key. Sessions will not survive restarts.")


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    TRUST_PROXY = os.environ.get("TRUST_PROXY", "true").lower() == "true"

    @classmethod
    def init_app(cls, app):
        secret_key = os.environ.get("SECRET_KEY", "").strip()
        if not secret_key:
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if len(secret_key) < 32:
            raise RuntimeError(
                "SECRET_KEY is too short for production (minimum 32 characters). "
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        lowered_secret = secret_key.lower()
        weak_markers = ("changeme", "change-this", "replace", "secret", "example", "default")
        if any(marker in lowered_secret for marker in weak_markers):
            raise RuntimeError(
                "SECRET_KEY appears to be a placeholder and is not allowed in production. "
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )

        frontend_url = os.environ.get("FRONTEND_URL", "").strip()
        parsed = urlparse(frontend_url)
        if parsed.scheme != "https" or not parsed.netloc:
            raise RuntimeError(
                "FRONTEND_URL must be set to a valid https:// URL in production (e.g. https://kenyagreatparty.org)."
            )

        # The notification worker runs in-process; >1 worker would deliver
        # each outbox row once per worker.
        web_concurrency = os.environ.get("WEB_CONCURRENCY")
        if web_concurrency:
            try:
                worker_count = int(web_concurrency)
            except ValueError as exc:
                raise RuntimeError("WEB_CONCURRENCY must be an integer when set.") from exc
            if worker_count <= 0:
                raise RuntimeError("WEB_CONCURRENCY must be at least 1 when set.")
            if worker_count > 1 and os.environ.get("SCHEDULER_ENABLED", "true").lower() == "true":
                raise RuntimeError(
                    f"WEB_CONCURRENCY is set to {web_concurrency} with SCHEDULER_ENABLED. "
                    "Run the notification scheduler in a single worker or disable it here."
                )


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    BREVO_API_KEY = ""
    SERVER_NAME = "localhost"
    SECRET_KEY = "testing-secret-key"
    ADMIN_EMAIL = "alerts@test.com"


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
