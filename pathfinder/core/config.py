import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip().lower() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pathfinder.db")
REDIS_URL = os.getenv("REDIS_URL", "")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:5173"])
TRUST_PROXY_HEADERS = _get_bool(os.getenv("TRUST_PROXY_HEADERS"), default=False)

DEFAULT_JWT_SECRET_KEY = "change-me"
DEFAULT_JWT_REFRESH_SECRET_KEY = "change-me-refresh"

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET_KEY)
JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", DEFAULT_JWT_REFRESH_SECRET_KEY)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRES_MINUTES = _get_int(os.getenv("ACCESS_TOKEN_EXPIRES_MINUTES"), 15)
REFRESH_TOKEN_EXPIRES_DAYS = _get_int(os.getenv("REFRESH_TOKEN_EXPIRES_DAYS"), 7)

BCRYPT_ROUNDS = _get_int(os.getenv("BCRYPT_ROUNDS"), 12)
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_BYTES = 72

ALLOWED_EMAIL_DOMAINS = _get_list(
    os.getenv("ALLOWED_EMAIL_DOMAINS"),
    ["bowiestate.edu", "students.bowiestate.edu"],
)

VERIFICATION_CODE_TTL_MINUTES = _get_int(os.getenv("VERIFICATION_CODE_TTL_MINUTES"), 60)
VERIFICATION_FRESHNESS_MINUTES = _get_int(os.getenv("VERIFICATION_FRESHNESS_MINUTES"), 60)
VERIFICATION_MAX_ATTEMPTS = _get_int(os.getenv("VERIFICATION_MAX_ATTEMPTS"), 3)

LOGIN_RATE_LIMIT = _get_int(os.getenv("LOGIN_RATE_LIMIT"), 5)
LOGIN_RATE_WINDOW_SECONDS = _get_int(os.getenv("LOGIN_RATE_WINDOW_SECONDS"), 15 * 60)
REGISTER_RATE_LIMIT = _get_int(os.getenv("REGISTER_RATE_LIMIT"), 3)
REGISTER_RATE_WINDOW_SECONDS = _get_int(os.getenv("REGISTER_RATE_WINDOW_SECONDS"), 60 * 60)
VERIFICATION_RATE_LIMIT = _get_int(os.getenv("VERIFICATION_RATE_LIMIT"), 3)
VERIFICATION_RATE_WINDOW_SECONDS = _get_int(os.getenv("VERIFICATION_RATE_WINDOW_SECONDS"), 5 * 60)

LOCKOUT_THRESHOLD = _get_int(os.getenv("LOCKOUT_THRESHOLD"), 5)
LOCKOUT_DURATION_MINUTES = _get_int(os.getenv("LOCKOUT_DURATION_MINUTES"), 30)

UNLOCK_CODE_PREFIX = os.getenv("UNLOCK_CODE_PREFIX", "EIC").strip().upper()

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = _get_int(os.getenv("SMTP_PORT"), 587)
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)
MAIL_FROM = os.getenv("MAIL_FROM", SMTP_USER)


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    if JWT_SECRET_KEY == DEFAULT_JWT_SECRET_KEY:
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if JWT_REFRESH_SECRET_KEY == DEFAULT_JWT_REFRESH_SECRET_KEY:
        raise RuntimeError("JWT_REFRESH_SECRET_KEY must be set in production.")
    if JWT_SECRET_KEY == JWT_REFRESH_SECRET_KEY:
        raise RuntimeError("JWT_SECRET_KEY and JWT_REFRESH_SECRET_KEY must differ.")
