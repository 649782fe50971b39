import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(7 * 24 * 60)))

RESET_TOKEN_EXPIRES_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRES_MINUTES", "60"))
# Reserved for email verification; nothing issues this token type yet.
EMAIL_VERIFICATION_EXPIRES_MINUTES = int(os.getenv("EMAIL_VERIFICATION_EXPIRES_MINUTES", "10"))

BCRYPT_ROUNDS = max(4, int(os.getenv("BCRYPT_ROUNDS", "10")))
MAX_ADMIN_ACCOUNTS = int(os.getenv("MAX_ADMIN_ACCOUNTS", "2"))

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:4200")
CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:4200"])

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)
EMAIL_FROM = os.getenv("EMAIL_FROM", "no-reply@localhost")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "University Grading System")


def is_development() -> bool:
    return APP_ENV.lower() == "development"


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if JWT_EXPIRES_MINUTES < 0 or RESET_TOKEN_EXPIRES_MINUTES <= 0:
        raise RuntimeError("Token lifetimes must be positive.")
