import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DEFAULT_DATABASE_URL = "sqlite:///./clinic.db"
DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:4200"])

SLOT_WINDOW_DAYS = int(os.getenv("SLOT_WINDOW_DAYS", "15"))
MAX_SLOT_WINDOW_DAYS = int(os.getenv("MAX_SLOT_WINDOW_DAYS", "60"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and DATABASE_URL == DEFAULT_DATABASE_URL:
        raise RuntimeError("DATABASE_URL must be set in production.")
    if not 1 <= SLOT_WINDOW_DAYS <= MAX_SLOT_WINDOW_DAYS:
        raise RuntimeError("SLOT_WINDOW_DAYS must be between 1 and MAX_SLOT_WINDOW_DAYS.")
