import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    jwt_secret: str
    jwt_expires_hours: int

    auth_rate_limit: int
    auth_rate_window: int

    cors_origin: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def load_settings() -> Settings:
    secret_key = _getenv("SECRET_KEY", "change-me")
    return Settings(
        secret_key=secret_key,
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///taskmate.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        jwt_secret=_getenv("JWT_SECRET", secret_key),
        jwt_expires_hours=_getenv_int("JWT_EXPIRES_HOURS", 168),
        auth_rate_limit=_getenv_int("AUTH_RATE_LIMIT", 5),
        auth_rate_window=_getenv_int("AUTH_RATE_WINDOW", 15 * 60),
        cors_origin=_getenv("CORS_ORIGIN", "http://localhost:3000"),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "JWT_SECRET": s.jwt_secret,
        "JWT_ALGORITHM": "HS256",
        "JWT_EXPIRES_HOURS": s.jwt_expires_hours,
        "AUTH_RATE_LIMIT": s.auth_rate_limit,
        "AUTH_RATE_WINDOW": s.auth_rate_window,
        "CORS_ORIGIN": s.cors_origin,
        # JSON bodies only; nothing here needs large uploads
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
        "JSON_SORT_KEYS": False,
    }
