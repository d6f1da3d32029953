# Fichier: backend/app/core/config.py
from pydantic_settings import BaseSettings
from typing import Optional, List
from pydantic import ValidationError, field_validator
import sys


DEFAULT_KNOWN_PLATFORM_DOMAINS: List[str] = [
    "youtube.com",
    "youtu.be",
    "udemy.com",
    "coursera.org",
    "edx.org",
    "linkedin.com",
    "pluralsight.com",
    "skillshare.com",
    "khanacademy.org",
    "freecodecamp.org",
    "codecademy.com",
    "udacity.com",
    "medium.com",
    "github.com",
    "stackoverflow.com",
    "w3schools.com",
    "mdn.io",
    "developer.mozilla.org",
    "docs.python.org",
    "nodejs.org",
    "react.dev",
    "vuejs.org",
    "angular.io",
    "typescriptlang.org",
]


class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str

    ENVIRONMENT: str = "development"

    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
    ]
    BACKEND_CORS_ORIGIN_REGEXES: List[str] = []

    # --- Admin access ---
    ADMIN_USERNAME: str = "admin"
    # bcrypt hash; admin login is refused while it is unset.
    ADMIN_PASSWORD_HASH: Optional[str] = None
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Performance instrumentation
    SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS: int = 300

    # --- URL verification ---
    URL_VERIFICATION_TIMEOUT_SECONDS: float = 10.0
    URL_VERIFICATION_CONCURRENCY: int = 5
    URL_VERIFICATION_DISPATCH_DELAY_SECONDS: float = 0.1
    URL_VERIFICATION_USER_AGENT: str = (
        "Mozilla/5.0 (compatible; SkillCatalogBot/1.0; +https://skill-catalog.example)"
    )
    KNOWN_PLATFORM_DOMAINS: List[str] = DEFAULT_KNOWN_PLATFORM_DOMAINS

    # --- Popularity score tuning ---
    POPULARITY_RESOURCE_WEIGHT: float = 10.0
    POPULARITY_RATING_WEIGHT: float = 20.0
    POPULARITY_LEARNERS_DIVISOR: float = 100.0

    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() == "production"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: str) -> str:
        """Ensure Postgres URLs always use the asyncpg driver.

        Managed Postgres providers still hand out ``postgres://`` URLs, an
        alias SQLAlchemy no longer ships. Those (and the psycopg variants) are
        rewritten to ``postgresql+asyncpg://``; SQLite and other backends are
        left untouched. ``app.db.session`` derives the synchronous URL from
        the async one.
        """

        if not isinstance(value, str):
            return value

        if "+asyncpg" in value:
            return value

        replacements = {
            "postgres://": "postgresql+asyncpg://",
            "postgresql://": "postgresql+asyncpg://",
            "postgresql+psycopg2://": "postgresql+asyncpg://",
            "postgresql+psycopg://": "postgresql+asyncpg://",
        }

        for prefix, target in replacements.items():
            if value.startswith(prefix):
                return target + value[len(prefix) :]

        return value

    @field_validator("KNOWN_PLATFORM_DOMAINS")
    @classmethod
    def _normalize_domains(cls, value: List[str]) -> List[str]:
        return [domain.strip().lower() for domain in value if domain and domain.strip()]


def _log_settings_validation_error(exc: ValidationError) -> None:
    """Print missing or invalid environment variables in a readable form.

    The settings object is built at import time, so a missing variable
    surfaces as an import error that hides which key is at fault. The
    structured error payload is written to stderr before re-raising.
    """

    print("Configuration error while loading environment variables:", file=sys.stderr)

    details = exc.errors()
    if not details:
        print(exc, file=sys.stderr)
        return

    for error in details:
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "Unknown validation error")
        type_name = error.get("type")
        hint = f"{message} (type={type_name})" if type_name else message
        print(f"  - {location}: {hint}", file=sys.stderr)


try:
    settings = Settings()
except ValidationError as exc:  # pragma: no cover - exercised at runtime
    _log_settings_validation_error(exc)
    raise
