"""
Application settings loaded from environment variables or .env file.

Priority:
  1. Environment variables (always win)
  2. .env file in project root (local dev)
  3. Defaults

When ENVIRONMENT=production and DB_PASSWORD is not set, the credentials are
fetched from AWS Secrets Manager at /civicdesk/db/credentials.

When DEV_SKIP_AUTH=true (only allowed in development), bearer-token
verification is bypassed and requests are authenticated via X-Dev-User-ID.
"""
import json
import logging
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_repo_root = Path(__file__).resolve().parents[3]  # backend/civicdesk/core → project root


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_repo_root / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    environment: str = "development"
    log_level: str = ""

    # ------------------------------------------------------------------ #
    # Database
    # ------------------------------------------------------------------ #
    db_host: str = ""
    db_port: int = 5432
    db_name: str = "civicdesk"
    db_user: str = "postgres"
    db_password: str = ""

    # Local dev overrides (used when ENVIRONMENT=development)
    local_db_host: str = "localhost"
    local_db_port: int = 5433
    local_db_name: str = "civicdesk_dev"
    local_db_user: str = "postgres"
    local_db_password: str = "localpassword"

    # ------------------------------------------------------------------ #
    # AWS
    # ------------------------------------------------------------------ #
    aws_region: str = "ap-south-1"

    # ------------------------------------------------------------------ #
    # Bearer tokens (issued by the identity provider, verified here)
    # ------------------------------------------------------------------ #
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    # ------------------------------------------------------------------ #
    # Dev-mode bypass (only honoured when environment == "development")
    # ------------------------------------------------------------------ #
    dev_skip_auth: bool = False

    # ------------------------------------------------------------------ #
    # Image classifier (category suggestions)
    # ------------------------------------------------------------------ #
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # ------------------------------------------------------------------ #
    # Routing & analytics
    # ------------------------------------------------------------------ #
    category_vocabulary_path: str = ""  # empty → bundled vocabulary
    reporting_timezone: str = "Asia/Kolkata"

    # ------------------------------------------------------------------ #
    # Computed properties
    # ------------------------------------------------------------------ #

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def auth_disabled(self) -> bool:
        """True only when running in development with explicit opt-in."""
        return self.is_development and self.dev_skip_auth

    @property
    def classifier_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def effective_log_level(self) -> int:
        if self.log_level:
            return getattr(logging, self.log_level.upper(), logging.INFO)
        return logging.DEBUG if self.is_development else logging.INFO

    @property
    def database_url(self) -> str:
        """Async asyncpg URL."""
        host, port, name, user, password = self._resolve_db_credentials()
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"

    @property
    def database_url_sync(self) -> str:
        """Sync psycopg2 URL (Alembic)."""
        host, port, name, user, password = self._resolve_db_credentials()
        return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"

    def _resolve_db_credentials(self) -> tuple[str, int, str, str, str]:
        if self.is_development:
            return (
                self.local_db_host,
                self.local_db_port,
                self.local_db_name,
                self.local_db_user,
                self.local_db_password,
            )

        host = self.db_host
        password = self.db_password
        user = self.db_user

        if host and not password:
            password, user = self._fetch_db_credentials_from_secrets_manager(user)

        if not host:
            raise RuntimeError("DB_HOST is not set for a non-development environment.")

        return host, self.db_port, self.db_name, user, password

    def _fetch_db_credentials_from_secrets_manager(
        self, default_user: str
    ) -> tuple[str, str]:
        try:
            import boto3

            client = boto3.client("secretsmanager", region_name=self.aws_region)
            secret = client.get_secret_value(SecretId="/civicdesk/db/credentials")
            creds = json.loads(secret["SecretString"])
            return creds.get("password", ""), creds.get("username", default_user)
        except Exception as exc:
            logger.error("Failed to retrieve DB credentials from Secrets Manager: %s", exc)
            raise RuntimeError("Cannot connect to database: missing credentials") from exc

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of {allowed}")
        return v.lower()

    @field_validator("reporting_timezone")
    @classmethod
    def validate_reporting_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"REPORTING_TIMEZONE {v!r} is not a known IANA zone") from exc
        return v

    @field_validator("category_vocabulary_path")
    @classmethod
    def validate_vocabulary_path(cls, v: str) -> str:
        if v and not Path(v).is_file():
            raise ValueError(f"CATEGORY_VOCABULARY_PATH {v!r} does not exist")
        return v

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        if not v.upper().startswith("HS"):
            raise ValueError("Only shared-secret (HS*) token algorithms are supported")
        return v.upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
