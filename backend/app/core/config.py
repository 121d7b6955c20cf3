from functools import lru_cache
import json
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_MARKERS = ("your_", "change-this", "changeme")


def _parse_list_value(value: str) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if raw == "":
            return []
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except ValueError:
            pass
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def looks_like_placeholder(value: str) -> bool:
    lowered = (value or "").lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "APP_ENV"),
    )

    supabase_url: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
    )
    supabase_key: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_KEY", "SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY"),
    )
    supabase_service_role_key: str = ""
    database_url: str = ""

    documents_bucket: str = "documents"
    signatures_bucket: str = "signatures"
    max_document_bytes: int = 10 * 1024 * 1024
    allowed_document_types_raw: str = Field(
        default="application/pdf,image/jpeg,image/png,image/heic",
        validation_alias=AliasChoices("ALLOWED_DOCUMENT_TYPES"),
    )

    admin_username: str = "admin"
    admin_password: str = "admin"
    session_secret: str = ""
    session_ttl_hours: int = 24
    session_cookie_name: str = "admin_session"
    session_cookie_secure: bool = False

    admin_list_limit: int = 50

    rate_limit_submissions_enabled: bool = True
    rate_limit_submissions_per_min: int = 10

    docs_enabled: bool = True
    openapi_enabled: bool = True
    expose_error_details: bool = False

    security_headers_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("SECURITY_HEADERS_ENABLED", "SECURE_HEADERS_ENABLED"),
    )

    trusted_proxy_cidrs_raw: str = Field(
        default="",
        validation_alias=AliasChoices("TRUSTED_PROXY_CIDRS"),
    )

    cors_allow_origins_raw: str = Field(default="", validation_alias=AliasChoices("CORS_ALLOW_ORIGINS"))
    cors_allow_methods_raw: str = Field(
        default="GET,POST,PATCH,DELETE,OPTIONS",
        validation_alias=AliasChoices("CORS_ALLOW_METHODS"),
    )
    cors_allow_headers_raw: str = Field(
        default="Authorization,Content-Type,Accept",
        validation_alias=AliasChoices("CORS_ALLOW_HEADERS"),
    )

    @property
    def trusted_proxy_cidrs(self) -> list[str]:
        return _parse_list_value(self.trusted_proxy_cidrs_raw)

    @property
    def cors_allow_origins(self) -> list[str]:
        return _parse_list_value(self.cors_allow_origins_raw)

    @property
    def cors_allow_methods(self) -> list[str]:
        return _parse_list_value(self.cors_allow_methods_raw)

    @property
    def cors_allow_headers(self) -> list[str]:
        return _parse_list_value(self.cors_allow_headers_raw)

    @property
    def allowed_document_types(self) -> list[str]:
        return _parse_list_value(self.allowed_document_types_raw)

    @property
    def is_production(self) -> bool:
        return (self.environment or "").strip().lower() in {"production", "prod"}

    def validate_required_config(self) -> list[str]:
        """Return a list of configuration problems (empty when the config is usable)."""
        problems = []
        if not self.database_url:
            problems.append("DATABASE_URL is not set")
        if not self.supabase_url:
            problems.append("SUPABASE_URL is not set")
        elif looks_like_placeholder(self.supabase_url):
            problems.append("SUPABASE_URL still holds a placeholder value")
        if not (self.supabase_service_role_key or self.supabase_key):
            problems.append("SUPABASE_SERVICE_ROLE_KEY or SUPABASE_KEY must be set")
        if len(self.session_secret or "") < 32:
            problems.append("SESSION_SECRET must be at least 32 characters")
        if self.admin_username == "admin" and self.admin_password == "admin":
            problems.append("ADMIN_USERNAME/ADMIN_PASSWORD still use the default credentials")
        return problems


@lru_cache
def get_settings() -> Settings:
    return Settings()
