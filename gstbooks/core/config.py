from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from container + optionally from files
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.docker"),
        extra="ignore",
        case_sensitive=False,
    )

    # App
    ENVIRONMENT: str = Field(default="dev", validation_alias=AliasChoices("ENVIRONMENT", "environment"))
    APP_NAME: str = Field(default="gstbooks", validation_alias=AliasChoices("APP_NAME", "app_name"))
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))
    DEBUG: bool = Field(default=False, validation_alias=AliasChoices("DEBUG", "debug"))

    # Accounting backend (stores documents, talks to the GST network)
    BOOKS_API_BASE_URL: str = Field(
        default="http://localhost:4000/api",
        validation_alias=AliasChoices("BOOKS_API_BASE_URL", "books_api_base_url"),
    )
    BOOKS_API_KEY: str = Field(default="", validation_alias=AliasChoices("BOOKS_API_KEY", "books_api_key"))
    BOOKS_API_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        validation_alias=AliasChoices("BOOKS_API_TIMEOUT_SECONDS", "books_api_timeout_seconds"),
    )

    # Credential cache (pending OTP transactions, active GSTIN, in-flight guards)
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("REDIS_URL", "redis_url"),
    )
    CREDENTIAL_CACHE_BACKEND: str = Field(
        default="memory",
        validation_alias=AliasChoices("CREDENTIAL_CACHE_BACKEND", "credential_cache_backend"),
    )
    IN_FLIGHT_TTL_SECONDS: int = Field(
        default=60,
        validation_alias=AliasChoices("IN_FLIGHT_TTL_SECONDS", "in_flight_ttl_seconds"),
    )

    # GST token expiry tracking
    TOKEN_REFRESH_WARNING_MINUTES: int = Field(
        default=30,
        validation_alias=AliasChoices("TOKEN_REFRESH_WARNING_MINUTES", "token_refresh_warning_minutes"),
    )
    TOKEN_WATCH_ENABLED: bool = Field(
        default=True,
        validation_alias=AliasChoices("TOKEN_WATCH_ENABLED", "token_watch_enabled"),
    )
    AUTH_STATUS_CHECK_INTERVAL_SECONDS: int = Field(
        default=300,
        validation_alias=AliasChoices("AUTH_STATUS_CHECK_INTERVAL_SECONDS", "auth_status_check_interval_seconds"),
    )

    # Document numbering: "server" (backend assigns) or "client_hint"
    DOCUMENT_NUMBER_AUTHORITY: str = Field(
        default="server",
        validation_alias=AliasChoices("DOCUMENT_NUMBER_AUTHORITY", "document_number_authority"),
    )
    INVOICE_NUMBER_PREFIX: str = Field(
        default="INV-",
        validation_alias=AliasChoices("INVOICE_NUMBER_PREFIX", "invoice_number_prefix"),
    )


settings = Settings()
