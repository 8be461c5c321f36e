"""
Application settings

All environment-driven configuration lives here, managed by pydantic-settings.
Values are read from the process environment first and then from the ``.env``
file one directory above the backend root.

Key ideas:
- BaseSettings: reads and validates environment variables
- computed_field: values derived from other fields (DB DSN, CORS list)
- model_validator: refuses placeholder secrets outside local development
"""
import secrets
import warnings
from typing import Annotated, Any, Literal

from pydantic import (
    AnyUrl,
    BeforeValidator,
    HttpUrl,
    PostgresDsn,
    computed_field,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


def parse_cors(v: Any) -> list[str] | str:
    """
    Parse the CORS origins setting

    Accepts either a comma separated string
    ("http://localhost:3000,http://localhost:3001") or a JSON style list.

    Args:
        v: raw value from the environment

    Returns:
        A list of origins, or the raw string when it is already a JSON list

    Raises:
        ValueError: when the value is neither a string nor a list
    """
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    """
    Application configuration

    Priority of sources:
    1. environment variables
    2. the .env file
    3. defaults declared below
    """
    model_config = SettingsConfigDict(
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = secrets.token_urlsafe(32)  # JWT signing key
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        """
        CORS origins without trailing slashes

        Returns:
            Normalised origin strings
        """
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    PROJECT_NAME: str = "Companion Studio"
    SENTRY_DSN: HttpUrl | None = None

    # Public URL of the web app, used for webhooks and checkout redirects
    APP_URL: str = "http://localhost:3000"

    # Snowflake
    SNOWFLAKE_NODE_ID: int = 0

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    # Accounts
    ADMIN_EMAIL: str | None = None  # registering with this email grants ADMIN
    BOT_API_TOKEN: str | None = None  # bearer token for bot status endpoints

    # SMTP (verification / reset / OTP emails)
    SMTP_TLS: bool = True
    SMTP_SSL: bool = False
    SMTP_PORT: int = 587
    SMTP_HOST: str | None = None
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    EMAILS_FROM_EMAIL: str | None = None
    EMAILS_FROM_NAME: str | None = None

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None

    # Bunny CDN storage
    CDN_MOCK: bool = True
    BUNNY_API_KEY: str | None = None
    BUNNY_STORAGE_ZONE: str = "storage-companion"
    BUNNY_STORAGE_HOST: str = "storage.bunnycdn.com"
    BUNNY_CDN_URL: str = "https://companion.b-cdn.net"

    # Text-to-image provider (async jobs with webhook callback)
    IMAGE_PROVIDER_MOCK: bool = True
    IMAGE_PROVIDER_URL: str = "https://modelslab.com/api/v6"
    IMAGE_PROVIDER_API_KEY: str | None = None

    # Self-hosted GPU API (portraits, upscale, image-to-video, talking avatar, video jobs)
    GPU_MOCK: bool = True
    GPU_API_URL: str = "http://localhost:7860"
    GPU_API_KEY: str | None = None

    # LLM (OpenAI compatible chat completions)
    LLM_MOCK: bool = True
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"
    LLM_HEALTH_URL: str | None = None

    # ElevenLabs TTS
    TTS_MOCK: bool = True
    ELEVENLABS_API_KEY: str | None = None
    ELEVENLABS_BASE_URL: str = "https://api.elevenlabs.io/v1"
    ELEVENLABS_DEFAULT_VOICE_ID: str = "21m00Tcm4TlvDq8ikWAM"
    ELEVENLABS_MODEL_ID: str = "eleven_monolingual_v1"

    # Stripe
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_CURRENCY: str = "usd"

    # PayPal
    PAYPAL_MOCK: bool = True
    PAYPAL_BASE_URL: str = "https://api-m.sandbox.paypal.com"
    PAYPAL_CLIENT_ID: str | None = None
    PAYPAL_CLIENT_SECRET: str | None = None
    PAYPAL_WEBHOOK_ID: str | None = None
    PAYPAL_CURRENCY: str = "USD"

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        """
        Reject placeholder secrets

        A value of "changethis" only warns in local development and raises
        everywhere else.

        Args:
            var_name: setting name
            value: setting value

        Raises:
            ValueError: outside local development
        """
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        self._check_default_secret("SECRET_KEY", self.SECRET_KEY)
        self._check_default_secret("POSTGRES_PASSWORD", self.POSTGRES_PASSWORD)
        self._check_default_secret("BOT_API_TOKEN", self.BOT_API_TOKEN)

        return self


settings = Settings()  # type: ignore
