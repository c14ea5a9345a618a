import logging
import os

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from app.provider.config import AIConfig

logger = logging.getLogger(__name__)

LOCAL_CONFIG_PATH = "configs/config.local.yml"
PROD_CONFIG_PATH = "configs/config.prod.yml"


def config_file_path() -> str:
    """YAML config file: CONFIG_FILE, else chosen by APP_ENV."""
    explicit = os.getenv("CONFIG_FILE")
    if explicit:
        return explicit
    if os.getenv("APP_ENV", "").lower() in ("prod", "production"):
        return PROD_CONFIG_PATH
    return LOCAL_CONFIG_PATH


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # App
    app_name: str = "ai-scaffold"
    app_version: str = "1.0.0"
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.example.com,https://admin.example.com"

    # Per-client limit on the AI endpoints (slowapi syntax)
    api_rate_limit: str = "60/minute"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    # AI providers and prompt templates
    ai: AIConfig = Field(default_factory=AIConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Priority: init kwargs > env > .env > YAML file
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=config_file_path()),
        )


settings = Settings()


def get_settings() -> Settings:
    """Current settings tree (replaced wholesale by reload_settings)."""
    return settings


def reload_settings() -> Settings:
    """Re-read env and YAML and swap in the new settings tree.

    Provider clients are rebuilt lazily on their next selection; round-robin
    counters are kept.
    """
    global settings
    settings = Settings()
    logger.info("Settings reloaded from %s", config_file_path())
    return settings


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    from app.provider.exceptions import InvalidRateLimitError
    from app.provider.rate_limiter import parse_limit

    errors: list[str] = []

    for provider_name, provider in settings.ai.providers.items():
        if not provider.enabled:
            continue
        for instance in provider.instances:
            if not instance.enabled:
                continue
            label = f"ai.providers.{provider_name}.{instance.name}"
            if not instance.keys:
                errors.append(f"{label}: at least one API key is required")
            if not instance.models:
                errors.append(f"{label}: at least one model is required")
            if not instance.base_url:
                errors.append(f"{label}: base_url must be set")
            try:
                parse_limit(instance.rate_limit)
            except InvalidRateLimitError as e:
                errors.append(f"{label}: {e}")

    if settings.app_env == "production":
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
