from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

DEFAULT_LLMLITE_URL = "https://proxy-ai-anes-uabmc-awefchfueccrddhf.eastus2-01.azurewebsites.net/"


class Settings(BaseSettings):
    PROJECT_NAME: str = "PromptSim"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Session Config
    SESSION_SECRET: str | None = None
    SESSION_TTL_SECONDS: int = 60 * 60 * 12
    SESSION_COOKIE_NAME: str = "psim_session"

    # Shared login password
    AUTH_PASSWORD: str | None = None

    # Audit
    AUDIT_LOG_DIR: str = "logs"

    # Upstream chat proxy
    LLMLITE_URL: str = DEFAULT_LLMLITE_URL
    LLMLITE_API_KEY: str | None = Field(
        default=None, validation_alias=AliasChoices("LLMLITE_API_KEY", "LLMLITE_KEY")
    )
    LLMLITE_MODEL: str = Field(
        default="gpt-4o-mini", validation_alias=AliasChoices("LLMLITE_MODEL", "OPENAI_MODEL")
    )
    UPSTREAM_TIMEOUT_SECONDS: float = 60.0
    UPSTREAM_MAX_TOKENS: int = 1000

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


def validate_settings(settings: Settings) -> Settings:
    """
    Fail fast on missing secrets. Called once at startup.
    """
    if not settings.SESSION_SECRET:
        raise ConfigurationError("SESSION_SECRET is not set")
    if not settings.AUTH_PASSWORD:
        raise ConfigurationError("AUTH_PASSWORD is not set")
    return settings


@lru_cache
def get_settings() -> Settings:
    return Settings()
