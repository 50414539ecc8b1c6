"""Configuration management for chatflux."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging_utils import LogProfile, configure_logging


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHATFLUX_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Bot Configuration
    debug: bool = Field(default=False, description="Trace rule matching and transitions")
    command_prefix: str = Field(default="", description="Prefix required in front of command names")

    # Control Server Configuration
    control_host: str = Field(default="127.0.0.1", description="Control server bind address")
    control_port: int = Field(default=8075, description="Control server port")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_profile: LogProfile = Field(default="default", description="Log profile (default, chat)")


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Explicit values taking precedence over the environment

    Returns:
        Settings instance
    """
    settings = Settings(**overrides)  # type: ignore[arg-type]

    level = "DEBUG" if settings.debug else settings.log_level
    configure_logging(profile=settings.log_profile, level=level)

    return settings
