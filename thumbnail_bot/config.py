"""Configuration module using pydantic-settings."""

import logging
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class GenerationServiceConfig(BaseSettings):
    """Thumbnail generation service configuration."""

    base_url: str = Field("http://localhost:8000", description="Generation service base URL")
    generate_path: str = Field("/api/generate", description="Generation endpoint path")
    follow_up_path: str = Field("/api/follow-up", description="Follow-up endpoint path")
    timeout: float = Field(120.0, gt=0, description="Request timeout in seconds")

    model_config = SettingsConfigDict(env_prefix="GENERATION_", case_sensitive=False)

    @property
    def generate_url(self) -> str:
        """Get full generation endpoint URL."""
        return f"{self.base_url.rstrip('/')}{self.generate_path}"

    @property
    def follow_up_url(self) -> str:
        """Get full follow-up endpoint URL."""
        return f"{self.base_url.rstrip('/')}{self.follow_up_path}"


class ConversationConfig(BaseSettings):
    """Conversation limits and pacing."""

    max_file_bytes: int = Field(10 * 1024 * 1024, ge=1, description="Maximum size of an attached image")
    image_content_type_prefix: str = Field("image/", description="Required content-type prefix")
    max_icons: int = Field(5, ge=1, description="Maximum number of icon images")
    description_min_length: int = Field(10, ge=1, description="Minimum final description length")
    description_max_length: int = Field(500, ge=1, description="Maximum final description length")
    follow_up_min_length: int = Field(5, ge=1, description="Minimum follow-up instruction length")
    message_delay: float = Field(0.6, ge=0, description="Pause between bot messages in seconds")

    model_config = SettingsConfigDict(env_prefix="CONVERSATION_", case_sensitive=False)


class TelegramConfig(BaseSettings):
    """Telegram bot configuration."""

    bot_token: str = Field(..., description="Telegram bot token")
    owner_id: int | None = Field(None, description="User ID notified about handler errors")

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", case_sensitive=False)


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Logging level")

    model_config = SettingsConfigDict(env_prefix="LOG_", case_sensitive=False)


class AppConfig(BaseSettings):
    """Main application configuration."""

    generation: GenerationServiceConfig = Field(default_factory=GenerationServiceConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
    telegram: TelegramConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, yaml_path: Path | str) -> "AppConfig":
        """Load configuration from YAML file."""
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        import yaml

        with yaml_path.open("r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        # Nested sections still pick up their env vars (GENERATION_*, TELEGRAM_*, ...)
        sections = {
            "generation": GenerationServiceConfig,
            "conversation": ConversationConfig,
            "telegram": TelegramConfig,
            "logging": LoggingConfig,
        }
        config_data: dict[str, Any] = {}
        for key, section_cls in sections.items():
            value = yaml_data.get(key)
            if isinstance(value, dict):
                config_data[key] = section_cls(**value)

        if "telegram" not in config_data:
            config_data["telegram"] = TelegramConfig()

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables only."""
        return cls(telegram=TelegramConfig())


# Global config instance
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get application configuration (singleton)."""
    global _config
    if _config is None:
        # Try to load from YAML first, then fallback to env-only
        config_path = Path("config.yaml")
        try:
            if config_path.exists():
                _config = AppConfig.from_yaml(config_path)
            else:
                _config = AppConfig.from_env()
        except Exception as e:
            logger.warning(f"Failed to load from YAML, using env only: {e}")
            _config = AppConfig.from_env()
        logger.info("Configuration loaded successfully")
    return _config
