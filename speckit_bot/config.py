"""speckit-bot configuration.

Built once at process start and passed explicitly to the app factory; nothing
downstream re-reads the environment per request.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings for the Slack webhook gateway."""

    # Slack app credentials
    slack_signing_secret: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("SPECKIT_SLACK_SIGNING_SECRET", "SLACK_SIGNING_SECRET"),
    )
    slack_bot_token: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("SPECKIT_SLACK_BOT_TOKEN", "SLACK_BOT_TOKEN"),
    )
    slack_api_url: str = "https://slack.com/api"
    bot_name: str = "SpecKitBot"

    # Request authentication
    timestamp_tolerance: int = 300  # seconds; 0 disables the freshness check
    replay_protection: bool = False

    # Dedup store; empty URL disables dedup
    redis_url: str = ""
    dedup_ttl_seconds: int = 300

    # Background agent
    agent_command: str = "node scripts/demo-enhanced-agent.js"
    agent_timeout: int = 600

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "SPECKIT_",
        "env_file": ".env",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def signing_secret(self) -> str:
        return self.slack_signing_secret.get_secret_value()

    @property
    def bot_token(self) -> str:
        return self.slack_bot_token.get_secret_value()

    @property
    def is_configured(self) -> bool:
        return bool(self.signing_secret)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
