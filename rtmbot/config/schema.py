"""Configuration schema using Pydantic."""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReconnectConfig(BaseModel):
    """Opt-in reconnect policy for transport failures. Off means failures are fatal."""
    enabled: bool = False
    initial_delay_s: float = Field(default=1.0, gt=0)
    max_delay_s: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=0, ge=0)  # 0 = unlimited

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before reconnect attempt ``attempt`` (1-based)."""
        return min(self.max_delay_s, self.initial_delay_s * (2 ** max(0, attempt - 1)))


class BotConfig(BaseSettings):
    """Root configuration for a bot session."""

    model_config = SettingsConfigDict(env_prefix="RTMBOT_", env_nested_delimiter="__")

    name: str = "rtmbot"
    token: str = ""
    api_base: str = "https://slack.com/api"
    http_timeout_s: float = Field(default=20.0, gt=0)
    delivery: Literal["rtm", "web"] = "web"  # default mode for say()
    fallback_reply: str = "uhhhmmm..."
    mention_prefix: str = "<@"
    mention_suffix: str = ">"
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)

    def mention_token(self, self_id: str) -> str:
        """Leading token that marks a message as addressed to ``self_id``."""
        return f"{self.mention_prefix}{self_id}{self.mention_suffix}"
