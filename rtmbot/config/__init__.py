"""Configuration module for rtmbot."""

from rtmbot.config.loader import get_config_path, load_config, save_config
from rtmbot.config.schema import BotConfig, ReconnectConfig

__all__ = ["BotConfig", "ReconnectConfig", "get_config_path", "load_config", "save_config"]
