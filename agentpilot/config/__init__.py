"""Configuration module for agentpilot."""

from agentpilot.config.loader import get_config_path, load_config
from agentpilot.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
