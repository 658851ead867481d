"""Chat channels module."""

from agentpilot.channels.base import BaseChannel
from agentpilot.channels.manager import ChannelManager

__all__ = ["BaseChannel", "ChannelManager"]
