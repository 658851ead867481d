"""
agentpilot - drive real actions on your machine from a chat channel.
"""

__version__ = "0.1.0"
__logo__ = "🛩️"
