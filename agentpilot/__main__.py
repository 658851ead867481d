"""
Entry point for running agentpilot as a module: python -m agentpilot
"""

from agentpilot.cli.commands import app

if __name__ == "__main__":
    app()
