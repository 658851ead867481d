"""CLI module for agentpilot."""
