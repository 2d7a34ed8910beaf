"""AI agent toolbox: an MCP server for desktop automation and observation."""

__version__ = "1.0.0"
