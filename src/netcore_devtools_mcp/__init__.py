""".NET solution explorer and build/debug coordination over MCP."""

__version__ = "0.1.0"
