"""browserbridge - MCP over HTTP to browser-extension native messaging bridge."""

__version__ = "0.1.0"
__logo__ = "🌉"
