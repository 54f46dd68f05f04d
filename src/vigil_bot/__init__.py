"""Session-and-delivery layer between a Telegram bot and a conversational backend."""

__version__ = "0.1.0"
