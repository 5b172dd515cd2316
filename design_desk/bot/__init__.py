"""
Chat platform adapter for Design Desk.

Connects the request workflow to Discord.
"""

from .client import DesignDeskBot, create_bot

__all__ = ["DesignDeskBot", "create_bot"]
