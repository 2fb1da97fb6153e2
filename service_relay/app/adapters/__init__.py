"""
Adapters package for the relay.

Contains the HTTP client for the upstream Discord webhook. Adapters map
transport failures onto shared errors and never retry.
"""

from .discord_client import DiscordWebhookClient

__all__ = [
    "DiscordWebhookClient",
]
