"""
Chat platform client.

Wires gateway events to the request and completion handlers.
"""

import logging

import discord

from design_desk.config.loader import BotSettings, Secrets
from design_desk.core.requests import RequestService
from design_desk.storage.repository import ClientRepository
from .handlers import CompletionHandler, RequestHandler

logger = logging.getLogger(__name__)


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.guild_messages = True
    intents.message_content = True  # privileged: enable in the developer portal
    intents.members = True
    intents.guild_reactions = True
    return intents


class DesignDeskBot(discord.Client):
    """Client that only listens for the request command and approval reactions."""

    def __init__(self, settings: BotSettings, secrets: Secrets, repository: ClientRepository):
        super().__init__(intents=build_intents())
        self.settings = settings
        self.secrets = secrets
        service = RequestService(
            repository,
            settings.quota,
            on_multiple=settings.workflow.on_multiple_clients,
        )
        self.requests = RequestHandler(service, settings, secrets)
        self.completions = CompletionHandler(self, settings, secrets)

    async def on_ready(self) -> None:
        logger.info("Logged in as %s", self.user)

    async def on_message(self, message: discord.Message) -> None:
        await self.requests.handle_message(message)

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self.completions.handle_reaction(payload)


def create_bot(settings: BotSettings, secrets: Secrets, repository: ClientRepository) -> DesignDeskBot:
    return DesignDeskBot(settings, secrets, repository)
