"""
Chat event handlers.

RequestHandler turns a request command into a summary message and a
discussion thread. CompletionHandler closes the thread when the admin
approves the summary.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

import discord

from design_desk.config.loader import BotSettings, Secrets
from design_desk.core.errors import ConfigIntegrityError, UserInputError
from design_desk.core.requests import DesignRequest, RequestService, parse_command
from .messages import (
    CONFIG_PROBLEM_REPLY,
    SUMMARY_TITLE,
    build_summary_embed,
    completion_line,
    extract_request_text,
    thread_name,
    welcome_text,
)

logger = logging.getLogger(__name__)


class RequestHandler:
    """Handles the request command posted in a guild channel."""

    def __init__(self, service: RequestService, settings: BotSettings, secrets: Secrets):
        self.service = service
        self.settings = settings
        self.secrets = secrets

    async def handle_message(self, message: discord.Message) -> Optional[DesignRequest]:
        """Open a design request for a command message.

        Returns:
            The accepted request, or None when the message was ignored or
            rejected
        """
        if message.author.bot or message.guild is None:
            return None

        try:
            text = parse_command(message.content, self.settings.command)
        except UserInputError as e:
            await message.reply(str(e))
            return None
        if text is None:
            return None

        role_ids = [role.id for role in getattr(message.author, "roles", [])]
        try:
            # File access happens off the event loop; the repository serializes writers
            request = await asyncio.to_thread(
                self.service.open_request, message.author.id, role_ids, text
            )
        except UserInputError as e:
            await message.reply(str(e))
            return None
        except ConfigIntegrityError as e:
            logger.error("Cannot open request from %s: %s", message.author.id, e)
            await message.reply(CONFIG_PROBLEM_REPLY)
            return None

        try:
            await self._publish(message, request)
        except discord.HTTPException:
            # Quota is already committed; there is no compensating action
            logger.exception(
                "Failed to publish request %r for %s after charging quota",
                request.text, request.client.name,
            )
        return request

    async def _publish(self, message: discord.Message, request: DesignRequest) -> None:
        workflow = self.settings.workflow

        summary = await message.channel.send(embed=build_summary_embed(request))
        await summary.add_reaction(workflow.approval_emoji)

        thread = await summary.create_thread(
            name=thread_name(request),
            auto_archive_duration=workflow.thread_auto_archive_minutes,
        )
        if workflow.add_requester_to_thread:
            await thread.add_user(message.author)

        admin_id = self.secrets.admin_user_id if workflow.mention_admin_in_thread else None
        await thread.send(welcome_text(request, admin_id))


class CompletionHandler:
    """Closes a request when the admin adds the approval reaction."""

    def __init__(
        self,
        client: discord.Client,
        settings: BotSettings,
        secrets: Secrets,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.client = client
        self.settings = settings
        self.secrets = secrets
        self.clock = clock

    def _is_approval(self, payload: discord.RawReactionActionEvent) -> bool:
        own = self.client.user
        if own is not None and payload.user_id == own.id:
            return False
        if payload.member is not None and payload.member.bot:
            return False
        if payload.emoji.name != self.settings.workflow.approval_emoji:
            return False
        return payload.user_id == self.secrets.admin_user_id

    def _is_summary(self, message: discord.Message) -> bool:
        """Only summaries posted by this bot own a request thread."""
        own = self.client.user
        if own is None or message.author.id != own.id:
            return False
        return bool(message.embeds) and message.embeds[0].title == SUMMARY_TITLE

    async def handle_reaction(self, payload: discord.RawReactionActionEvent) -> bool:
        """Log completion and delete the request thread.

        Returns:
            True if the thread was deleted
        """
        if not self._is_approval(payload):
            return False

        try:
            channel = self.client.get_channel(payload.channel_id)
            if channel is None:
                channel = await self.client.fetch_channel(payload.channel_id)
            message = await channel.fetch_message(payload.message_id)
        except discord.HTTPException as e:
            logger.debug("Ignoring reaction on unavailable message %s: %s", payload.message_id, e)
            return False

        if not self._is_summary(message):
            return False

        thread = message.thread
        if thread is None and message.guild is not None:
            thread = message.guild.get_thread(message.id)
        if thread is None:
            return False

        request_text = extract_request_text(message)
        await self._log_completion(request_text, payload.user_id)

        try:
            await thread.delete()
        except discord.HTTPException as e:
            logger.error("Could not delete thread %s: %s", thread.id, e)
            return False

        logger.info("Request %r completed by %s", request_text, payload.user_id)
        return True

    async def _log_completion(self, request_text: str, approver_id: int) -> None:
        channel = self.client.get_channel(self.secrets.completed_channel_id)
        if channel is None:
            logger.warning(
                "Completed channel %s is not visible; completion of %r not logged",
                self.secrets.completed_channel_id, request_text,
            )
            return

        line = completion_line(
            request_text, approver_id, self.clock(), self.settings.workflow.approval_emoji
        )
        try:
            await channel.send(line)
        except discord.HTTPException as e:
            logger.error("Could not post completion of %r: %s", request_text, e)
