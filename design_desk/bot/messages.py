"""
Chat message builders.

Everything the bot posts is built here so handlers only decide *when*
to post.
"""

from datetime import datetime
from typing import Optional

import discord

from design_desk.core.requests import DesignRequest

SUMMARY_TITLE = "🎨 New Design Request"
SUMMARY_COLOUR = discord.Colour(0xA855F7)
REQUEST_FIELD = "Request"
UNKNOWN_REQUEST = "Unknown Request"

# Platform limits
THREAD_NAME_LIMIT = 100
FIELD_VALUE_LIMIT = 1024

CONFIG_PROBLEM_REPLY = "Design requests are unavailable right now. An admin has been notified in the logs."


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 1] + "…"


def build_summary_embed(request: DesignRequest, timestamp: Optional[datetime] = None) -> discord.Embed:
    """Summary posted in the parent channel for a new request."""
    embed = discord.Embed(
        title=SUMMARY_TITLE,
        colour=SUMMARY_COLOUR,
        timestamp=timestamp or discord.utils.utcnow(),
    )
    embed.add_field(name=REQUEST_FIELD, value=_truncate(request.text, FIELD_VALUE_LIMIT), inline=False)
    embed.add_field(name="Client", value=request.client.name, inline=True)
    embed.add_field(name="Requested By", value=f"<@{request.requester_id}>", inline=True)
    embed.add_field(name="Remaining", value=request.remaining_display, inline=True)
    return embed


def thread_name(request: DesignRequest) -> str:
    return _truncate(f"{request.client.name} – {request.text}", THREAD_NAME_LIMIT)


def welcome_text(request: DesignRequest, admin_user_id: Optional[int] = None) -> str:
    """First message inside the discussion thread."""
    lines = []
    if admin_user_id is not None:
        lines.append(f"<@{admin_user_id}> New request submitted.\n")
    lines.extend([
        f"**Got it!** Your request has been logged under **{request.client.name}**.",
        f"You have **{request.remaining_display}** designs remaining until your current period ends.",
        "",
        "**Instructions:**",
        "• Post any specific details you'd like included in this design.",
        "• Attach any pictures or assets you want used.",
        "",
        "You'll be notified here when your design is complete.",
    ])
    return "\n".join(lines)


def extract_request_text(message: discord.Message) -> str:
    """Read the request text back out of a summary message."""
    if not message.embeds:
        return UNKNOWN_REQUEST
    for embed_field in message.embeds[0].fields:
        if embed_field.name == REQUEST_FIELD and embed_field.value:
            return embed_field.value
    return UNKNOWN_REQUEST


def format_time_of_day(moment: datetime) -> str:
    """12-hour clock without a leading zero, e.g. "3:05 PM"."""
    return f"{moment.hour % 12 or 12}:{moment.minute:02d} {'AM' if moment.hour < 12 else 'PM'}"


def completion_line(request_text: str, approver_id: int, moment: datetime, emoji: str = "✅") -> str:
    return f"{emoji} **{request_text}** marked complete by <@{approver_id}> at **{format_time_of_day(moment)}**."
