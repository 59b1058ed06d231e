from __future__ import annotations

import logging

import discord

from llmcord.llm.errors import format_user_friendly_error, parse_error_message


class GatewayError(Exception):
    """Discord login or gateway connection failed; the bot cannot run."""


def gateway_error_from(error: Exception) -> GatewayError:
    """
    Translate discord.py's fatal startup exceptions into a GatewayError.
    """
    if isinstance(error, discord.LoginFailure):
        return GatewayError(f"Discord rejected the bot token: {error}")
    if isinstance(error, discord.PrivilegedIntentsRequired):
        return GatewayError(
            "The message content intent is not enabled for this application "
            "(Developer Portal > Bot > Privileged Gateway Intents)"
        )
    if isinstance(error, discord.GatewayNotFound):
        return GatewayError(f"Could not reach the Discord gateway: {error}")
    return GatewayError(f"Discord connection failed: {parse_error_message(error)}")


async def handle_app_command_error(
    interaction: discord.Interaction,
    error: Exception,
) -> None:
    """
    Standard handler for slash command errors.
    """
    logging.exception("App command error: %s", error)
    original = getattr(error, "original", error)
    notice = format_user_friendly_error(original)
    try:
        if not interaction.response.is_done():
            await interaction.response.send_message(notice, ephemeral=True)
        else:
            await interaction.followup.send(notice, ephemeral=True)
    except discord.HTTPException as e:
        logging.warning("Could not report app command error: %s", e)
