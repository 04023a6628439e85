from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

import discord

from gptbot.llm.errors import OpenRouterError, format_user_friendly_error, parse_error_message


COMMAND_FAILED_MESSAGE = "指令執行時發生錯誤，已通知管理員。"
EMBED_COLOR_ERROR = discord.Color.red()


def get_admin_ids(config: dict[str, Any]) -> list[int]:
    return list(config.get("permissions", {}).get("users", {}).get("admin_ids", []) or [])


def format_admin_notification(error: BaseException, context: str) -> str:
    lines = [
        "🤖 **Bot Error Notification**",
        f"⏰ Time: {datetime.now():%Y-%m-%d %H:%M:%S}",
        f"📝 Context: {context}",
        "",
        f"Error: {parse_error_message(error)}",
    ]
    if isinstance(error, OpenRouterError) and error.is_retryable:
        lines.append("🔁 Retryable; retries were exhausted.")
    return "\n".join(lines)


def build_error_embed(error: BaseException) -> discord.Embed:
    """
    Embed shown to the user when a command fails.
    """
    return discord.Embed(
        title="❌ OpenRouter API Failed",
        description=format_user_friendly_error(error),
        color=EMBED_COLOR_ERROR,
    )


async def _dm_admin(discord_bot: discord.Client, admin_id: int, msg: str) -> None:
    user = discord_bot.get_user(admin_id) or await discord_bot.fetch_user(admin_id)
    await user.send(msg)


async def notify_admin_error(
    discord_bot: discord.Client,
    config: dict[str, Any],
    error: BaseException,
    context: str = "",
) -> None:
    """
    DM every configured admin; delivery problems are logged, never raised.
    """
    admin_ids = get_admin_ids(config)
    if not admin_ids:
        return

    msg = format_admin_notification(error, context)
    for admin_id in admin_ids:
        try:
            await _dm_admin(discord_bot, admin_id, msg)
        except discord.DiscordException as e:
            logging.warning("Could not notify admin %s: %s", admin_id, e)


async def _reply(interaction: discord.Interaction, embed: discord.Embed) -> None:
    if interaction.response.is_done():
        send = interaction.followup.send
    else:
        send = interaction.response.send_message
    await send(COMMAND_FAILED_MESSAGE, embed=embed, ephemeral=True)


async def handle_app_command_error(
    interaction: discord.Interaction,
    error: Exception,
    discord_bot: discord.Client,
    config: dict[str, Any],
) -> None:
    """
    Tree-wide handler for slash command errors.

    Unwraps CommandInvokeError, tells the admins, and answers the user with
    the error's user-facing message.
    """
    original = getattr(error, "original", error)
    command = getattr(interaction.command, "name", "unknown")
    logging.error("/%s failed: %s", command, parse_error_message(original), exc_info=original)

    await notify_admin_error(discord_bot, config, original, f"App command error: {command}")
    try:
        await _reply(interaction, build_error_embed(original))
    except discord.DiscordException as e:
        logging.warning("Could not report command error to user: %s", e)
