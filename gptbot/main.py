"""
Entrypoint: `python -m gptbot.main` (or the `gptbot` console script).

Loads config.yaml, builds the OpenRouter client, checks connectivity and
starts the Discord bot with the /chat and /image commands.
"""

import asyncio
import logging
import os
from typing import Any

import discord
from discord.ext import commands

from gptbot.config.loader import get_config
from gptbot.config.settings import build_client_config, get_models
from gptbot.discord.commands import register_commands
from gptbot.discord.errors import handle_app_command_error
from gptbot.llm.errors import LLMError, parse_error_message
from gptbot.llm.openrouter_client import OpenRouterClient


def setup_logging() -> None:
    if os.environ.get("DEBUG"):
        logging.basicConfig(level=logging.DEBUG)
        logging.getLogger("httpx").setLevel(logging.DEBUG)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")


def create_bot(config: dict[str, Any], client: OpenRouterClient) -> commands.Bot:
    intents = discord.Intents.default()
    activity = discord.CustomActivity(name=(config.get("status_message") or "/chat · /image")[:128])
    discord_bot = commands.Bot(intents=intents, activity=activity, command_prefix=None)

    register_commands(discord_bot, client, config)

    @discord_bot.tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: Exception) -> None:
        await handle_app_command_error(interaction, error, discord_bot, config)

    @discord_bot.event
    async def on_ready() -> None:
        await discord_bot.tree.sync()
        logging.info("Synced %d slash commands", len(discord_bot.tree.get_commands()))

    return discord_bot


async def check_connection(client: OpenRouterClient) -> bool:
    logging.info("Testing OpenRouter API connection...")
    try:
        await client.ping()
    except LLMError as e:
        logging.warning("OpenRouter API connection test failed: %s", parse_error_message(e))
        logging.warning("Continuing with initialization, but API calls may fail")
        return False
    return True


async def run_bot(config: dict[str, Any] | None = None) -> None:
    config = config or get_config()
    client_config = build_client_config(config)
    chat_model, image_model = get_models(config)
    logging.info(
        "🚀 Bot starting | base_url: %s | chat: %s | image: %s",
        client_config.base_url, chat_model, image_model,
    )

    async with OpenRouterClient(client_config) as client:
        await check_connection(client)
        discord_bot = create_bot(config, client)
        async with discord_bot:
            await discord_bot.start(config["bot_token"])


def main() -> None:
    setup_logging()
    try:
        asyncio.run(run_bot())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
