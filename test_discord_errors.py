import unittest
from unittest import mock
from unittest.mock import AsyncMock, MagicMock

import discord

from gptbot.discord.errors import (
    COMMAND_FAILED_MESSAGE,
    build_error_embed,
    get_admin_ids,
    handle_app_command_error,
    notify_admin_error,
)
from gptbot.llm.errors import LLMValidationError, parse_error


CONFIG = {"permissions": {"users": {"admin_ids": [111, 222]}}}


def rate_limited():
    return parse_error(429, {"Retry-After": "60"}, b'{"error": {"code": "rate_limit", "message": "Rate limit exceeded"}}')


def make_bot(user=None):
    discord_bot = MagicMock()
    discord_bot.get_user.return_value = user
    discord_bot.fetch_user = AsyncMock(return_value=user)
    return discord_bot


def make_user():
    user = MagicMock()
    user.send = AsyncMock()
    return user


def make_interaction(done=False):
    interaction = MagicMock()
    interaction.command.name = "chat"
    interaction.response.is_done.return_value = done
    interaction.response.send_message = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


class TestErrorEmbed(unittest.TestCase):
    def test_uses_user_message(self):
        embed = build_error_embed(rate_limited())
        self.assertEqual(embed.title, "❌ OpenRouter API Failed")
        self.assertEqual(embed.description, "Rate limit exceeded. Please wait a moment before trying again.")
        self.assertEqual(embed.color, discord.Color.red())

    def test_validation_error(self):
        embed = build_error_embed(LLMValidationError("invalid request: model is required"))
        self.assertEqual(embed.description, "Invalid request. Please check your input parameters.")

    def test_unexpected_error(self):
        embed = build_error_embed(RuntimeError("secret internals"))
        self.assertNotIn("secret", embed.description)

    def test_admin_ids(self):
        self.assertEqual(get_admin_ids(CONFIG), [111, 222])
        self.assertEqual(get_admin_ids({}), [])
        self.assertEqual(get_admin_ids({"permissions": {"users": {"admin_ids": None}}}), [])


class TestNotifyAdmin(unittest.IsolatedAsyncioTestCase):
    async def test_sends_to_every_admin(self):
        user = make_user()
        discord_bot = make_bot(user)
        await notify_admin_error(discord_bot, CONFIG, rate_limited(), "App command error: chat")
        self.assertEqual(user.send.await_count, 2)
        msg = user.send.await_args.args[0]
        self.assertIn("Bot Error Notification", msg)
        self.assertIn("App command error: chat", msg)
        self.assertIn("429", msg)

    async def test_fetches_uncached_user(self):
        user = make_user()
        discord_bot = make_bot(None)
        discord_bot.fetch_user = AsyncMock(return_value=user)
        await notify_admin_error(discord_bot, {"permissions": {"users": {"admin_ids": [1]}}}, RuntimeError("x"))
        discord_bot.fetch_user.assert_awaited_once_with(1)
        user.send.assert_awaited_once()

    async def test_no_admins(self):
        discord_bot = make_bot(make_user())
        await notify_admin_error(discord_bot, {}, RuntimeError("x"))
        discord_bot.get_user.assert_not_called()

    async def test_delivery_failure_is_logged(self):
        discord_bot = make_bot(None)
        discord_bot.fetch_user = AsyncMock(side_effect=discord.DiscordException("unknown user"))
        with self.assertLogs(level="WARNING") as logs:
            await notify_admin_error(discord_bot, CONFIG, RuntimeError("x"))
        self.assertEqual(len(logs.output), 2)


class TestHandleAppCommandError(unittest.IsolatedAsyncioTestCase):
    async def test_replies_ephemerally(self):
        interaction = make_interaction(done=False)
        user = make_user()
        with self.assertLogs(level="ERROR"):
            await handle_app_command_error(interaction, rate_limited(), make_bot(user), CONFIG)
        interaction.response.send_message.assert_awaited_once()
        args, kwargs = interaction.response.send_message.await_args
        self.assertEqual(args, (COMMAND_FAILED_MESSAGE,))
        self.assertTrue(kwargs["ephemeral"])
        self.assertIn("Rate limit", kwargs["embed"].description)
        self.assertEqual(user.send.await_count, 2)

    async def test_uses_followup_after_defer(self):
        interaction = make_interaction(done=True)
        with self.assertLogs(level="ERROR"):
            await handle_app_command_error(interaction, rate_limited(), make_bot(make_user()), {})
        interaction.response.send_message.assert_not_awaited()
        interaction.followup.send.assert_awaited_once()

    async def test_unwraps_invoke_error(self):
        original = rate_limited()
        wrapper = Exception("command raised")
        wrapper.original = original
        interaction = make_interaction(done=True)
        with mock.patch("gptbot.discord.errors.notify_admin_error", new_callable=AsyncMock) as notify:
            with self.assertLogs(level="ERROR"):
                await handle_app_command_error(interaction, wrapper, make_bot(), CONFIG)
        self.assertIs(notify.await_args.args[2], original)
        embed = interaction.followup.send.await_args.kwargs["embed"]
        self.assertEqual(embed.description, original.user_message)

    async def test_reply_failure_is_logged(self):
        interaction = make_interaction(done=True)
        interaction.followup.send = AsyncMock(side_effect=discord.DiscordException("gone"))
        with self.assertLogs(level="WARNING") as logs:
            await handle_app_command_error(interaction, RuntimeError("x"), make_bot(), {})
        self.assertTrue(any("Could not report command error" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
