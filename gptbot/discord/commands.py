"""
/chat and /image slash commands.

The handlers only translate between Discord and the OpenRouter client; every
call goes through client.with_retry(), and failures are left to the tree's
error handler (gptbot.discord.errors.handle_app_command_error). Option
combinations a model cannot serve are rejected here, before any request.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import discord
from discord import app_commands
from discord.app_commands import Choice
from discord.ext import commands

from gptbot.config.settings import get_chat_models, get_models
from gptbot.llm.errors import LLMValidationError
from gptbot.llm.models import (
    ChatCompletionMessage,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ImageRequest,
    ImageResponse,
)
from gptbot.llm.openrouter_client import OpenRouterClient
from gptbot.llm.retry import RetryPolicy

EMBED_COLOR_COMPLETE = discord.Color.dark_green()
MAX_EMBED_DESCRIPTION = 4096
MAX_EMBED_TITLE = 256
MAX_CHOICE_NAME = 100
MAX_CHOICES = 25
MAX_TEMPERATURE = 2.0

IMAGE_SIZES = ("256x256", "512x512", "1024x1024", "1024x1792", "1792x1024")
DEFAULT_IMAGE_SIZE = "1024x1024"
IMAGE_QUALITIES = ("standard", "hd")
IMAGE_STYLES = ("vivid", "natural")
MAX_IMAGES = 4


@dataclass(frozen=True)
class ImageModelLimits:
    label: str
    sizes: tuple[str, ...]
    max_images: int
    quality_and_style: bool = False


IMAGE_MODEL_LIMITS = {
    "openai/dall-e-2": ImageModelLimits("DALL-E 2", ("256x256", "512x512", "1024x1024"), 4),
    "openai/dall-e-3": ImageModelLimits("DALL-E 3", ("1024x1024", "1024x1792", "1792x1024"), 1, True),
}


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _size_label(size: str) -> str:
    owners = [limits.label for limits in IMAGE_MODEL_LIMITS.values() if size in limits.sizes]
    if len(owners) == 1:
        return f"{size} ({owners[0]} only)"
    return size


def check_image_options(
    model: str,
    size: str,
    n: int = 1,
    quality: str | None = None,
    style: str | None = None,
) -> None:
    """
    Raise LLMValidationError for options the image model is known to refuse.

    Models without an entry in IMAGE_MODEL_LIMITS are passed through unchecked.
    """
    limits = IMAGE_MODEL_LIMITS.get(model)
    if limits is None:
        return
    if size not in limits.sizes:
        raise LLMValidationError(
            f"invalid request: size {size} is not supported by {model} (use {', '.join(limits.sizes)})"
        )
    if n > limits.max_images:
        raise LLMValidationError(f"invalid request: {model} generates at most {limits.max_images} image(s) at once")
    if (quality or style) and not limits.quality_and_style:
        raise LLMValidationError(f"invalid request: quality and style are not supported by {model}")


def check_chat_options(model: str, allowed_models: list[str], temperature: float | None = None) -> None:
    if model not in allowed_models:
        raise LLMValidationError(f"invalid request: model {model} is not enabled for /chat")
    if temperature is not None and not 0.0 <= temperature <= MAX_TEMPERATURE:
        raise LLMValidationError(f"invalid request: temperature must be between 0 and {MAX_TEMPERATURE}")


async def run_chat(
    client: OpenRouterClient,
    model: str,
    prompt: str,
    system_prompt: str | None = None,
    policy: RetryPolicy | None = None,
    user: str | None = None,
    temperature: float | None = None,
) -> ChatCompletionResponse:
    messages = []
    if system_prompt:
        messages.append(ChatCompletionMessage(role="system", content=system_prompt))
    messages.append(ChatCompletionMessage(role="user", content=prompt))
    request = ChatCompletionRequest(model=model, messages=messages, temperature=temperature, user=user)
    return await client.with_retry(lambda: client.create_chat_completion(request), policy)


async def run_image(
    client: OpenRouterClient,
    model: str,
    prompt: str,
    size: str = DEFAULT_IMAGE_SIZE,
    n: int = 1,
    policy: RetryPolicy | None = None,
    user: str | None = None,
    quality: str | None = None,
    style: str | None = None,
) -> ImageResponse:
    check_image_options(model, size, n, quality, style)
    request = ImageRequest(
        prompt=prompt,
        model=model,
        n=n,
        size=size,
        response_format="url",
        user=user,
        quality=quality,
        style=style,
    )
    return await client.with_retry(lambda: client.create_image(request), policy)


def build_chat_embed(prompt: str, response: ChatCompletionResponse) -> discord.Embed:
    embed = discord.Embed(
        title=_clip(prompt, MAX_EMBED_TITLE),
        description=_clip(response.content or "(No response)", MAX_EMBED_DESCRIPTION),
        color=EMBED_COLOR_COMPLETE,
    )
    usage = response.usage
    footer = f"{response.model or 'unknown model'} · {usage.total_tokens} tokens"
    if usage.total_cost is not None:
        footer += f" · ${usage.total_cost:.4f}"
    embed.set_footer(text=footer)
    return embed


def build_image_embeds(prompt: str, response: ImageResponse, size: str) -> list[discord.Embed]:
    embeds = []
    for image in response.data:
        if not image.url:
            # Inline base64 payloads are not sent; /image asks for URLs.
            continue
        embed = discord.Embed(
            title=_clip(prompt, MAX_EMBED_TITLE),
            description=_clip(image.revised_prompt or "", MAX_EMBED_DESCRIPTION) or None,
            color=EMBED_COLOR_COMPLETE,
            url=image.url,
        )
        embed.set_image(url=image.url)
        embed.set_footer(text=f"Size: {size}")
        embeds.append(embed)
    return embeds


def chat_model_choices(models: list[str], curr_str: str = "") -> list[Choice[str]]:
    """Autocomplete entries for /chat model; the default (first) model is marked."""
    choices = []
    for i, model in enumerate(models):
        if curr_str.lower() not in model.lower():
            continue
        name = f"◉ {model} (default)" if i == 0 else f"○ {model}"
        choices.append(Choice(name=_clip(name, MAX_CHOICE_NAME), value=model))
    return choices[:MAX_CHOICES]


def image_model_choices(default_model: str) -> list[Choice[str]]:
    models = list(dict.fromkeys([default_model, *IMAGE_MODEL_LIMITS]))
    choices = []
    for model in models:
        limits = IMAGE_MODEL_LIMITS.get(model)
        name = limits.label if limits else model
        if model == default_model:
            name += " (Default)"
        choices.append(Choice(name=_clip(name, MAX_CHOICE_NAME), value=model))
    return choices[:MAX_CHOICES]


async def _reject(interaction: discord.Interaction, error: LLMValidationError) -> None:
    reason = str(error).removeprefix("invalid request: ")
    await interaction.response.send_message(f"⚠️ {reason}", ephemeral=True)


def register_commands(
    discord_bot: commands.Bot,
    client: OpenRouterClient,
    config: dict[str, Any],
) -> None:
    chat_models = get_chat_models(config)
    _, image_model = get_models(config)
    system_prompt = config.get("system_prompt") or None

    @discord_bot.tree.command(name="chat", description="Ask an AI model via OpenRouter")
    @app_commands.describe(
        prompt="Your message",
        context="Sets context that guides the assistant's behavior",
        model="AI model to use (provider/model)",
        temperature="Sampling temperature (0.0-2.0); lower is more focused",
    )
    async def chat_command(
        interaction: discord.Interaction,
        prompt: str,
        context: str | None = None,
        model: str | None = None,
        temperature: app_commands.Range[float, 0.0, MAX_TEMPERATURE] = None,
    ) -> None:
        model = model or chat_models[0]
        try:
            check_chat_options(model, chat_models, temperature)
        except LLMValidationError as e:
            await _reject(interaction, e)
            return

        await interaction.response.defer(thinking=True)
        logging.info(
            "/chat (uid:%s, model:%s, temperature:%s, len:%d)",
            interaction.user.id, model, temperature, len(prompt),
        )
        response = await run_chat(
            client, model, prompt, context or system_prompt,
            user=str(interaction.user.id), temperature=temperature,
        )
        await interaction.followup.send(embed=build_chat_embed(prompt, response))

    @chat_command.autocomplete("model")
    async def chat_model_autocomplete(interaction: discord.Interaction, curr_str: str) -> list[Choice[str]]:
        return chat_model_choices(chat_models, curr_str)

    @discord_bot.tree.command(name="image", description="Generate images from a text description")
    @app_commands.describe(
        prompt="What to draw",
        model="Image model",
        size="Image size",
        number="How many images (DALL-E 3: 1)",
        quality="Image quality (DALL-E 3 only)",
        style="Image style (DALL-E 3 only)",
    )
    @app_commands.choices(
        model=image_model_choices(image_model),
        size=[Choice(name=_size_label(s), value=s) for s in IMAGE_SIZES],
        quality=[Choice(name=q, value=q) for q in IMAGE_QUALITIES],
        style=[Choice(name=s, value=s) for s in IMAGE_STYLES],
    )
    async def image_command(
        interaction: discord.Interaction,
        prompt: str,
        model: str | None = None,
        size: str = DEFAULT_IMAGE_SIZE,
        number: app_commands.Range[int, 1, MAX_IMAGES] = 1,
        quality: str | None = None,
        style: str | None = None,
    ) -> None:
        model = model or image_model
        try:
            check_image_options(model, size, number, quality, style)
        except LLMValidationError as e:
            await _reject(interaction, e)
            return

        await interaction.response.defer(thinking=True)
        logging.info("/image (uid:%s, model:%s, size:%s, n:%d)", interaction.user.id, model, size, number)
        response = await run_image(
            client, model, prompt, size, number,
            user=str(interaction.user.id), quality=quality, style=style,
        )
        embeds = build_image_embeds(prompt, response, size)
        if not embeds:
            await interaction.followup.send("⚠️ The model returned no images.")
            return
        await interaction.followup.send(embeds=embeds)
