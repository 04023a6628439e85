from __future__ import annotations

import logging
from typing import Any

from gptbot.llm.logger import LoggerConfig
from gptbot.llm.openrouter_client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, ClientConfig
from gptbot.llm.retry import DEFAULT_RETRY_POLICY, RetryPolicy

from .validator import LOG_LEVELS


DEFAULT_CHAT_MODEL = "openai/gpt-4o-mini"
DEFAULT_IMAGE_MODEL = "openai/dall-e-3"


def _section(config: dict[str, Any], *keys: str) -> dict[str, Any]:
    node: Any = config
    for key in keys:
        node = node.get(key) if isinstance(node, dict) else None
    return node if isinstance(node, dict) else {}


def build_retry_policy(config: dict[str, Any]) -> RetryPolicy:
    retry = _section(config, "openrouter", "retry")
    return RetryPolicy(
        max_retries=int(retry.get("max_retries", DEFAULT_RETRY_POLICY.max_retries)),
        base_delay=float(retry.get("base_delay", DEFAULT_RETRY_POLICY.base_delay)),
        max_delay=float(retry.get("max_delay", DEFAULT_RETRY_POLICY.max_delay)),
        backoff_factor=float(retry.get("backoff_factor", DEFAULT_RETRY_POLICY.backoff_factor)),
        jitter_enabled=bool(retry.get("jitter", DEFAULT_RETRY_POLICY.jitter_enabled)),
    )


def build_logger_config(config: dict[str, Any]) -> LoggerConfig:
    log_cfg = _section(config, "openrouter", "logging")
    level_name = str(log_cfg.get("level", "INFO")).upper()
    return LoggerConfig(
        level=getattr(logging, level_name) if level_name in LOG_LEVELS else logging.INFO,
        enable_metrics=bool(log_cfg.get("metrics", True)),
        enable_request_log=bool(log_cfg.get("requests", True)),
        enable_response_log=bool(log_cfg.get("responses", True)),
    )


def build_client_config(config: dict[str, Any]) -> ClientConfig:
    """
    Turn the validated config mapping into a ClientConfig for OpenRouterClient.
    """
    orc = _section(config, "openrouter")
    return ClientConfig(
        api_key=orc.get("api_key", ""),
        base_url=orc.get("base_url") or DEFAULT_BASE_URL,
        site_url=orc.get("site_url") or None,
        site_name=orc.get("site_name") or None,
        timeout=float(orc.get("timeout", DEFAULT_TIMEOUT_SECONDS)),
        retry_policy=build_retry_policy(config),
        logger_config=build_logger_config(config),
    )


def get_chat_models(config: dict[str, Any]) -> list[str]:
    """
    Chat model ids offered by /chat, default first.

    models.chat may be a single id or a list of ids.
    """
    chat = _section(config, "models").get("chat")
    if isinstance(chat, str):
        chat = [chat]
    models = [m for m in chat or [] if isinstance(m, str) and m]
    return list(dict.fromkeys(models)) or [DEFAULT_CHAT_MODEL]


def get_models(config: dict[str, Any]) -> tuple[str, str]:
    """Return (default chat_model, image_model)."""
    image = _section(config, "models").get("image")
    return get_chat_models(config)[0], image or DEFAULT_IMAGE_MODEL
