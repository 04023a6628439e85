"""
Validation for config.yaml.

Every section gets its own checker that appends to a shared error list, so a
bad config reports all of its problems at once instead of the first one.
"""

from __future__ import annotations

import logging
from typing import Any


logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
API_KEY_ENV_VAR = "OPENROUTER_API_KEY"
MODEL_KINDS = ("chat", "image")
MAX_CHAT_MODELS = 25  # Discord's limit on choices per option
RULE = "=" * 70


class ConfigValidationError(Exception):
    """Raised when config validation fails."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_name(value: Any) -> str:
    return type(value).__name__


def _validate_retry(retry: Any, errors: list[str]) -> None:
    if not isinstance(retry, dict):
        errors.append(f"'openrouter.retry' must be a mapping, got {_type_name(retry)}")
        return

    if "max_retries" in retry:
        value = retry["max_retries"]
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            errors.append(f"'openrouter.retry.max_retries' must be a non-negative integer, got {value!r}")

    for key in ("base_delay", "max_delay"):
        if key in retry:
            value = retry[key]
            if not _is_number(value) or value <= 0:
                errors.append(f"'openrouter.retry.{key}' must be a positive number of seconds, got {value!r}")

    if _is_number(retry.get("base_delay")) and _is_number(retry.get("max_delay")):
        if retry["base_delay"] > retry["max_delay"]:
            errors.append("'openrouter.retry.base_delay' must not exceed 'openrouter.retry.max_delay'")

    if "backoff_factor" in retry:
        value = retry["backoff_factor"]
        if not _is_number(value) or value < 1:
            errors.append(f"'openrouter.retry.backoff_factor' must be a number >= 1, got {value!r}")

    if "jitter" in retry and not isinstance(retry["jitter"], bool):
        errors.append(f"'openrouter.retry.jitter' must be boolean, got {_type_name(retry['jitter'])}")


def _validate_logging(log_cfg: Any, errors: list[str]) -> None:
    if not isinstance(log_cfg, dict):
        errors.append(f"'openrouter.logging' must be a mapping, got {_type_name(log_cfg)}")
        return

    if "level" in log_cfg:
        level = log_cfg["level"]
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            errors.append(
                f"'openrouter.logging.level' must be one of {', '.join(LOG_LEVELS)}, got {level!r}"
            )

    for flag in ("metrics", "requests", "responses"):
        if flag in log_cfg and not isinstance(log_cfg[flag], bool):
            errors.append(f"'openrouter.logging.{flag}' must be boolean, got {_type_name(log_cfg[flag])}")


def _validate_openrouter(orc: Any, errors: list[str], warnings: list[str]) -> None:
    if not isinstance(orc, dict):
        errors.append(f"'openrouter' must be a mapping, got {_type_name(orc)}")
        return

    api_key = orc.get("api_key")
    if not isinstance(api_key, str) or not api_key:
        errors.append(f"'openrouter.api_key' is required (or set the {API_KEY_ENV_VAR} environment variable)")
    elif not api_key.startswith("sk-or-"):
        warnings.append("'openrouter.api_key' does not look like an OpenRouter key (expected 'sk-or-...')")

    for key in ("base_url", "site_url", "site_name"):
        if key in orc and not isinstance(orc[key], str):
            errors.append(f"'openrouter.{key}' must be a string, got {_type_name(orc[key])}")

    base_url = orc.get("base_url")
    if isinstance(base_url, str) and not base_url.startswith(("http://", "https://")):
        errors.append(f"'openrouter.base_url' must start with http:// or https://, got {base_url!r}")

    if "timeout" in orc and (not _is_number(orc["timeout"]) or orc["timeout"] <= 0):
        errors.append(f"'openrouter.timeout' must be a positive number of seconds, got {orc['timeout']!r}")

    if "retry" in orc:
        _validate_retry(orc["retry"], errors)
    if "logging" in orc:
        _validate_logging(orc["logging"], errors)


def _validate_models(models: Any, errors: list[str], warnings: list[str]) -> None:
    if not isinstance(models, dict):
        errors.append(f"'models' must be a mapping, got {_type_name(models)}")
        return

    for kind, model_id in models.items():
        if kind not in MODEL_KINDS:
            warnings.append(f"Unknown model kind 'models.{kind}' (expected 'chat' or 'image')")
        elif kind == "chat" and isinstance(model_id, list):
            if not model_id or not all(isinstance(m, str) and m for m in model_id):
                errors.append("'models.chat' must be a non-empty list of model id strings")
            elif len(model_id) > MAX_CHAT_MODELS:
                errors.append(f"'models.chat' lists {len(model_id)} models; Discord allows at most {MAX_CHAT_MODELS}")
        elif not isinstance(model_id, str) or not model_id:
            errors.append(f"'models.{kind}' must be a non-empty model id string")


def _validate_permissions(perms: Any, errors: list[str]) -> None:
    if not isinstance(perms, dict):
        errors.append(f"'permissions' must be a mapping, got {_type_name(perms)}")
        return

    users = perms.get("users", {})
    if not isinstance(users, dict):
        errors.append(f"'permissions.users' must be a mapping, got {_type_name(users)}")
    elif "admin_ids" in users and not isinstance(users["admin_ids"], list):
        errors.append(f"'permissions.users.admin_ids' must be a list, got {_type_name(users['admin_ids'])}")


def _report(errors: list[str], config_path: str) -> None:
    logger.error(RULE)
    logger.error("CONFIG VALIDATION FAILED (%s)", config_path)
    logger.error(RULE)
    for i, error in enumerate(errors, 1):
        logger.error("[%d] %s", i, error)
    logger.error(RULE)
    logger.error("Please fix the errors above and restart the bot.")
    logger.error(RULE)


def validate_config(cfg: dict[str, Any], config_path: str = "config.yaml") -> None:
    """
    Check config.yaml after environment overrides have been applied.

    Warnings are logged and do not fail validation.

    Raises:
        ConfigValidationError: if any error was found (all of them are logged first)
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(cfg, dict):
        errors.append(f"Config root must be a mapping, got {_type_name(cfg)}")
        cfg = {}

    for key in ("bot_token", "openrouter"):
        if key not in cfg:
            errors.append(f"Missing required top-level key: '{key}'")

    if "bot_token" in cfg and (not isinstance(cfg["bot_token"], str) or not cfg["bot_token"]):
        errors.append("'bot_token' must be a non-empty string")

    if "openrouter" in cfg:
        _validate_openrouter(cfg["openrouter"], errors, warnings)

    if "models" in cfg:
        _validate_models(cfg["models"], errors, warnings)
    else:
        warnings.append("No 'models' section; built-in default models will be used")

    if "permissions" in cfg:
        _validate_permissions(cfg["permissions"], errors)

    if "system_prompt" in cfg and not isinstance(cfg["system_prompt"], str):
        errors.append(f"'system_prompt' must be a string, got {_type_name(cfg['system_prompt'])}")

    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    if errors:
        _report(errors, config_path)
        raise ConfigValidationError(f"Config validation failed with {len(errors)} error(s)")
