from __future__ import annotations

import logging
import os
from pathlib import Path
import sys
from typing import Any, NoReturn

from dotenv import load_dotenv
import yaml

from .validator import API_KEY_ENV_VAR, validate_config, ConfigValidationError


DEFAULT_CONFIG_FILE = "config.yaml"
CONFIG_ENV_VAR = "CONFIG_PATH"
BOT_TOKEN_ENV_VAR = "DISCORD_BOT_TOKEN"


def get_config_path() -> str:
    """
    CONFIG_PATH when set, else ./config.yaml.
    """
    return os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILE


def _fail(msg: str, *args: Any) -> NoReturn:
    logging.error(msg, *args)
    sys.exit(1)


def _load_raw_config(path: str) -> dict[str, Any]:
    cfg_file = Path(path)
    if not cfg_file.is_file():
        _fail("Config file not found: %s", cfg_file)

    try:
        data = yaml.safe_load(cfg_file.read_text(encoding="utf-8"))
    except OSError as e:
        _fail("Could not read %s: %s", cfg_file, e)
    except yaml.YAMLError as e:
        _fail("YAML parsing error in %s: %s", cfg_file, e)

    if data is None:
        return {}
    if not isinstance(data, dict):
        _fail("Config root must be a mapping, got %s", type(data).__name__)
    return data


def apply_env_overrides(cfg: dict[str, Any]) -> dict[str, Any]:
    """
    Let secrets come from the environment (or a .env file) instead of config.yaml.
    """
    api_key = os.environ.get(API_KEY_ENV_VAR)
    if api_key:
        section = cfg.setdefault("openrouter", {})
        if isinstance(section, dict):
            section["api_key"] = api_key

    bot_token = os.environ.get(BOT_TOKEN_ENV_VAR)
    if bot_token:
        cfg["bot_token"] = bot_token
    return cfg


def get_config(path: str | None = None) -> dict[str, Any]:
    """
    Load, override and validate the bot configuration.

    - .env is loaded first, so OPENROUTER_API_KEY / DISCORD_BOT_TOKEN may live there.
    - Any load or validation failure is logged and exits with status 1.
    - Returns the raw dict; typed helpers live in gptbot.config.settings.
    """
    load_dotenv()
    cfg_path = path or get_config_path()
    cfg = apply_env_overrides(_load_raw_config(cfg_path))

    try:
        validate_config(cfg, cfg_path)
    except ConfigValidationError:
        sys.exit(1)

    return cfg
