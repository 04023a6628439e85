"""
Top-level package for the OpenRouter Discord bot.

This package hosts:
- config loading and validation (YAML + .env)
- the OpenRouter HTTP client with error classification and retry/backoff
- Discord slash commands and error reporting built on that client
"""
