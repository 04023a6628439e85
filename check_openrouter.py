#!/usr/bin/env python3
"""
Diagnostic script for the OpenRouter connection configured in config.yaml.

Usage:
    python check_openrouter.py [config_file]

Runs a ping, lists a few models and sends one short chat completion through
the retrying client, printing what happened at each step.
"""

import asyncio
import logging
import sys

from rich import print
from rich.table import Table

from gptbot.config.loader import get_config
from gptbot.config.settings import build_client_config, get_models
from gptbot.llm.errors import LLMError, error_messages
from gptbot.llm.models import ChatCompletionMessage, ChatCompletionRequest
from gptbot.llm.openrouter_client import OpenRouterClient
from gptbot.llm.retry import RetryPolicy

logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s: %(message)s")

QUICK_POLICY = RetryPolicy(max_retries=1, base_delay=0.5, max_delay=2.0)


def report_failure(step: str, error: LLMError) -> None:
    admin_msg, user_msg = error_messages(error)
    print(f"[red]❌ {step} failed[/red]")
    print(f"   admin: {admin_msg}")
    print(f"   user:  {user_msg}")


async def check(config_file: str) -> bool:
    config = get_config(config_file)
    chat_model, _ = get_models(config)
    ok = True

    async with OpenRouterClient(build_client_config(config)) as client:
        print(f"\n🔍 Checking OpenRouter at [bold]{client.base_url}[/bold]")
        print("━" * 50)

        print("\n[TEST 1] Ping")
        try:
            await client.ping()
            print("[green]✓ Connection OK[/green]")
        except LLMError as e:
            report_failure("Ping", e)
            return False

        print("\n[TEST 2] List models")
        try:
            models = await client.with_retry(client.list_models, QUICK_POLICY)
            table = Table("id", "context", "name")
            for m in models.data[:10]:
                table.add_row(m.id, str(m.context_length or "-"), m.name or "-")
            print(table)
            print(f"✓ {len(models.data)} models available")
            if chat_model not in models.ids():
                print(f"[yellow]⚠️  Configured chat model '{chat_model}' is not in the list[/yellow]")
        except LLMError as e:
            report_failure("List models", e)
            ok = False

        print(f"\n[TEST 3] Chat completion with {chat_model}")
        request = ChatCompletionRequest(
            model=chat_model,
            messages=[ChatCompletionMessage(role="user", content="Reply with the single word: pong")],
            max_tokens=10,
        )
        try:
            resp = await client.with_retry(lambda: client.create_chat_completion(request), QUICK_POLICY)
            print(f"[green]✓ Response:[/green] {resp.content[:100]!r}")
            print(f"  tokens: {resp.usage.total_tokens}")
        except LLMError as e:
            report_failure("Chat completion", e)
            ok = False

    return ok


if __name__ == "__main__":
    config_file = sys.argv[1] if len(sys.argv) > 1 else "config.yaml"
    try:
        passed = asyncio.run(check(config_file))
    except KeyboardInterrupt:
        print("\n\n⚠️  Check interrupted by user")
        sys.exit(0)
    print("\n✓ All checks passed." if passed else "\n❌ Some checks failed.")
    sys.exit(0 if passed else 1)
