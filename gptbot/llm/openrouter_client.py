"""
gptbot/llm/openrouter_client.py

Async client for the OpenRouter HTTP API (chat completions, image generation,
model listing). Every non-2xx response becomes an OpenRouterError whose
retryability is decided by classify_error(); callers wrap calls in
client.with_retry() to get backoff.

    client = OpenRouterClient(ClientConfig(api_key="sk-or-v1-...", site_name="My Bot"))
    resp = await client.with_retry(lambda: client.create_chat_completion(
        ChatCompletionRequest(model="openai/gpt-4o-mini",
                              messages=[ChatCompletionMessage("user", "Hello!")])
    ))
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar
from urllib.parse import quote

import httpx

from .errors import (
    LLMDecodeError,
    LLMError,
    LLMValidationError,
    OpenRouterError,
    parse_error,
    wrap_context_error,
    wrap_network_error,
)
from .logger import ClientLogger, LoggerConfig
from .models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ImageRequest,
    ImageResponse,
    Model,
    ModelsResponse,
)
from .retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry

T = TypeVar("T")

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class ClientConfig:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    site_url: Optional[str] = None
    site_name: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    retry_policy: Optional[RetryPolicy] = None
    logger_config: Optional[LoggerConfig] = None
    http_client: Optional[httpx.AsyncClient] = None  # not closed by the client when injected


class OpenRouterClient:
    def __init__(self, config: ClientConfig):
        self.config = config
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.retry_policy = config.retry_policy or DEFAULT_RETRY_POLICY
        self.logger = ClientLogger(config.logger_config)

        self._owns_http = config.http_client is None
        self._http = config.http_client or httpx.AsyncClient(timeout=config.timeout)

    @classmethod
    def from_api_key(cls, api_key: str) -> "OpenRouterClient":
        return cls(ClientConfig(api_key=api_key))

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "OpenRouterClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ── Retry ───────────────────────────────────────────────────────────────

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy | None = None,
    ) -> T:
        return await with_retry(operation, policy or self.retry_policy, self.logger)

    # ── Plumbing ────────────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        if self.config.site_url:
            headers["HTTP-Referer"] = self.config.site_url
        if self.config.site_name:
            headers["X-Title"] = self.config.site_name
        return headers

    def _build_request(self, method: str, endpoint: str, body: dict[str, Any] | None = None) -> httpx.Request:
        url = self.base_url + endpoint
        content = None
        if body is not None:
            try:
                content = json.dumps(body, ensure_ascii=False).encode("utf-8")
            except (TypeError, ValueError) as e:
                self.logger.log_error(e, "Marshaling request body")
                raise LLMError(f"failed to marshal request body: {e}") from e

        headers = self._headers()
        request = self._http.build_request(method, url, content=content, headers=headers)
        self.logger.log_request(method, url, headers, body)
        return request

    async def _do_request(
        self,
        request: httpx.Request,
        decode: Callable[[Any], T] | None = None,
    ) -> T | None:
        context = f"HTTP {request.method} {request.url.path}"
        start = time.monotonic()
        try:
            response = await self._http.send(request)
        except httpx.TimeoutException as e:
            err = wrap_context_error(e)
            self.logger.log_error(err, context)
            raise err from e
        except httpx.TransportError as e:
            err = wrap_network_error(e)
            self.logger.log_error(err, context)
            raise err from e
        duration = time.monotonic() - start

        body = response.content
        try:
            logged_body = response.json() if body else None
        except ValueError:
            logged_body = body.decode("utf-8", errors="replace")
        self.logger.log_response(response.status_code, response.headers, logged_body, duration)

        if response.status_code >= 400:
            err = parse_error(response.status_code, response.headers, body)
            self.logger.log_error(err, context)
            raise err

        if decode is None:
            return None
        try:
            return decode(response.json())
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            self.logger.log_error(e, "Decoding response")
            raise LLMDecodeError(f"failed to decode response: {e}") from e

    def _note_model_unavailable(self, model: str, error: BaseException) -> None:
        if not isinstance(error, OpenRouterError):
            return
        if error.error_type.lower() == "model_unavailable" or (
            error.status_code == 404 and "model" in error.error_code.lower()
        ):
            self.logger.log_model_unavailable(model, error)

    # ── Operations ──────────────────────────────────────────────────────────

    async def create_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        start = time.monotonic()
        try:
            request.validate()
        except LLMValidationError as e:
            self.logger.log_error(e, "Chat completion request validation")
            raise

        http_request = self._build_request("POST", "/chat/completions", request.to_dict())
        try:
            response = await self._do_request(http_request, ChatCompletionResponse.from_dict)
        except LLMError as e:
            self._note_model_unavailable(request.model, e)
            self.logger.log_chat_completion(request, None, time.monotonic() - start, e)
            raise
        self.logger.log_chat_completion(request, response, time.monotonic() - start, None)
        return response

    async def create_image(self, request: ImageRequest) -> ImageResponse:
        start = time.monotonic()
        try:
            request.validate()
        except LLMValidationError as e:
            self.logger.log_error(e, "Image generation request validation")
            raise

        http_request = self._build_request("POST", "/images/generations", request.to_dict())
        try:
            response = await self._do_request(http_request, ImageResponse.from_dict)
        except LLMError as e:
            self._note_model_unavailable(request.model, e)
            self.logger.log_image_generation(request, None, time.monotonic() - start, e)
            raise
        self.logger.log_image_generation(request, response, time.monotonic() - start, None)
        return response

    async def list_models(self) -> ModelsResponse:
        return await self._do_request(self._build_request("GET", "/models"), ModelsResponse.from_dict)

    async def get_model(self, model_id: str) -> Model:
        if not model_id:
            raise LLMValidationError("invalid request: model id is required")
        endpoint = "/models/" + quote(model_id, safe="/:")
        try:
            return await self._do_request(self._build_request("GET", endpoint), Model.from_dict)
        except LLMError as e:
            self._note_model_unavailable(model_id, e)
            raise

    async def ping(self) -> None:
        """Check connectivity and credentials with GET /models."""
        start = time.monotonic()
        try:
            await self._do_request(self._build_request("GET", "/models"))
        except LLMError as e:
            self.logger.log_connection_test(False, time.monotonic() - start, e)
            raise
        self.logger.log_connection_test(True, time.monotonic() - start)
