"""
Logging for OpenRouter API calls.

ClientLogger is handed to the client through its config instead of living in
module globals, so two clients can log with different settings.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import json
import logging
from typing import Any, Mapping

from .errors import OpenRouterError


REDACTED_AUTHORIZATION = "Bearer [REDACTED]"


@dataclass(frozen=True)
class LoggerConfig:
    level: int = logging.INFO
    enable_metrics: bool = True
    enable_request_log: bool = True
    enable_response_log: bool = True
    name: str = "gptbot.openrouter"


@dataclass
class ApiCallMetrics:
    endpoint: str
    method: str
    duration: float
    status_code: int
    success: bool
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    error_code: str = ""
    error_type: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _failure_metrics(endpoint: str, model: str, duration: float, error: BaseException) -> ApiCallMetrics:
    return ApiCallMetrics(
        endpoint=endpoint,
        method="POST",
        model=model,
        duration=round(duration, 3),
        status_code=getattr(error, "status_code", 0),
        success=False,
        error_code=getattr(error, "error_code", ""),
        error_type=getattr(error, "error_type", "") or type(error).__name__,
    )


def _sanitize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        key: REDACTED_AUTHORIZATION if key.lower() == "authorization" else value
        for key, value in headers.items()
    }


class ClientLogger:
    def __init__(self, config: LoggerConfig | None = None):
        self.config = config or LoggerConfig()
        self._logger = logging.getLogger(self.config.name)

    def _should_log(self, level: int) -> bool:
        return level >= self.config.level

    def _log(self, level: int, msg: str, *args: Any) -> None:
        if self._should_log(level):
            self._logger.log(level, "OpenRouter: " + msg, *args)

    def debug(self, msg: str, *args: Any) -> None:
        self._log(logging.DEBUG, msg, *args)

    def info(self, msg: str, *args: Any) -> None:
        self._log(logging.INFO, msg, *args)

    def warning(self, msg: str, *args: Any) -> None:
        self._log(logging.WARNING, msg, *args)

    def error(self, msg: str, *args: Any) -> None:
        self._log(logging.ERROR, msg, *args)

    # ── Request / response ──────────────────────────────────────────────────

    def log_request(self, method: str, url: str, headers: Mapping[str, str], body: Any = None) -> None:
        if not self.config.enable_request_log or not self._should_log(logging.DEBUG):
            return
        data = {
            "method": method,
            "url": url,
            "headers": _sanitize_headers(headers),
            "body": body,
        }
        try:
            self.debug("API request: %s", json.dumps(data, ensure_ascii=False))
        except (TypeError, ValueError) as e:
            self.debug("API request: %s %s (failed to serialize request data: %s)", method, url, e)

    def log_response(
        self,
        status_code: int,
        headers: Mapping[str, str],
        body: Any,
        duration: float,
    ) -> None:
        if not self.config.enable_response_log or not self._should_log(logging.DEBUG):
            return
        data = {
            "status_code": status_code,
            "headers": dict(headers),
            "body": body,
            "duration": round(duration, 3),
            "success": 200 <= status_code < 300,
        }
        try:
            self.debug("API response: %s", json.dumps(data, ensure_ascii=False))
        except (TypeError, ValueError) as e:
            self.debug(
                "API response: status %d, duration %.3fs (failed to serialize response data: %s)",
                status_code, duration, e,
            )

    def log_metrics(self, metrics: ApiCallMetrics) -> None:
        if not self.config.enable_metrics or not self._should_log(logging.INFO):
            return
        try:
            self.info("API metrics: %s", json.dumps(asdict(metrics)))
        except (TypeError, ValueError) as e:
            self.info(
                "API metrics: %s %s - duration %.3fs, status %d, success %s (failed to serialize metrics: %s)",
                metrics.method, metrics.endpoint, metrics.duration, metrics.status_code, metrics.success, e,
            )

    def log_error(self, error: BaseException, context: str) -> None:
        if not self._should_log(logging.ERROR):
            return
        if isinstance(error, OpenRouterError):
            self.error(
                "%s - status=%d, code=%s, type=%s, message=%s, retryable=%s",
                context, error.status_code, error.error_code, error.error_type,
                error.message, error.is_retryable,
            )
            if error.cause is not None:
                self.error("%s - original error: %s", context, error.cause)
        else:
            self.error("%s - error: %s", context, error)

    # ── Per-operation summaries ─────────────────────────────────────────────

    def log_chat_completion(self, request: Any, response: Any, duration: float, error: BaseException | None) -> None:
        if error is not None:
            self.log_metrics(_failure_metrics("/chat/completions", request.model, duration, error))
            return
        if not self._should_log(logging.INFO):
            return

        metrics = ApiCallMetrics(
            endpoint="/chat/completions",
            method="POST",
            model=request.model,
            duration=round(duration, 3),
            status_code=200,
            success=True,
        )
        usage = getattr(response, "usage", None)
        if usage is not None:
            metrics.prompt_tokens = usage.prompt_tokens
            metrics.completion_tokens = usage.completion_tokens
            metrics.total_tokens = usage.total_tokens
        self.log_metrics(metrics)

        temperature = 1.0 if request.temperature is None else request.temperature
        max_tokens = request.max_tokens or 0
        self.info(
            "Chat completion: model=%s, messages=%d, temperature=%.2f, max_tokens=%d, duration=%.3fs",
            request.model, len(request.messages), temperature, max_tokens, duration,
        )

    def log_image_generation(self, request: Any, response: Any, duration: float, error: BaseException | None) -> None:
        if error is not None:
            self.log_metrics(_failure_metrics("/images/generations", request.model, duration, error))
            return
        if not self._should_log(logging.INFO):
            return

        self.log_metrics(ApiCallMetrics(
            endpoint="/images/generations",
            method="POST",
            model=request.model,
            duration=round(duration, 3),
            status_code=200,
            success=True,
        ))
        generated = len(response.data) if response is not None else 0
        self.info(
            "Image generation: model=%s, prompt=%s, size=%s, count=%s, generated=%d, duration=%.3fs",
            request.model, _truncate(request.prompt, 100), request.size, request.n, generated, duration,
        )

    # ── Retry / health ──────────────────────────────────────────────────────

    def log_retry_attempt(self, attempt: int, max_retries: int, delay: float, error: BaseException) -> None:
        self.warning("Retry attempt %d/%d after %.3fs delay due to error: %s", attempt, max_retries, delay, error)

    def log_rate_limit_hit(self, retry_after: float) -> None:
        self.warning("Rate limit hit, will retry after %.1fs", retry_after)

    def log_model_unavailable(self, model: str, error: BaseException) -> None:
        self.warning("Model %s is unavailable: %s", model, error)

    def log_connection_test(self, success: bool, duration: float, error: BaseException | None = None) -> None:
        if success:
            self.info("API connection test successful (duration: %.3fs)", duration)
        else:
            self.error("API connection test failed (duration: %.3fs): %s", duration, error)
