from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
from typing import Any, Mapping, NamedTuple, Optional, Tuple

import httpx


DEFAULT_RATE_LIMIT_RETRY_AFTER = 60.0
SERVICE_UNAVAILABLE_RETRY_AFTER = 30.0
MODEL_OVERLOADED_RETRY_AFTER = 30.0
MODEL_UNAVAILABLE_RETRY_AFTER = 60.0

NETWORK_ERROR = "network_error"
CONTEXT_ERROR = "context_error"

_DEADLINE_ERRORS = (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)


class LLMError(Exception):
    """Base error for LLM-related failures."""


class LLMValidationError(LLMError, ValueError):
    """Request payload rejected before any network I/O."""


class LLMDecodeError(LLMError):
    """A successful response body did not match the expected shape."""


class ErrorClassification(NamedTuple):
    is_retryable: bool
    user_message: str
    retry_after: float = 0.0


class OpenRouterError(LLMError):
    """
    One failed call to the OpenRouter API.

    Built by parse_error() for HTTP failures, or by wrap_network_error() /
    wrap_context_error() when no response was received. is_retryable,
    user_message and retry_after always come from classify_error() or from
    the wrappers; instances are not modified after construction. A positive
    retry_after always makes the error retryable.
    """

    def __init__(
        self,
        status_code: int = 0,
        error_code: str = "",
        error_type: str = "",
        message: str = "",
        user_message: str = "",
        is_retryable: bool = False,
        retry_after: float = 0.0,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        if retry_after > 0:
            is_retryable = True
        self.status_code = status_code
        self.error_code = error_code
        self.error_type = error_type
        self.message = message
        self.user_message = user_message
        self.is_retryable = is_retryable
        self.retry_after = retry_after
        self.cause = cause

    def __str__(self) -> str:
        text = (
            f"OpenRouter API error (status: {self.status_code}, "
            f"code: {self.error_code}): {self.message}"
        )
        if self.cause is not None:
            text += f" (original: {self.cause})"
        return text

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status_code={self.status_code!r}, "
            f"error_code={self.error_code!r}, is_retryable={self.is_retryable!r})"
        )

    def get_user_message(self) -> str:
        return self.user_message or self.message


def _get_header(headers: Mapping[str, str] | None, name: str) -> str | None:
    if not headers:
        return None
    if isinstance(headers, httpx.Headers):
        return headers.get(name)
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _parse_retry_after(headers: Mapping[str, str] | None) -> float:
    raw = _get_header(headers, "Retry-After")
    if raw is None:
        return 0.0
    try:
        seconds = int(raw.strip())
    except ValueError:
        return 0.0
    return float(seconds) if seconds > 0 else 0.0


def classify_error(
    status_code: int,
    error_code: str = "",
    error_type: str = "",
    headers: Mapping[str, str] | None = None,
) -> ErrorClassification:
    """
    Decide retryability, the user-facing message and a suggested delay.

    The status code table runs first; a recognised error type then overrides
    its verdict.
    """
    code = (error_code or "").lower()
    retry_after = 0.0

    if status_code == 401:
        retryable, message = False, "Authentication failed. Please check your OpenRouter API key."
    elif status_code == 403:
        retryable = False
        if any(word in code for word in ("insufficient", "credit", "balance")):
            message = "Insufficient credits. Please add credits to your OpenRouter account."
        else:
            message = "Access forbidden. Please check your API permissions."
    elif status_code == 404:
        retryable = False
        if "model" in code:
            message = "The requested AI model is not available. Please try a different model."
        else:
            message = "The requested resource was not found."
    elif status_code == 429:
        retryable, message = True, "Rate limit exceeded. Please wait a moment before trying again."
        retry_after = _parse_retry_after(headers) or DEFAULT_RATE_LIMIT_RETRY_AFTER
    elif status_code == 400:
        retryable = False
        message = {
            "invalid_request_error": "Invalid request. Please check your input parameters.",
            "model_not_found": "The specified AI model was not found. Please check the model name.",
            "context_length_exceeded": "Your message is too long. Please try with a shorter message.",
        }.get(code, "Bad request. Please check your input and try again.")
    elif status_code == 500:
        retryable = True
        message = "OpenRouter service is temporarily unavailable. Please try again in a few moments."
    elif status_code == 502:
        retryable, message = True, "OpenRouter gateway error. Please try again in a few moments."
    elif status_code == 503:
        retryable = True
        message = "OpenRouter service is temporarily unavailable. Please try again later."
        retry_after = SERVICE_UNAVAILABLE_RETRY_AFTER
    elif status_code == 504:
        retryable, message = True, "Request timed out. Please try again."
    elif status_code >= 500:
        retryable, message = True, "OpenRouter service error. Please try again later."
    elif status_code >= 400:
        retryable, message = False, "Request error. Please check your input and try again."
    else:
        retryable, message = False, "An unexpected error occurred."

    kind = (error_type or "").lower()
    if kind == "insufficient_quota":
        retryable, retry_after = False, 0.0
        message = "Insufficient quota. Please check your OpenRouter account limits."
    elif kind == "model_overloaded":
        retryable, retry_after = True, MODEL_OVERLOADED_RETRY_AFTER
        message = "The AI model is currently overloaded. Please try again in a few moments."
    elif kind == "model_unavailable":
        retryable, retry_after = True, MODEL_UNAVAILABLE_RETRY_AFTER
        message = (
            "The AI model is temporarily unavailable. "
            "Please try a different model or wait a few moments."
        )

    return ErrorClassification(retryable, message, retry_after)


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class ErrorDetail:
    """The "error" object of a provider failure envelope."""

    code: str
    message: str
    type: str = ""
    param: Optional[str] = None
    details: Any = None

    @classmethod
    def from_body(cls, body: bytes | str) -> "ErrorDetail | None":
        """Decode an envelope; None when the body is not one or has no message."""
        try:
            payload = json.loads(body)
        except (TypeError, ValueError):
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("error"), dict):
            return None
        detail = payload["error"]
        message = detail.get("message")
        if not isinstance(message, str) or not message:
            return None
        param = detail.get("param")
        return cls(
            code=_as_text(detail.get("code")),
            message=message,
            type=_as_text(detail.get("type")),
            param=None if param is None else str(param),
            details=detail.get("details"),
        )


def parse_error(
    status_code: int,
    headers: Mapping[str, str] | None,
    body: bytes | str | None,
) -> OpenRouterError:
    """
    Build an OpenRouterError from a failed HTTP response.

    Reads the provider envelope {"error": {"code", "message", "type"}} when
    present, otherwise keeps the raw body (or the HTTP reason phrase when the
    body is empty) as the message.
    """
    body = body or b""
    error_code = error_type = ""
    detail = ErrorDetail.from_body(body)
    if detail is not None:
        error_code, error_type, message = detail.code, detail.type, detail.message
    elif body:
        message = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    else:
        message = httpx.codes.get_reason_phrase(status_code)

    verdict = classify_error(status_code, error_code, error_type, headers)
    return OpenRouterError(
        status_code=status_code,
        error_code=error_code,
        error_type=error_type,
        message=message,
        user_message=verdict.user_message,
        is_retryable=verdict.is_retryable,
        retry_after=verdict.retry_after,
    )


def wrap_network_error(error: BaseException) -> OpenRouterError:
    """Wrap a transport failure (connection refused, reset, DNS...)."""
    return OpenRouterError(
        status_code=0,
        error_code=NETWORK_ERROR,
        error_type=NETWORK_ERROR,
        message=str(error) or type(error).__name__,
        user_message="Network error occurred. Please check your internet connection and try again.",
        is_retryable=True,
        cause=error,
    )


def wrap_context_error(error: BaseException) -> OpenRouterError:
    """
    Wrap a deadline or cancellation.

    Deadlines are retryable; an explicit cancellation is not.
    """
    timed_out = isinstance(error, _DEADLINE_ERRORS)
    return OpenRouterError(
        status_code=0,
        error_code=CONTEXT_ERROR,
        error_type=CONTEXT_ERROR,
        message=str(error) or type(error).__name__,
        user_message="Request timed out. Please try again." if timed_out else "Request was cancelled.",
        is_retryable=timed_out,
        cause=error,
    )


def is_retryable_error(error: BaseException) -> bool:
    return isinstance(error, OpenRouterError) and error.is_retryable


def get_user_friendly_message(error: BaseException) -> str:
    if isinstance(error, OpenRouterError):
        return error.get_user_message()
    return "An unexpected error occurred. Please try again."


def parse_error_message(error: BaseException) -> str:
    """
    Map raw exceptions into short, human-readable messages.
    Used for admin notifications and logs.
    """
    if isinstance(error, OpenRouterError):
        icon = "⚠️" if error.is_retryable else "❌"
        raw = error.message.splitlines()[0][:100] if error.message else "-"
        return f"{icon} OpenRouter {error.status_code or error.error_code}: {error.get_user_message()} ({raw})"
    if isinstance(error, LLMValidationError):
        return f"❌ Invalid Request: {str(error)[:100]}"
    if isinstance(error, LLMDecodeError):
        return f"❌ Unexpected Response: {str(error)[:100]}"
    s, t = str(error), type(error).__name__
    return f"❌ {t}: {s.split(chr(10))[0][:100]}"


def format_user_friendly_error(error: BaseException) -> str:
    """
    Short, safe error message suitable for end users.
    """
    if isinstance(error, OpenRouterError):
        return error.get_user_message()
    if isinstance(error, LLMValidationError):
        return "Invalid request. Please check your input parameters."
    return get_user_friendly_message(error)


def error_messages(error: BaseException) -> Tuple[str, str]:
    """
    Convenience helper returning (admin_message, user_message).
    """
    return parse_error_message(error), format_user_friendly_error(error)
