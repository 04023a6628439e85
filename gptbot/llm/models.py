"""
Request and response payloads for the OpenRouter API.

Optional request fields use None for "unset" so that an explicit zero (for
example temperature=0.0) is still sent. from_dict() is tolerant of missing
keys but raises TypeError on a body of the wrong shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import LLMValidationError


def _expect_dict(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _expect_list(value: Any, what: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{what} must be a list, got {type(value).__name__}")
    return value


def _drop_unset(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# ── Chat completion ─────────────────────────────────────────────────────────

@dataclass
class ChatCompletionMessage:
    role: str
    content: str
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_unset({"role": self.role, "content": self.content, "name": self.name or None})

    @classmethod
    def from_dict(cls, data: Any) -> "ChatCompletionMessage":
        data = _expect_dict(data, "message")
        return cls(
            role=data.get("role") or "",
            content=data.get("content") or "",
            name=data.get("name"),
        )


@dataclass
class ChatCompletionRequest:
    model: str
    messages: List[ChatCompletionMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stream: bool = False
    stop: Optional[List[str]] = None
    user: Optional[str] = None

    def validate(self) -> None:
        if not self.model:
            raise LLMValidationError("invalid request: model is required")
        if not self.messages:
            raise LLMValidationError("invalid request: at least one message is required")
        for i, msg in enumerate(self.messages):
            if not msg.role:
                raise LLMValidationError(f"invalid request: message {i}: role is required")
            if not msg.content:
                raise LLMValidationError(f"invalid request: message {i}: content is required")
        for name in ("temperature", "max_tokens", "top_p"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise LLMValidationError(f"invalid request: {name} must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        data = _drop_unset({
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
            "stop": self.stop or None,
            "user": self.user or None,
        })
        data["stream"] = self.stream
        return data


@dataclass
class LogProbs:
    tokens: List[str] = field(default_factory=list)
    token_logprobs: List[float] = field(default_factory=list)
    top_logprobs: List[Dict[str, float]] = field(default_factory=list)
    text_offset: List[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "LogProbs":
        data = _expect_dict(data, "logprobs")
        return cls(
            tokens=_expect_list(data.get("tokens"), "logprobs.tokens"),
            token_logprobs=_expect_list(data.get("token_logprobs"), "logprobs.token_logprobs"),
            top_logprobs=_expect_list(data.get("top_logprobs"), "logprobs.top_logprobs"),
            text_offset=_expect_list(data.get("text_offset"), "logprobs.text_offset"),
        )


@dataclass
class ChatCompletionChoice:
    index: int
    message: ChatCompletionMessage
    finish_reason: str = ""
    logprobs: Optional[LogProbs] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ChatCompletionChoice":
        data = _expect_dict(data, "choice")
        logprobs = data.get("logprobs")
        return cls(
            index=int(data.get("index") or 0),
            message=ChatCompletionMessage.from_dict(data.get("message") or {}),
            finish_reason=data.get("finish_reason") or "",
            logprobs=LogProbs.from_dict(logprobs) if logprobs is not None else None,
        )


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    prompt_cost: Optional[float] = None
    completion_cost: Optional[float] = None
    total_cost: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Usage":
        data = _expect_dict(data, "usage")
        return cls(
            prompt_tokens=int(data.get("prompt_tokens") or 0),
            completion_tokens=int(data.get("completion_tokens") or 0),
            total_tokens=int(data.get("total_tokens") or 0),
            prompt_cost=data.get("prompt_cost"),
            completion_cost=data.get("completion_cost"),
            total_cost=data.get("total_cost"),
        )


@dataclass
class ChatCompletionResponse:
    id: str
    model: str
    choices: List[ChatCompletionChoice]
    usage: Usage = field(default_factory=Usage)
    object: str = ""
    created: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "ChatCompletionResponse":
        data = _expect_dict(data, "chat completion response")
        usage = data.get("usage")
        return cls(
            id=data.get("id") or "",
            model=data.get("model") or "",
            choices=[ChatCompletionChoice.from_dict(c) for c in _expect_list(data.get("choices"), "choices")],
            usage=Usage.from_dict(usage) if usage is not None else Usage(),
            object=data.get("object") or "",
            created=int(data.get("created") or 0),
        )

    @property
    def content(self) -> str:
        """Text of the first choice, or '' when there is none."""
        return self.choices[0].message.content if self.choices else ""


# ── Image generation ────────────────────────────────────────────────────────

@dataclass
class ImageRequest:
    prompt: str
    model: str
    n: Optional[int] = None
    size: Optional[str] = None
    response_format: Optional[str] = None
    user: Optional[str] = None
    quality: Optional[str] = None
    style: Optional[str] = None

    def validate(self) -> None:
        if not self.prompt:
            raise LLMValidationError("invalid request: prompt is required")
        if not self.model:
            raise LLMValidationError("invalid request: model is required")
        if self.n is not None and self.n < 0:
            raise LLMValidationError("invalid request: n must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return _drop_unset({
            "prompt": self.prompt,
            "model": self.model,
            "n": self.n or None,
            "size": self.size or None,
            "response_format": self.response_format or None,
            "user": self.user or None,
            "quality": self.quality or None,
            "style": self.style or None,
        })


@dataclass
class ImageData:
    url: Optional[str] = None
    b64_json: Optional[str] = None
    revised_prompt: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ImageData":
        data = _expect_dict(data, "image data")
        return cls(
            url=data.get("url") or None,
            b64_json=data.get("b64_json") or None,
            revised_prompt=data.get("revised_prompt") or None,
        )


@dataclass
class ImageResponse:
    created: int
    data: List[ImageData]

    @classmethod
    def from_dict(cls, data: Any) -> "ImageResponse":
        data = _expect_dict(data, "image response")
        return cls(
            created=int(data.get("created") or 0),
            data=[ImageData.from_dict(d) for d in _expect_list(data.get("data"), "data")],
        )


# ── Models ──────────────────────────────────────────────────────────────────

@dataclass
class ModelPermission:
    id: str = ""
    object: str = ""
    created: int = 0
    allow_create_engine: bool = False
    allow_sampling: bool = False
    allow_logprobs: bool = False
    allow_search_indices: bool = False
    allow_view: bool = False
    allow_fine_tuning: bool = False
    organization: str = ""
    group: Any = None
    is_blocking: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "ModelPermission":
        data = _expect_dict(data, "permission")
        return cls(
            id=data.get("id") or "",
            object=data.get("object") or "",
            created=int(data.get("created") or 0),
            allow_create_engine=bool(data.get("allow_create_engine")),
            allow_sampling=bool(data.get("allow_sampling")),
            allow_logprobs=bool(data.get("allow_logprobs")),
            allow_search_indices=bool(data.get("allow_search_indices")),
            allow_view=bool(data.get("allow_view")),
            allow_fine_tuning=bool(data.get("allow_fine_tuning")),
            organization=data.get("organization") or "",
            group=data.get("group"),
            is_blocking=bool(data.get("is_blocking")),
        )


@dataclass
class Model:
    id: str
    object: str = ""
    created: int = 0
    owned_by: str = ""
    name: Optional[str] = None
    description: Optional[str] = None
    context_length: Optional[int] = None
    permission: List[ModelPermission] = field(default_factory=list)
    root: Optional[str] = None
    parent: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Model":
        data = _expect_dict(data, "model")
        # GET /models/{id} may wrap the model in {"data": {...}}
        if isinstance(data.get("data"), dict):
            data = data["data"]
        context_length = data.get("context_length")
        return cls(
            id=data.get("id") or "",
            object=data.get("object") or "",
            created=int(data.get("created") or 0),
            owned_by=data.get("owned_by") or "",
            name=data.get("name"),
            description=data.get("description"),
            context_length=int(context_length) if context_length is not None else None,
            permission=[ModelPermission.from_dict(p) for p in _expect_list(data.get("permission"), "permission")],
            root=data.get("root"),
            parent=data.get("parent"),
        )


@dataclass
class ModelsResponse:
    data: List[Model]
    object: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "ModelsResponse":
        data = _expect_dict(data, "models response")
        return cls(
            data=[Model.from_dict(m) for m in _expect_list(data.get("data"), "data")],
            object=data.get("object") or "",
        )

    def ids(self) -> List[str]:
        return [m.id for m in self.data]
