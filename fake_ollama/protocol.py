"""Wire formats of the Ollama API and translation from OpenAI-style replies."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Iterable

_FAMILY_PATTERN = re.compile(r"^([a-zA-Z0-9]+)")
_DATA_PREFIX = "data: "
_DONE_MARKER = "[DONE]"
_NANOS_PER_TOKEN = 100000
_LOAD_DURATION = 1234567
_DEFAULT_TEMPERATURE = 0.7
_U32_MASK = 0xFFFFFFFF
_U64_LIMIT = 1 << 64


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


@dataclass
class Message:
    """One chat message."""

    role: str
    content: str


@dataclass
class ChatResponse:
    """An Ollama chat reply; optional timing fields are omitted when unset."""

    model: str
    created_at: str
    message: Message
    done: bool
    total_duration: int | None = None
    load_duration: int | None = None
    prompt_eval_count: int | None = None
    prompt_eval_duration: int | None = None
    eval_count: int | None = None
    eval_duration: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            result[item.name] = asdict(value) if isinstance(value, Message) else value
        return result

    def to_json_line(self) -> str:
        return _dumps(self.to_dict()) + "\n"


def now_rfc3339() -> str:
    """The current UTC time in RFC 3339 form."""
    return datetime.now(timezone.utc).isoformat()


def model_entry(name: str, modified_at: str) -> dict[str, Any]:
    """Describe one enabled model as an entry of the /api/tags listing."""
    match = _FAMILY_PATTERN.match(name)
    family = match.group(1) if match else "unknown"

    if "llama" in name:
        fmt, size, parameter_size, quantization = "gguf", 1234567890, "405B", "Q4_0"
    elif "mistral" in name:
        fmt, size, parameter_size, quantization = "gguf", 1234567890, "unknown", "unknown"
    else:
        fmt, size, parameter_size, quantization = "unknown", 9876543210, "unknown", "unknown"

    return {
        "name": name,
        "model": name,
        "modified_at": modified_at,
        "size": size,
        "digest": hashlib.sha256(name.encode("utf-8")).hexdigest(),
        "details": {
            "parent_model": "",
            "format": fmt,
            "family": family,
            "families": [family],
            "parameter_size": parameter_size,
            "quantization_level": quantization,
        },
    }


def tags_response(model_names: Iterable[str]) -> dict[str, Any]:
    """Build the /api/tags body for the given model names, in order."""
    return {"models": [model_entry(name, now_rfc3339()) for name in model_names]}


def _lookup(value: Any, *keys: str | int) -> Any:
    for key in keys:
        if isinstance(key, int):
            if not isinstance(value, list) or key >= len(value):
                return None
            value = value[key]
        else:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
    return value


def _as_u64(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < _U64_LIMIT:
        return value
    return 0


def translate_stream_line(line: bytes | str, model: str) -> str:
    """Turn one line of an upstream event stream into an NDJSON line, or ''."""
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError:
            line = ""
    if line.startswith(_DATA_PREFIX):
        line = line[len(_DATA_PREFIX):]

    if line.strip() == _DONE_MARKER:
        return ChatResponse(
            model=model,
            created_at=now_rfc3339(),
            message=Message("assistant", ""),
            done=True,
            total_duration=0,
            load_duration=0,
            prompt_eval_count=0,
            prompt_eval_duration=0,
            eval_count=0,
            eval_duration=0,
        ).to_json_line()

    try:
        value = json.loads(line)
    except ValueError:
        return ""
    choices = _lookup(value, "choices")
    if not isinstance(choices, list):
        return ""
    content = _lookup(choices, 0, "delta", "content")
    if not isinstance(content, str) or not content:
        return ""
    return ChatResponse(
        model=model,
        created_at=now_rfc3339(),
        message=Message("assistant", content),
        done=False,
    ).to_json_line()


def translate_completion(body: bytes | str, model: str) -> ChatResponse:
    """Turn a complete upstream chat completion into an Ollama reply.

    Raises ValueError when the body is not JSON.
    """
    value = json.loads(body)
    content = _lookup(value, "choices", 0, "message", "content")
    if not isinstance(content, str):
        content = ""
    prompt_tokens = _as_u64(_lookup(value, "usage", "prompt_tokens")) & _U32_MASK
    completion_tokens = _as_u64(_lookup(value, "usage", "completion_tokens")) & _U32_MASK
    total_tokens = _as_u64(_lookup(value, "usage", "total_tokens"))

    return ChatResponse(
        model=model,
        created_at=now_rfc3339(),
        message=Message("assistant", content),
        done=True,
        total_duration=(total_tokens * _NANOS_PER_TOKEN) % _U64_LIMIT,
        load_duration=_LOAD_DURATION,
        prompt_eval_count=prompt_tokens,
        prompt_eval_duration=prompt_tokens * _NANOS_PER_TOKEN,
        eval_count=completion_tokens,
        eval_duration=completion_tokens * _NANOS_PER_TOKEN,
    )


def upstream_request(model: str, messages: Iterable[Message], stream: bool) -> dict[str, Any]:
    """The body sent to the upstream chat completions endpoint."""
    return {
        "model": model,
        "messages": [asdict(message) for message in messages],
        "stream": stream,
        "temperature": _DEFAULT_TEMPERATURE,
    }