"""Helpers for safe debug logging of assistant traffic.

Requests carry a bearer credential in their headers, and chat bodies can
carry arbitrarily long transcripts. Headers are masked and chat bodies are
reduced to their model, roles and clipped message contents before DEBUG
logs are emitted.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_CREDENTIAL_HEADERS: frozenset[str] = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "api-key",
        "x-api-key",
        "cookie",
        "set-cookie",
    }
)

_SCALARS = (str, int, float, bool)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return *headers* with credential values replaced by ``<redacted>``."""
    return {
        name: "<redacted>" if name.lower() in _CREDENTIAL_HEADERS else value
        for name, value in headers.items()
    }


def _clip(value: Any, max_content: int) -> Any:
    if isinstance(value, str) and len(value) > max_content:
        return f"{value[:max_content]}…<truncated>"
    return value


def _message_view(message: Any, max_content: int) -> Any:
    if not isinstance(message, Mapping):
        return f"<{type(message).__name__}>"
    return {
        "role": message.get("role"),
        "content": _clip(message.get("content"), max_content),
    }


def summarize_chat(body: Mapping[str, Any], *, max_content: int = 120) -> dict[str, Any]:
    """Compact view of a chat request or response body for debug logs.

    Top-level scalars (``model``, ``id``, ...) are kept. Request
    ``messages`` and response ``choices[*].message`` are reduced to role and
    clipped content. Anything else (usage blocks, tool payloads) is dropped.
    """
    summary: dict[str, Any] = {
        key: _clip(value, max_content)
        for key, value in body.items()
        if value is None or isinstance(value, _SCALARS)
    }

    messages = body.get("messages")
    if isinstance(messages, list):
        summary["messages"] = [_message_view(m, max_content) for m in messages]

    choices = body.get("choices")
    if isinstance(choices, list):
        summary["choices"] = [
            _message_view(c.get("message") if isinstance(c, Mapping) else c, max_content) for c in choices
        ]
    elif choices is not None:
        summary["choices"] = f"<{type(choices).__name__}>"

    return summary
