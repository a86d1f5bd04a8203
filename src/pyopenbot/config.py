"""Client configuration for pyopenbot."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyopenbot._constants import (
    DEFAULT_ASSISTANT_MODEL,
    DEFAULT_ASSISTANT_URL,
    FALLBACK_REPLY,
    WELCOME_PHRASE,
)
from pyopenbot.exceptions import OpenBotConfigError
from pyopenbot.models.connection import TransportKind


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(env_key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise OpenBotConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class OpenBotConfig:
    """Robot controller configuration.

    Parameters
    ----------
    assistant_api_key : str or None
        Bearer credential for the remote chat-completion endpoint. Never
        hard-code it; read it from ``OPENBOT_ASSISTANT_API_KEY``. When unset,
        remote resolution is unavailable and unknown commands get the
        fallback reply.
    assistant_url : str
        Full URL of the chat-completion endpoint.
    assistant_model : str
        Model name sent in every request body.
    request_timeout : float
        Total seconds allowed for one remote round trip.
    transport : TransportKind
        Vehicle transport used for new link sessions.
    listen_timeout : float
        Seconds a single listening session may take before it is abandoned
        and restarted. ``0`` disables the timeout.
    fallback_reply : str
        Phrase spoken when neither a local rule nor the remote service
        produces a reply.
    welcome_phrase : str or None
        Spoken once when the controller starts. ``None`` disables it.
    voice_enabled : bool
        Start the voice command loop with the controller.
    """

    assistant_api_key: str | None = None
    assistant_url: str = DEFAULT_ASSISTANT_URL
    assistant_model: str = DEFAULT_ASSISTANT_MODEL
    request_timeout: float = 15.0
    transport: TransportKind = TransportKind.USB
    listen_timeout: float = 10.0
    fallback_reply: str = FALLBACK_REPLY
    welcome_phrase: str | None = WELCOME_PHRASE
    voice_enabled: bool = True

    def __post_init__(self) -> None:
        try:
            kind = TransportKind(str(self.transport).strip().lower())
        except ValueError as exc:
            raise OpenBotConfigError(f"Unsupported transport: {self.transport!r}") from exc
        # Frozen dataclass: normalize in place via object.__setattr__.
        object.__setattr__(self, "transport", kind)

        if self.request_timeout <= 0:
            raise OpenBotConfigError("request_timeout must be positive")
        if self.listen_timeout < 0:
            raise OpenBotConfigError("listen_timeout must be >= 0")
        if not self.fallback_reply.strip():
            raise OpenBotConfigError("fallback_reply must be non-empty")

    @property
    def assistant_configured(self) -> bool:
        """Whether a bearer credential is available for the remote service."""
        return bool(self.assistant_api_key and self.assistant_api_key.strip())

    @classmethod
    def from_env(cls, **overrides: Any) -> OpenBotConfig:
        """Create configuration from environment variables.

        Reads ``OPENBOT_*`` variables. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        OpenBotConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "OPENBOT_ASSISTANT_API_KEY": "assistant_api_key",
            "OPENBOT_ASSISTANT_URL": "assistant_url",
            "OPENBOT_ASSISTANT_MODEL": "assistant_model",
            "OPENBOT_TRANSPORT": "transport",
            "OPENBOT_WELCOME_PHRASE": "welcome_phrase",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # An empty welcome phrase in the environment means "stay quiet".
        if config_kwargs.get("welcome_phrase", None) == "":
            config_kwargs["welcome_phrase"] = None

        for env_key, field_name in (
            ("OPENBOT_REQUEST_TIMEOUT", "request_timeout"),
            ("OPENBOT_LISTEN_TIMEOUT", "listen_timeout"),
        ):
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)

        if "voice_enabled" not in overrides:
            config_kwargs["voice_enabled"] = _env_bool(env.get("OPENBOT_VOICE_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
