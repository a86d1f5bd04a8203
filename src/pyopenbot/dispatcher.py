"""Resolve utterances to spoken replies."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Protocol

from pyopenbot._constants import DEFAULT_CHAT_RULES, FALLBACK_REPLY
from pyopenbot.models.assistant import AssistantFailure, AssistantResult

_logger = logging.getLogger(__name__)


class Assistant(Protocol):
    async def ask(self, utterance: str) -> AssistantResult: ...


def normalize_utterance(utterance: str) -> str:
    """Lower-case and trim *utterance* for rule lookup."""
    return utterance.strip().lower()


class CommandDispatcher:
    """Resolve an utterance via the local rule table, then the remote assistant.

    Local rules match the exact normalized utterance only (no substring or
    fuzzy matching) and never touch the network. Everything else is forwarded
    verbatim to *assistant*; when that is unavailable or fails, the fallback
    reply is returned. :meth:`resolve` never raises.
    """

    def __init__(
        self,
        assistant: Assistant | None = None,
        *,
        rules: Mapping[str, str] = DEFAULT_CHAT_RULES,
        fallback_reply: str = FALLBACK_REPLY,
    ) -> None:
        self._assistant = assistant
        self._rules: Mapping[str, str] = MappingProxyType(
            {normalize_utterance(phrase): reply for phrase, reply in rules.items()}
        )
        self._fallback_reply = fallback_reply

    @property
    def rules(self) -> Mapping[str, str]:
        """Read-only view of the normalized rule table."""
        return self._rules

    @property
    def fallback_reply(self) -> str:
        return self._fallback_reply

    def match_rule(self, utterance: str) -> str | None:
        """Return the local reply for *utterance*, or ``None`` on a miss."""
        return self._rules.get(normalize_utterance(utterance))

    async def resolve(self, utterance: str) -> str:
        """Resolve *utterance* to the reply that should be spoken."""
        key = normalize_utterance(utterance)
        if not key:
            return self._fallback_reply

        local = self._rules.get(key)
        if local is not None:
            _logger.debug("Local rule matched %r", key)
            return local

        if self._assistant is None:
            _logger.debug("No rule for %r and no remote assistant configured", key)
            return self._fallback_reply

        try:
            result = await self._assistant.ask(utterance)
        except Exception:
            _logger.warning("Remote assistant raised for %r", utterance, exc_info=True)
            return self._fallback_reply

        if isinstance(result, AssistantFailure):
            _logger.info("Remote resolution failed (%s); using fallback reply", result.reason)
            return self._fallback_reply
        return result.text
