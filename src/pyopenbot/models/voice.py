"""Voice session models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import model_validator

from pyopenbot.models._base import OpenBotModel


class VoiceSessionState(StrEnum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"


class RecognitionError(StrEnum):
    """Why a listening session ended without an utterance."""

    NO_MATCH = "no_match"
    SPEECH_TIMEOUT = "speech_timeout"
    ENGINE = "engine"
    CANCELLED = "cancelled"


class RecognitionResult(OpenBotModel):
    """Outcome of one listening session: an utterance or an error code."""

    utterance: str | None = None
    error: RecognitionError | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> RecognitionResult:
        if (self.utterance is None) == (self.error is None):
            raise ValueError("exactly one of utterance or error must be set")
        return self

    @classmethod
    def heard(cls, utterance: str) -> RecognitionResult:
        return cls(utterance=utterance)

    @classmethod
    def failed(cls, error: RecognitionError) -> RecognitionResult:
        return cls(error=error)

    @property
    def text(self) -> str:
        """Recognized text with surrounding whitespace removed (``""`` on error)."""
        return (self.utterance or "").strip()
