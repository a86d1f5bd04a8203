"""Data models for pyopenbot."""

from pyopenbot.models._base import OpenBotModel
from pyopenbot.models.assistant import (
    AssistantFailure,
    AssistantFailureReason,
    AssistantReply,
    AssistantResult,
    ChatChoice,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    ChatReplyMessage,
)
from pyopenbot.models.connection import ConnectionState, ConnectionStatus, TransportKind
from pyopenbot.models.voice import RecognitionError, RecognitionResult, VoiceSessionState

__all__ = [
    "AssistantFailure",
    "AssistantFailureReason",
    "AssistantReply",
    "AssistantResult",
    "ChatChoice",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "ChatReplyMessage",
    "ConnectionState",
    "ConnectionStatus",
    "OpenBotModel",
    "RecognitionError",
    "RecognitionResult",
    "TransportKind",
    "VoiceSessionState",
]
