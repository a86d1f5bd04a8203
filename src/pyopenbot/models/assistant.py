"""Remote assistant payloads and results.

The request/response models mirror the chat-completion wire format::

    request  {"model": str, "messages": [{"role": "user", "content": str}]}
    response {"choices": [{"message": {"content": str}}]}

Anything that does not validate against :class:`ChatCompletionResponse`
is treated as a malformed reply.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field, field_validator

from pyopenbot.models._base import OpenBotModel


class ChatMessage(OpenBotModel):
    role: Literal["system", "user", "assistant"] = "user"
    content: str


class ChatCompletionRequest(OpenBotModel):
    """Single-turn chat payload sent to the remote endpoint."""

    model: str
    messages: list[ChatMessage] = Field(min_length=1)

    @classmethod
    def for_utterance(cls, model: str, utterance: str) -> ChatCompletionRequest:
        return cls(model=model, messages=[ChatMessage(role="user", content=utterance)])


class ChatReplyMessage(OpenBotModel):
    content: str

    @field_validator("content")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("reply content is empty")
        return value


class ChatChoice(OpenBotModel):
    message: ChatReplyMessage


class ChatCompletionResponse(OpenBotModel):
    choices: list[ChatChoice] = Field(min_length=1)

    @property
    def reply(self) -> str:
        """Content of the first completion choice."""
        return self.choices[0].message.content


class AssistantFailureReason(StrEnum):
    BUSY = "busy"
    NOT_CONFIGURED = "not_configured"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    MALFORMED = "malformed"


class AssistantReply(OpenBotModel):
    text: str


class AssistantFailure(OpenBotModel):
    """Why a remote request produced no reply.

    Parameters
    ----------
    reason : AssistantFailureReason
        Failure category.
    message : str
        Human-readable detail for logs (never spoken).
    status_code : int or None
        HTTP status for ``HTTP_STATUS`` failures.
    """

    reason: AssistantFailureReason
    message: str = ""
    status_code: int | None = None


AssistantResult = AssistantReply | AssistantFailure
