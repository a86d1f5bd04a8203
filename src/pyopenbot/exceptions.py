"""Custom exception hierarchy for pyopenbot."""

from __future__ import annotations


class OpenBotError(Exception):
    """Base exception for all pyopenbot errors."""


class OpenBotConfigError(OpenBotError):
    """Invalid or missing configuration, or a component wired incorrectly."""


class VehicleLinkError(OpenBotError):
    """The vehicle link (USB or Bluetooth) could not be opened or closed.

    Raised by :class:`~pyopenbot.vehicle.VehicleLink` implementations.
    The connection manager absorbs it and resolves to ``DISCONNECTED``.
    """


class AssistantError(OpenBotError):
    """Base for failures talking to the remote conversational service."""


class AssistantTransportError(AssistantError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class AssistantResponseError(AssistantError):
    """The endpoint answered, but not with a usable chat completion."""
