"""Vehicle connection models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pyopenbot.models._base import OpenBotModel


class TransportKind(StrEnum):
    """Physical channel carrying control data to the vehicle."""

    USB = "usb"
    BLUETOOTH = "bluetooth"

    @property
    def requires_permission(self) -> bool:
        """Whether the platform must grant access before the link may open."""
        return self is TransportKind.USB


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    PERMISSION_PENDING = "permission_pending"
    CONNECTED = "connected"


class ConnectionStatus(OpenBotModel):
    """Snapshot of the managed vehicle connection.

    Parameters
    ----------
    state : ConnectionState
        Current lifecycle state.
    kind : TransportKind
        Transport of the current (or next) link session.
    device : Any
        Opaque handle of the attached endpoint. Only set while the state is
        ``PERMISSION_PENDING`` (once known) or ``CONNECTED``.
    """

    state: ConnectionState = ConnectionState.DISCONNECTED
    kind: TransportKind = TransportKind.USB
    device: Any = None

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED
