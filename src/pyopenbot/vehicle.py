"""Interfaces to the vehicle transport and the platform permission layer.

The wire protocol spoken over the link is opaque to pyopenbot; the
connection manager only opens, closes, and probes it.
"""

from __future__ import annotations

from typing import Any, Protocol


class VehicleLink(Protocol):
    """An opaque bidirectional channel to the vehicle controller."""

    @property
    def is_connected(self) -> bool: ...

    def connect(self, device: Any) -> None:
        """Open the link to *device* (``None`` when the platform picks it).

        Raises :class:`~pyopenbot.exceptions.VehicleLinkError` on failure.
        """
        ...

    def disconnect(self) -> None: ...


class PermissionRequester(Protocol):
    """Platform hook that asks the OS for access to an attached USB device.

    The answer is delivered later, possibly on another thread, through
    :meth:`pyopenbot.connection.ConnectionManager.on_permission_result`.
    """

    def request_permission(self) -> None: ...
