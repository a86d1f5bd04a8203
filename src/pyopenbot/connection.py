"""Vehicle connection lifecycle.

:class:`ConnectionManager` is the only component allowed to mutate the
connection state or the attached device handle. Platform callbacks
(attach, detach, permission results) may arrive on any thread; every
transition runs under one lock so a duplicate or lost transition is
impossible. Status listeners and the USB permission request are invoked
after the lock is released, so either may block or call back in.

State machine::

    DISCONNECTED --attach/request_connect (USB)--> PERMISSION_PENDING
    PERMISSION_PENDING --grant(device)--> CONNECTED
    PERMISSION_PENDING --deny--> DISCONNECTED
    DISCONNECTED --attach/request_connect (Bluetooth)--> CONNECTED
    any --detach/disconnect--> DISCONNECTED
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

from pyopenbot.exceptions import OpenBotConfigError
from pyopenbot.models.connection import ConnectionState, ConnectionStatus, TransportKind
from pyopenbot.vehicle import PermissionRequester, VehicleLink

_logger = logging.getLogger(__name__)

StatusListener = Callable[[ConnectionStatus], None]
DataListener = Callable[[str], None]


class ConnectionManager:
    """Own the lifecycle of the vehicle link and republish its state.

    Usage::

        with ConnectionManager({TransportKind.USB: usb_link}, permissions=platform) as manager:
            manager.add_listener(ui.on_connection_status)
            manager.on_device_attached(TransportKind.USB)

    Parameters
    ----------
    links : Mapping[TransportKind, VehicleLink]
        One opaque link per supported transport.
    kind : TransportKind
        Transport used by the first link session.
    permissions : PermissionRequester or None
        Platform hook used to request USB access. Required when a USB link
        is supplied.
    """

    def __init__(
        self,
        links: Mapping[TransportKind, VehicleLink],
        *,
        kind: TransportKind = TransportKind.USB,
        permissions: PermissionRequester | None = None,
    ) -> None:
        self._links: dict[TransportKind, VehicleLink] = {TransportKind(k): v for k, v in links.items()}
        kind = TransportKind(kind)
        if kind not in self._links:
            raise OpenBotConfigError(f"No vehicle link configured for transport {kind!s}")
        if any(k.requires_permission for k in self._links) and permissions is None:
            raise OpenBotConfigError("A PermissionRequester is required for USB links")

        self._permissions = permissions
        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._kind = kind
        self._device: Any = None
        self._open_link: VehicleLink | None = None
        self._accepting = False
        self._listeners: list[StatusListener] = []
        self._data_listeners: list[DataListener] = []
        # Transitions recorded under the lock, delivered to listeners after it is released.
        self._outbox: list[tuple[ConnectionStatus, tuple[StatusListener, ...]]] = []
        self._session = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> ConnectionManager:
        """Begin accepting transport events."""
        with self._lock:
            self._accepting = True
        _logger.debug("Connection manager started (transport=%s)", self._kind)
        return self

    def close(self) -> None:
        """Release the link and stop reacting to transport events."""
        with self._lock:
            self._accepting = False
            self._reset("manager closed")
            self._listeners.clear()
            self._data_listeners.clear()
        self._flush()

    def __enter__(self) -> ConnectionManager:
        return self.start()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_state(self) -> ConnectionState:
        return self._state

    def status(self) -> ConnectionStatus:
        with self._lock:
            return self._snapshot()

    @property
    def kind(self) -> TransportKind:
        return self._kind

    @property
    def device(self) -> Any:
        return self._device

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Register *listener* for state transitions; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    def add_data_listener(self, listener: DataListener) -> Callable[[], None]:
        """Register *listener* for data pushed up by the connected vehicle."""
        with self._lock:
            self._data_listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._data_listeners:
                    self._data_listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Commands and platform events
    # ------------------------------------------------------------------

    def request_connect(self, kind: TransportKind | None = None) -> ConnectionState:
        """Start a link session for *kind* (defaults to the current transport).

        For USB this only requests permission; the link opens when
        :meth:`on_permission_result` delivers a grant.
        """
        permission_session: int | None = None
        with self._lock:
            if not self._accepting:
                _logger.debug("Ignoring connect request: manager not started")
                return self._state
            target = TransportKind(kind) if kind is not None else self._kind
            if target not in self._links:
                raise OpenBotConfigError(f"No vehicle link configured for transport {target!s}")

            if target == self._kind and self._state is not ConnectionState.DISCONNECTED:
                # Connected already, or a handshake is in flight for this kind.
                return self._state
            if target != self._kind and self._state is not ConnectionState.DISCONNECTED:
                _logger.info("Switching transport %s -> %s", self._kind, target)
                self._reset("transport switch")

            self._kind = target
            permission_session = self._begin_session()
        self._flush(permission_session)
        return self._state

    def on_device_attached(self, kind: TransportKind | None = None) -> None:
        """Handle a device-attached signal from the platform."""
        permission_session: int | None = None
        with self._lock:
            if not self._accepting:
                _logger.debug("Ignoring attach: manager not started")
                return
            target = TransportKind(kind) if kind is not None else self._kind
            if self._state is not ConnectionState.DISCONNECTED:
                _logger.debug("Ignoring attach (%s) while %s", target, self._state)
                return
            if target not in self._links:
                _logger.warning("Ignoring attach for unsupported transport %s", target)
                return
            _logger.info("Vehicle device attached (%s)", target)
            self._kind = target
            permission_session = self._begin_session()
        self._flush(permission_session)

    def on_permission_result(self, granted: bool, device: Any) -> None:
        """Handle the platform's answer to a USB permission request.

        Only meaningful while ``PERMISSION_PENDING``; redundant or stale
        results in any other state are ignored.
        """
        with self._lock:
            if self._state is not ConnectionState.PERMISSION_PENDING:
                _logger.debug(
                    "Ignoring permission result granted=%s while %s",
                    granted,
                    self._state,
                )
                return
            if not granted:
                _logger.info("USB permission denied")
                self._reset("permission denied")
            elif device is None:
                _logger.warning("USB permission granted without a device handle; still waiting")
            else:
                _logger.info("USB permission granted")
                self._open(device)
        self._flush()

    def on_device_detached(self) -> None:
        """Handle a device-detached signal. Always ends in ``DISCONNECTED``."""
        with self._lock:
            _logger.info("Vehicle device detached")
            self._reset("device detached")
        self._flush()

    def disconnect(self) -> None:
        """Close the link if open; safe when already disconnected."""
        with self._lock:
            self._reset("disconnect requested")
        self._flush()

    def on_data_received(self, data: str) -> None:
        """Forward a payload pushed up by the vehicle to data listeners."""
        with self._lock:
            if self._state is not ConnectionState.CONNECTED:
                _logger.debug("Dropping vehicle data while %s", self._state)
                return
            listeners = list(self._data_listeners)
        for listener in listeners:
            try:
                listener(data)
            except Exception:
                _logger.debug("Vehicle data listener failed", exc_info=True)

    # ------------------------------------------------------------------
    # Internal helpers (callers hold the lock unless noted)
    # ------------------------------------------------------------------

    def _begin_session(self) -> int | None:
        """Open Bluetooth directly; for USB go pending and return the session to ask permission for."""
        self._session += 1
        if not self._kind.requires_permission:
            self._open(None)
            return None
        self._transition(ConnectionState.PERMISSION_PENDING)
        return self._session

    def _open(self, device: Any) -> None:
        link = self._links[self._kind]
        try:
            link.connect(device)
        except Exception:
            _logger.warning("Opening %s link failed", self._kind, exc_info=True)
            self._reset("link open failed")
            return
        if not link.is_connected:
            _logger.warning("%s link did not report connected after open", self._kind)
            self._reset("link not connected")
            return

        self._open_link = link
        self._device = device
        _logger.info("Vehicle connected over %s", self._kind)
        self._transition(ConnectionState.CONNECTED)

    def _reset(self, reason: str) -> None:
        link = self._open_link
        self._open_link = None
        if link is not None:
            try:
                link.disconnect()
            except Exception:
                _logger.warning("Closing %s link failed", self._kind, exc_info=True)
        self._device = None
        if self._state is not ConnectionState.DISCONNECTED:
            _logger.debug("Resetting connection: %s", reason)
        self._transition(ConnectionState.DISCONNECTED)

    def _snapshot(self) -> ConnectionStatus:
        return ConnectionStatus(state=self._state, kind=self._kind, device=self._device)

    def _transition(self, to_state: ConnectionState) -> None:
        from_state = self._state
        if from_state is to_state:
            return
        self._state = to_state
        _logger.debug("Connection %s -> %s", from_state, to_state)
        self._outbox.append((self._snapshot(), tuple(self._listeners)))

    def _flush(self, permission_session: int | None = None) -> None:
        """Deliver queued transitions, then ask for USB permission. Runs without the lock."""
        with self._lock:
            outbox, self._outbox = self._outbox, []
        for status, listeners in outbox:
            for listener in listeners:
                try:
                    listener(status)
                except Exception:
                    _logger.debug("Connection listener failed", exc_info=True)

        if permission_session is None:
            return
        assert self._permissions is not None  # noqa: S101
        try:
            self._permissions.request_permission()
        except Exception:
            _logger.warning("Permission request failed", exc_info=True)
            with self._lock:
                if self._session == permission_session and self._state is ConnectionState.PERMISSION_PENDING:
                    self._reset("permission request failed")
            self._flush()
