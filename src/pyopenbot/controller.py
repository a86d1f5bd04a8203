"""High-level wiring of the robot control surface."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from pyopenbot._transport import AssistantTransport
from pyopenbot.assistant import RemoteAssistantClient
from pyopenbot.config import OpenBotConfig
from pyopenbot.connection import ConnectionManager
from pyopenbot.dispatcher import CommandDispatcher
from pyopenbot.exceptions import OpenBotError
from pyopenbot.models.connection import TransportKind
from pyopenbot.vehicle import PermissionRequester, VehicleLink
from pyopenbot.voice import SpeechService, SpeechSynthesizer, StateCallback, VoiceCommandLoop

_logger = logging.getLogger(__name__)


class RobotController:
    """Process-wide owner of the vehicle connection and the voice channel.

    Collaborators (links, permission platform, recognizer, synthesizer) are
    injected; nothing is looked up from globals.

    Usage::

        async with RobotController(
            OpenBotConfig.from_env(),
            links={TransportKind.USB: usb_link},
            permissions=platform,
            speech=recognizer,
            synthesizer=tts,
        ) as controller:
            controller.connection.on_device_attached(TransportKind.USB)
            ...

    Teardown (on exit, in order): stop the voice loop, disconnect the
    vehicle, stop and shut down the synthesizer, close the HTTP session.
    """

    def __init__(
        self,
        config: OpenBotConfig,
        *,
        links: Mapping[TransportKind, VehicleLink],
        speech: SpeechService,
        synthesizer: SpeechSynthesizer,
        permissions: PermissionRequester | None = None,
        rules: Mapping[str, str] | None = None,
        session: aiohttp.ClientSession | None = None,
        assistant_transport: AssistantTransport | None = None,
        on_voice_state_change: StateCallback | None = None,
    ) -> None:
        self._config = config
        self._speech = speech
        self._synthesizer = synthesizer
        self._assistant = RemoteAssistantClient(config, session=session, transport=assistant_transport)

        dispatcher_kwargs: dict[str, Any] = {"fallback_reply": config.fallback_reply}
        if rules is not None:
            dispatcher_kwargs["rules"] = rules
        self._dispatcher = CommandDispatcher(self._assistant, **dispatcher_kwargs)

        self._connection = ConnectionManager(links, kind=config.transport, permissions=permissions)
        self._voice = VoiceCommandLoop(
            speech,
            self._dispatcher,
            synthesizer,
            listen_timeout=config.listen_timeout,
            on_state_change=on_voice_state_change,
        )
        self._active = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RobotController:
        await self._assistant.__aenter__()
        self._connection.start()
        if self._config.welcome_phrase:
            self._safe_speak(self._config.welcome_phrase)
        if self._config.voice_enabled:
            self._voice.start()
        self._active = True
        _logger.debug("Robot controller started")
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Tear everything down. Safe to call more than once."""
        was_active = self._active
        self._active = False
        await self._voice.aclose()
        self._connection.close()
        if was_active:
            for step in (self._synthesizer.stop, self._synthesizer.shutdown):
                try:
                    step()
                except Exception:
                    _logger.warning("Synthesizer teardown step failed", exc_info=True)
        await self._assistant.close()
        _logger.debug("Robot controller closed")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> OpenBotConfig:
        return self._config

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def voice(self) -> VoiceCommandLoop:
        return self._voice

    @property
    def dispatcher(self) -> CommandDispatcher:
        return self._dispatcher

    @property
    def assistant(self) -> RemoteAssistantClient:
        return self._assistant

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def submit_text(self, text: str) -> str | None:
        """Resolve a typed command and speak the reply (UI text entry)."""
        if not self._active:
            raise OpenBotError("Controller not running. Use 'async with RobotController(...) as controller:'")
        return await self._voice.submit_text(text)

    def _safe_speak(self, text: str) -> None:
        try:
            self._synthesizer.speak(text)
        except Exception:
            _logger.warning("Speech synthesis failed", exc_info=True)
