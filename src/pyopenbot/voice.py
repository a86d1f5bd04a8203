"""Continuous voice-command loop.

The loop is an explicit state machine driven by one asyncio task::

    IDLE -> LISTENING -> PROCESSING -> SPEAKING -> IDLE -> LISTENING ...
               |
               +-- error / empty / timeout --> IDLE -> LISTENING

Every new listening session is preceded by cancelling (and awaiting) the
previous one, so at most one session is ever ``LISTENING``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Protocol

from pyopenbot.dispatcher import CommandDispatcher
from pyopenbot.exceptions import OpenBotConfigError
from pyopenbot.models.voice import RecognitionError, RecognitionResult, VoiceSessionState

_logger = logging.getLogger(__name__)

StateCallback = Callable[[VoiceSessionState, VoiceSessionState], None]


class SpeechService(Protocol):
    """Speech-to-text engine producing one result per listening session."""

    async def listen(self) -> RecognitionResult: ...

    def cancel(self) -> None:
        """Abort the session in progress, if any."""
        ...

    def release(self) -> None:
        """Free the recognizer; a later :meth:`listen` may re-acquire it."""
        ...


class SpeechSynthesizer(Protocol):
    """Text-to-speech engine."""

    def speak(self, text: str) -> None:
        """Speak *text*, interrupting any utterance in progress. Returns immediately."""
        ...

    def stop(self) -> None: ...

    def shutdown(self) -> None: ...


class VoiceCommandLoop:
    """Supervise listening sessions and speak the dispatcher's replies.

    Parameters
    ----------
    speech : SpeechService
        Recognizer producing utterances.
    dispatcher : CommandDispatcher
        Resolves utterances to replies. Required.
    synthesizer : SpeechSynthesizer
        Speaks replies.
    listen_timeout : float or None
        Abandon a listening session after this many seconds and start a new
        one. ``None`` or ``0`` waits indefinitely.
    on_state_change : callable or None
        Called with ``(old, new)`` on every state transition.
    """

    def __init__(
        self,
        speech: SpeechService,
        dispatcher: CommandDispatcher | None,
        synthesizer: SpeechSynthesizer,
        *,
        listen_timeout: float | None = None,
        on_state_change: StateCallback | None = None,
    ) -> None:
        if dispatcher is None:
            raise OpenBotConfigError("VoiceCommandLoop requires a CommandDispatcher")
        self._speech = speech
        self._dispatcher = dispatcher
        self._synthesizer = synthesizer
        self._listen_timeout = listen_timeout or None
        self._on_state_change = on_state_change

        self._state = VoiceSessionState.IDLE
        self._running = False
        # Bumped on every start/stop; replies from an older generation are discarded.
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._session: asyncio.Task[RecognitionResult] | None = None
        self._inflight: set[asyncio.Task[str]] = set()
        self._sessions_started = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> VoiceSessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def sessions_started(self) -> int:
        """Number of listening sessions started since construction."""
        return self._sessions_started

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the loop on the running event loop. No-op if already running."""
        if self._running:
            return
        loop = asyncio.get_running_loop()
        self._running = True
        self._generation += 1
        self._task = loop.create_task(self._run(self._generation), name="pyopenbot-voice-loop")
        _logger.debug("Voice loop started (generation %d)", self._generation)

    def stop(self) -> None:
        """Cancel the active session, release the recognizer, and stay stopped.

        A remote request already in flight is left to finish, but its reply
        is discarded.
        """
        if not self._running:
            return
        self._running = False
        self._generation += 1

        self._cancel_session()
        task = self._task
        if task is not None and not task.done():
            task.cancel()

        try:
            self._speech.release()
        except Exception:
            _logger.warning("Releasing the recognizer failed", exc_info=True)
        self._set_state(VoiceSessionState.IDLE)
        _logger.debug("Voice loop stopped")

    async def aclose(self) -> None:
        """Stop the loop and wait until its tasks have finished."""
        self.stop()
        pending = [t for t in (self._task, self._session) if t is not None and not t.done()]
        if pending:
            await asyncio.wait(pending)

    # ------------------------------------------------------------------
    # Text entry
    # ------------------------------------------------------------------

    async def submit_text(self, text: str) -> str | None:
        """Resolve a typed command and speak the reply.

        Returns the reply, or ``None`` when the loop was stopped or restarted
        while the reply was being resolved (it is then not spoken).
        """
        generation = self._generation
        reply = await self._dispatcher.resolve(text)
        if generation != self._generation:
            _logger.debug("Discarding typed-command reply: voice loop stopped meanwhile")
            return None
        self._speak(reply)
        return reply

    # ------------------------------------------------------------------
    # Supervisor
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    async def _run(self, generation: int) -> None:
        while self._is_current(generation):
            result = await self._listen()
            if not self._is_current(generation):
                break

            utterance = result.text
            if result.error is not None or not utterance:
                _logger.debug("No utterance (%s); restarting listening", result.error or "empty")
                self._set_state(VoiceSessionState.IDLE)
                continue

            _logger.debug("Heard %r", utterance)
            await self._respond(utterance, generation)

    async def _listen(self) -> RecognitionResult:
        await self._restart_session()
        session = self._session
        assert session is not None  # noqa: S101
        try:
            if self._listen_timeout is not None:
                return await asyncio.wait_for(session, self._listen_timeout)
            return await session
        except TimeoutError:
            self._safe_cancel_recognizer()
            return RecognitionResult.failed(RecognitionError.SPEECH_TIMEOUT)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return RecognitionResult.failed(RecognitionError.CANCELLED)
        except Exception:
            _logger.debug("Recognizer failed", exc_info=True)
            return RecognitionResult.failed(RecognitionError.ENGINE)

    async def _restart_session(self) -> None:
        previous = self._session
        self._cancel_session()
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        self._set_state(VoiceSessionState.LISTENING)
        self._sessions_started += 1
        self._session = asyncio.get_running_loop().create_task(self._speech.listen())

    def _cancel_session(self) -> None:
        session = self._session
        if session is None or session.done():
            return
        session.cancel()
        self._safe_cancel_recognizer()

    def _safe_cancel_recognizer(self) -> None:
        try:
            self._speech.cancel()
        except Exception:
            _logger.debug("Cancelling the recognizer failed", exc_info=True)

    async def _respond(self, utterance: str, generation: int) -> None:
        self._set_state(VoiceSessionState.PROCESSING)
        request = asyncio.get_running_loop().create_task(self._dispatcher.resolve(utterance))
        self._inflight.add(request)
        request.add_done_callback(self._inflight.discard)
        try:
            # Shielded: stopping the loop must not cancel a request already in flight.
            reply = await asyncio.shield(request)
        except asyncio.CancelledError:
            request.add_done_callback(self._log_discarded)
            raise

        if not self._is_current(generation):
            _logger.debug("Discarding reply for %r: voice loop stopped", utterance)
            return

        self._set_state(VoiceSessionState.SPEAKING)
        self._speak(reply)
        self._set_state(VoiceSessionState.IDLE)

    @staticmethod
    def _log_discarded(request: asyncio.Task[str]) -> None:
        if request.cancelled():
            return
        with contextlib.suppress(Exception):
            _logger.debug("Discarding late reply %r after stop", request.result())

    def _speak(self, reply: str) -> None:
        try:
            self._synthesizer.speak(reply)
        except Exception:
            _logger.warning("Speech synthesis failed", exc_info=True)

    def _set_state(self, to_state: VoiceSessionState) -> None:
        from_state = self._state
        if from_state is to_state:
            return
        self._state = to_state
        if self._on_state_change is not None:
            try:
                self._on_state_change(from_state, to_state)
            except Exception:
                _logger.debug("Voice state callback failed", exc_info=True)
