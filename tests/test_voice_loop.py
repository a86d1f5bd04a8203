from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from pyopenbot.dispatcher import CommandDispatcher
from pyopenbot.exceptions import OpenBotConfigError
from pyopenbot.models.assistant import AssistantFailure, AssistantFailureReason, AssistantReply, AssistantResult
from pyopenbot.models.voice import RecognitionError, RecognitionResult, VoiceSessionState
from pyopenbot.voice import VoiceCommandLoop


class _ScriptedSpeech:
    """Returns scripted results in order, then listens forever until cancelled."""

    def __init__(self, results: list[Any] | None = None) -> None:
        self._results = list(results or [])
        self.active = 0
        self.max_active = 0
        self.listen_calls = 0
        self.cancel_calls = 0
        self.release_calls = 0

    async def listen(self) -> RecognitionResult:
        self.listen_calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self._results:
                item = self._results.pop(0)
                await asyncio.sleep(0)
                if isinstance(item, BaseException):
                    raise item
                return item
            await asyncio.Event().wait()
            raise AssertionError("unreachable")
        finally:
            self.active -= 1

    def cancel(self) -> None:
        self.cancel_calls += 1

    def release(self) -> None:
        self.release_calls += 1


class _RecordingSynth:
    def __init__(self, *, fail_first: bool = False) -> None:
        self.spoken: list[str] = []
        self._fail_next = fail_first
        self.stop_calls = 0
        self.shutdown_calls = 0

    def speak(self, text: str) -> None:
        if self._fail_next:
            self._fail_next = False
            raise RuntimeError("audio device lost")
        self.spoken.append(text)

    def stop(self) -> None:
        self.stop_calls += 1

    def shutdown(self) -> None:
        self.shutdown_calls += 1


class _FakeAssistant:
    def __init__(self, result: AssistantResult, *, gate: asyncio.Event | None = None) -> None:
        self._result = result
        self._gate = gate
        self.calls: list[str] = []
        self.finished = 0

    async def ask(self, utterance: str) -> AssistantResult:
        self.calls.append(utterance)
        if self._gate is not None:
            await self._gate.wait()
        self.finished += 1
        return self._result


async def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


def _loop(
    speech: _ScriptedSpeech,
    synth: _RecordingSynth,
    assistant: _FakeAssistant | None = None,
    **kwargs: Any,
) -> VoiceCommandLoop:
    return VoiceCommandLoop(speech, CommandDispatcher(assistant), synth, **kwargs)


@pytest.mark.asyncio
async def test_local_rule_is_spoken_without_remote_calls() -> None:
    speech = _ScriptedSpeech([RecognitionResult.heard("turn left")])
    synth = _RecordingSynth()
    assistant = _FakeAssistant(AssistantReply(text="unused"))
    loop = _loop(speech, synth, assistant)

    loop.start()
    await _wait_for(lambda: synth.spoken == ["Turning left."])
    await loop.aclose()

    assert assistant.calls == []


@pytest.mark.asyncio
async def test_remote_reply_is_handed_to_synthesizer() -> None:
    speech = _ScriptedSpeech([RecognitionResult.heard("tell me a joke")])
    synth = _RecordingSynth()
    assistant = _FakeAssistant(AssistantReply(text="Why did..."))
    loop = _loop(speech, synth, assistant)

    loop.start()
    await _wait_for(lambda: bool(synth.spoken))
    await loop.aclose()

    assert synth.spoken == ["Why did..."]
    assert assistant.calls == ["tell me a joke"]


@pytest.mark.asyncio
async def test_remote_failure_speaks_fallback() -> None:
    speech = _ScriptedSpeech([RecognitionResult.heard("what's the weather")])
    synth = _RecordingSynth()
    assistant = _FakeAssistant(AssistantFailure(reason=AssistantFailureReason.TRANSPORT))
    loop = _loop(speech, synth, assistant)

    loop.start()
    await _wait_for(lambda: bool(synth.spoken))
    await loop.aclose()

    assert synth.spoken == ["Sorry, I didn't understand that."]


@pytest.mark.asyncio
async def test_recognition_errors_restart_listening() -> None:
    speech = _ScriptedSpeech(
        [
            RecognitionResult.failed(RecognitionError.NO_MATCH),
            RecognitionResult.failed(RecognitionError.ENGINE),
            RuntimeError("recognizer crashed"),
            RecognitionResult.heard("   "),
            RecognitionResult.heard("Hello"),
        ]
    )
    synth = _RecordingSynth()
    loop = _loop(speech, synth)

    loop.start()
    await _wait_for(lambda: speech.listen_calls >= 6)
    await loop.aclose()

    assert synth.spoken == ["Hi there!"]
    assert speech.max_active == 1


@pytest.mark.asyncio
async def test_listen_timeout_abandons_session_and_restarts() -> None:
    speech = _ScriptedSpeech()
    synth = _RecordingSynth()
    loop = _loop(speech, synth, listen_timeout=0.02)

    loop.start()
    await _wait_for(lambda: speech.listen_calls >= 3)
    await loop.aclose()

    assert speech.cancel_calls >= 2
    assert speech.max_active == 1
    assert synth.spoken == []


@pytest.mark.asyncio
async def test_concurrent_start_and_restart_never_overlap_sessions() -> None:
    speech = _ScriptedSpeech()
    synth = _RecordingSynth()
    loop = _loop(speech, synth)

    loop.start()
    loop.start()
    await _wait_for(lambda: speech.listen_calls >= 1)

    for _ in range(10):
        loop.stop()
        loop.start()
        loop.start()
        await asyncio.sleep(0)
    await _wait_for(lambda: speech.active == 1)
    await loop.aclose()

    assert speech.max_active == 1
    assert speech.active == 0


@pytest.mark.asyncio
async def test_stop_cancels_session_and_releases_recognizer() -> None:
    speech = _ScriptedSpeech()
    synth = _RecordingSynth()
    loop = _loop(speech, synth)

    loop.start()
    await _wait_for(lambda: loop.state is VoiceSessionState.LISTENING and speech.active == 1)

    loop.stop()
    assert speech.cancel_calls == 1
    assert speech.release_calls == 1
    assert loop.state is VoiceSessionState.IDLE
    assert loop.is_running is False

    await asyncio.sleep(0.05)
    assert speech.listen_calls == 1
    assert speech.active == 0

    loop.stop()
    assert speech.release_calls == 1


@pytest.mark.asyncio
async def test_reply_arriving_after_stop_is_discarded() -> None:
    gate = asyncio.Event()
    speech = _ScriptedSpeech([RecognitionResult.heard("tell me a joke")])
    synth = _RecordingSynth()
    assistant = _FakeAssistant(AssistantReply(text="Why did..."), gate=gate)
    loop = _loop(speech, synth, assistant)

    loop.start()
    await _wait_for(lambda: assistant.calls == ["tell me a joke"])
    assert loop.state is VoiceSessionState.PROCESSING

    loop.stop()
    gate.set()
    await _wait_for(lambda: assistant.finished == 1)
    await asyncio.sleep(0.01)
    await loop.aclose()

    assert synth.spoken == []


@pytest.mark.asyncio
async def test_state_transitions_follow_the_cycle() -> None:
    transitions: list[tuple[VoiceSessionState, VoiceSessionState]] = []
    speech = _ScriptedSpeech([RecognitionResult.heard("hello")])
    synth = _RecordingSynth()
    loop = _loop(speech, synth, on_state_change=lambda old, new: transitions.append((old, new)))

    loop.start()
    await _wait_for(lambda: speech.listen_calls == 2)
    await loop.aclose()

    assert transitions[:5] == [
        (VoiceSessionState.IDLE, VoiceSessionState.LISTENING),
        (VoiceSessionState.LISTENING, VoiceSessionState.PROCESSING),
        (VoiceSessionState.PROCESSING, VoiceSessionState.SPEAKING),
        (VoiceSessionState.SPEAKING, VoiceSessionState.IDLE),
        (VoiceSessionState.IDLE, VoiceSessionState.LISTENING),
    ]
    assert transitions[-1] == (VoiceSessionState.LISTENING, VoiceSessionState.IDLE)


@pytest.mark.asyncio
async def test_synthesizer_failure_does_not_stop_the_loop() -> None:
    speech = _ScriptedSpeech([RecognitionResult.heard("hello"), RecognitionResult.heard("stop")])
    synth = _RecordingSynth(fail_first=True)
    loop = _loop(speech, synth)

    loop.start()
    await _wait_for(lambda: synth.spoken == ["Stopping now."])
    assert loop.is_running
    await loop.aclose()


@pytest.mark.asyncio
async def test_loop_can_be_restarted_after_stop() -> None:
    speech = _ScriptedSpeech()
    synth = _RecordingSynth()
    loop = _loop(speech, synth)

    loop.start()
    await _wait_for(lambda: speech.listen_calls == 1)
    await loop.aclose()

    loop.start()
    await _wait_for(lambda: speech.listen_calls == 2)
    await loop.aclose()

    assert speech.release_calls == 2
    assert speech.max_active == 1


@pytest.mark.asyncio
async def test_submit_text_speaks_reply() -> None:
    synth = _RecordingSynth()
    loop = _loop(_ScriptedSpeech(), synth)

    reply = await loop.submit_text("  Move Forward ")

    assert reply == "Moving forward now."
    assert synth.spoken == ["Moving forward now."]


@pytest.mark.asyncio
async def test_submit_text_reply_is_discarded_when_stopped_meanwhile() -> None:
    gate = asyncio.Event()
    synth = _RecordingSynth()
    assistant = _FakeAssistant(AssistantReply(text="late"), gate=gate)
    loop = _loop(_ScriptedSpeech(), synth, assistant)
    loop.start()

    pending = asyncio.create_task(loop.submit_text("tell me a story"))
    await _wait_for(lambda: bool(assistant.calls))
    loop.stop()
    gate.set()

    assert await pending is None
    assert synth.spoken == []
    await loop.aclose()


def test_loop_without_dispatcher_is_a_config_error() -> None:
    with pytest.raises(OpenBotConfigError):
        VoiceCommandLoop(_ScriptedSpeech(), None, _RecordingSynth())
