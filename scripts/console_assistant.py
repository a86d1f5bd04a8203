#!/usr/bin/env python3
"""Drive the robot controller from a terminal.

Each line read from stdin is treated as one recognized utterance and goes
through the same listen -> resolve -> speak cycle as real speech. Replies
are printed instead of spoken. The vehicle link is a console stand-in over
Bluetooth, so no permission handshake is involved.

Lines starting with ``/`` are console commands:

    /connect     open the vehicle link
    /disconnect  close the vehicle link
    /status      print connection and voice state
    /quit        exit (EOF works too)

Configuration comes from ``OPENBOT_*`` environment variables; set
``OPENBOT_ASSISTANT_API_KEY`` to exercise the remote assistant.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyopenbot import (  # noqa: E402
    ConnectionStatus,
    OpenBotConfig,
    OpenBotError,
    RecognitionError,
    RecognitionResult,
    RobotController,
    TransportKind,
    VoiceSessionState,
)

_LOG = logging.getLogger("console_assistant")


class StdinSpeech:
    """Speech service fed by a background thread reading stdin lines."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self.closed = asyncio.Event()
        self._reader = threading.Thread(target=self._read_stdin, name="stdin-reader", daemon=True)
        self._reader.start()

    def _read_stdin(self) -> None:
        for line in sys.stdin:
            self._loop.call_soon_threadsafe(self._lines.put_nowait, line.rstrip("\n"))
        self._loop.call_soon_threadsafe(self._lines.put_nowait, None)

    async def next_line(self) -> str | None:
        return await self._lines.get()

    async def listen(self) -> RecognitionResult:
        line = await self.next_line()
        if line is None:
            self.closed.set()
            return RecognitionResult.failed(RecognitionError.CANCELLED)
        if line.startswith("/"):
            self._loop.call_soon(self.on_command, line[1:].strip().lower())
            return RecognitionResult.failed(RecognitionError.NO_MATCH)
        return RecognitionResult.heard(line)

    def on_command(self, command: str) -> None:
        # Replaced by the driver once the controller exists.
        _LOG.warning("Ignoring console command %r", command)

    def cancel(self) -> None:
        return None

    def release(self) -> None:
        return None


class PrintSynthesizer:
    def speak(self, text: str) -> None:
        print(f"robot> {text}", flush=True)

    def stop(self) -> None:
        return None

    def shutdown(self) -> None:
        print("[console] synthesizer shut down")


class ConsoleLink:
    """Vehicle link that only reports what it would do."""

    def __init__(self) -> None:
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self, device: Any) -> None:
        print(f"[console] vehicle link opened (device={device!r})")
        self._connected = True

    def disconnect(self) -> None:
        print("[console] vehicle link closed")
        self._connected = False


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Type commands to the robot controller; replies are printed.",
    )
    parser.add_argument(
        "--listen-timeout",
        type=float,
        default=0.0,
        help="Seconds before an idle listening session restarts (0 = wait forever).",
    )
    parser.add_argument(
        "--no-welcome",
        action="store_true",
        help="Skip the welcome phrase.",
    )
    parser.add_argument(
        "--show-states",
        action="store_true",
        help="Print every voice state transition.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_voice_state(old: VoiceSessionState, new: VoiceSessionState) -> None:
    print(f"[voice] {old} -> {new}")


def _print_connection(status: ConnectionStatus) -> None:
    print(f"[link] {status.state} ({status.kind})")


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {
        "transport": TransportKind.BLUETOOTH,
        "listen_timeout": args.listen_timeout,
    }
    if args.no_welcome:
        overrides["welcome_phrase"] = None
    config = OpenBotConfig.from_env(**overrides)
    if not config.assistant_configured:
        print("[console] OPENBOT_ASSISTANT_API_KEY not set; only local commands will be answered")

    speech = StdinSpeech(asyncio.get_running_loop())
    controller = RobotController(
        config,
        links={TransportKind.BLUETOOTH: ConsoleLink()},
        speech=speech,
        synthesizer=PrintSynthesizer(),
        on_voice_state_change=_print_voice_state if args.show_states else None,
    )

    def on_command(command: str) -> None:
        connection = controller.connection
        if command == "connect":
            connection.request_connect()
        elif command == "disconnect":
            connection.disconnect()
        elif command == "status":
            print(f"[console] link={connection.current_state()} voice={controller.voice.state}")
        elif command in {"quit", "exit"}:
            speech.closed.set()
        else:
            print(f"[console] unknown command /{command}")

    speech.on_command = on_command  # type: ignore[method-assign]

    async with controller:
        controller.connection.add_listener(_print_connection)
        await speech.closed.wait()
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except OpenBotError as exc:
        print(f"[console] {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(_main())
