"""pyopenbot - vehicle connection lifecycle and voice command loop for a small robot."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyopenbot")
except PackageNotFoundError:
    __version__ = "0+local"
from pyopenbot.assistant import RemoteAssistantClient
from pyopenbot.config import OpenBotConfig
from pyopenbot.connection import ConnectionManager
from pyopenbot.controller import RobotController
from pyopenbot.dispatcher import CommandDispatcher, normalize_utterance
from pyopenbot.exceptions import (
    AssistantError,
    AssistantResponseError,
    AssistantTransportError,
    OpenBotConfigError,
    OpenBotError,
    VehicleLinkError,
)
from pyopenbot.models import (
    AssistantFailure,
    AssistantFailureReason,
    AssistantReply,
    ConnectionState,
    ConnectionStatus,
    RecognitionError,
    RecognitionResult,
    TransportKind,
    VoiceSessionState,
)
from pyopenbot.vehicle import PermissionRequester, VehicleLink
from pyopenbot.voice import SpeechService, SpeechSynthesizer, VoiceCommandLoop

__all__ = [
    "__version__",
    "AssistantError",
    "AssistantFailure",
    "AssistantFailureReason",
    "AssistantReply",
    "AssistantResponseError",
    "AssistantTransportError",
    "CommandDispatcher",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "OpenBotConfig",
    "OpenBotConfigError",
    "OpenBotError",
    "PermissionRequester",
    "RecognitionError",
    "RecognitionResult",
    "RemoteAssistantClient",
    "RobotController",
    "SpeechService",
    "SpeechSynthesizer",
    "TransportKind",
    "VehicleLink",
    "VehicleLinkError",
    "VoiceCommandLoop",
    "VoiceSessionState",
    "normalize_utterance",
]
