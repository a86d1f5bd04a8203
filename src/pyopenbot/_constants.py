"""Internal constants shared across the library."""

from types import MappingProxyType

DEFAULT_ASSISTANT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_ASSISTANT_MODEL = "gpt-4o-mini"
USER_AGENT = "pyopenbot/1"

FALLBACK_REPLY = "Sorry, I didn't understand that."
WELCOME_PHRASE = "Welcome to OpenBot."

# ------------------------------------------------------------------
# Local command rules (normalized utterance -> spoken reply)
# ------------------------------------------------------------------

DEFAULT_CHAT_RULES: MappingProxyType[str, str] = MappingProxyType(
    {
        "hello": "Hi there!",
        "how are you": "I'm just a robot, but I'm doing fine.",
        "what is your name": "My name is Neo, your assistant.",
        "move forward": "Moving forward now.",
        "move back": "Reversing now.",
        "turn left": "Turning left.",
        "turn right": "Turning right.",
        "stop": "Stopping now.",
    }
)
