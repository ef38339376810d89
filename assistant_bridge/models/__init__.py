from assistant_bridge.models.message import AssistantResponse, AudioTranscription, Message
from assistant_bridge.models.thread import Thread
from assistant_bridge.models.user import User

__all__ = [
    "User",
    "Thread",
    "Message",
    "AssistantResponse",
    "AudioTranscription",
]
