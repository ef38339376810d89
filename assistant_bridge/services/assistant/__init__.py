from assistant_bridge.services.assistant.base import AssistantBackend, AssistantRun, RunLastError, ThreadMessage
from assistant_bridge.services.assistant.errors import (
    AssistantAPIError,
    AssistantConfigurationError,
    AssistantError,
    EmptyReplyError,
    ErrorKind,
    RunFailedError,
    RunTimeoutError,
)
from assistant_bridge.services.assistant.openai_provider import OpenAIAssistantsProvider

__all__ = [
    "AssistantBackend",
    "AssistantRun",
    "RunLastError",
    "ThreadMessage",
    "OpenAIAssistantsProvider",
    "AssistantError",
    "AssistantAPIError",
    "AssistantConfigurationError",
    "EmptyReplyError",
    "ErrorKind",
    "RunFailedError",
    "RunTimeoutError",
]
