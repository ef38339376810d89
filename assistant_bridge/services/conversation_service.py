import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from assistant_bridge.config import settings
from assistant_bridge.logging_config import get_logger
from assistant_bridge.services.assistant import (
    AssistantBackend,
    AssistantError,
    ErrorKind,
    OpenAIAssistantsProvider,
)
from assistant_bridge.services.assistant.errors import mentions_missing_assistant
from assistant_bridge.services.run_service import PollPolicy, Provenance, execute_run, extract_reply, submit_message
from assistant_bridge.services.thread_registry import ThreadRegistry, UserLocks

logger = get_logger("conversation_service")

MSG_CONFIGURATION_ERROR = (
    "Lo siento, hay un problema con la configuración del asistente. Por favor, contacta al soporte."
)
MSG_GENERIC_ERROR = "Lo siento, hubo un error al procesar tu mensaje. Por favor, inténtalo de nuevo más tarde."
DEFAULT_DISPLAY_NAME = "User"


class MessageKind(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


@dataclass
class InboundMessage:
    user_id: str
    content: str
    display_name: Optional[str] = None
    kind: MessageKind = MessageKind.TEXT


def generate_message_id() -> str:
    return f"msg_{int(time.time() * 1000)}"


def fallback_for_error(error: Exception) -> str:
    """Pick the user-facing reply for a failed conversation turn."""
    if isinstance(error, AssistantError):
        if error.kind == ErrorKind.CONFIGURATION:
            return MSG_CONFIGURATION_ERROR
        return MSG_GENERIC_ERROR
    if mentions_missing_assistant(str(error)):
        return MSG_CONFIGURATION_ERROR
    return MSG_GENERIC_ERROR


class ConversationService:
    """Turns one inbound message into exactly one reply text."""

    def __init__(
        self,
        backend: AssistantBackend,
        registry: Optional[ThreadRegistry] = None,
        policy: Optional[PollPolicy] = None,
        serialize_per_user: bool = True,
    ):
        self.backend = backend
        self.registry = registry or ThreadRegistry(backend)
        self.policy = policy
        self.serialize_per_user = serialize_per_user
        self.user_locks = UserLocks()

    async def handle_message(
        self,
        user_id: str,
        content: str,
        display_name: Optional[str] = None,
        kind: MessageKind = MessageKind.TEXT,
        message_id: Optional[str] = None,
    ) -> str:
        """Return the assistant reply, or a fallback text if anything fails."""
        try:
            if self.serialize_per_user:
                async with self.user_locks.hold(user_id):
                    return await self._converse(user_id, content, display_name, kind, message_id)
            return await self._converse(user_id, content, display_name, kind, message_id)
        except Exception as exc:
            kind_label = exc.kind.value if isinstance(exc, AssistantError) else "unexpected"
            logger.error(
                "Error processing message",
                extra={
                    "context": {
                        "user_id": user_id,
                        "error_type": type(exc).__name__,
                        "error_kind": kind_label,
                        "error": str(exc),
                    }
                },
            )
            return fallback_for_error(exc)

    async def handle(self, message: InboundMessage, message_id: Optional[str] = None) -> str:
        return await self.handle_message(
            message.user_id, message.content, message.display_name, message.kind, message_id=message_id
        )

    async def _converse(
        self,
        user_id: str,
        content: str,
        display_name: Optional[str],
        kind: MessageKind,
        message_id: Optional[str],
    ) -> str:
        thread_id = await self.registry.resolve_thread(user_id)

        provenance = Provenance(
            message_id=message_id or generate_message_id(),
            user_id=user_id,
            name=display_name or DEFAULT_DISPLAY_NAME,
        )
        await submit_message(self.backend, thread_id, content, provenance)

        run = await execute_run(self.backend, thread_id, policy=self.policy)
        reply = await extract_reply(self.backend, thread_id, run_id=run.id)

        logger.info(
            "Assistant replied",
            extra={
                "context": {
                    "user_id": user_id,
                    "thread_id": thread_id,
                    "run_id": run.id,
                    "kind": MessageKind(kind).value,
                    "reply_len": len(reply),
                }
            },
        )
        return reply


_assistant_provider: Optional[OpenAIAssistantsProvider] = None
_conversation_service: Optional[ConversationService] = None


def get_assistant_provider() -> OpenAIAssistantsProvider:
    """Get or create the assistant backend instance."""
    global _assistant_provider
    if _assistant_provider is None:
        _assistant_provider = OpenAIAssistantsProvider(
            api_key=settings.openai_api_key,
            assistant_id=settings.openai_assistant_id,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.openai_timeout_seconds,
        )
    return _assistant_provider


def get_conversation_service() -> ConversationService:
    """Get or create the process-wide conversation service."""
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = ConversationService(get_assistant_provider(), policy=PollPolicy.from_settings())
    return _conversation_service
