from assistant_bridge.services.conversation_service import (
    ConversationService,
    InboundMessage,
    MessageKind,
    get_conversation_service,
)
from assistant_bridge.services.run_service import (
    PollPolicy,
    Provenance,
    execute_run,
    extract_reply,
    submit_message,
)
from assistant_bridge.services.run_state import RunStatus, is_success, is_terminal
from assistant_bridge.services.thread_registry import InMemoryThreadStore, ThreadRegistry, ThreadStore
