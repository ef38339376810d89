from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from assistant_bridge.services.run_state import RunStatus


@dataclass
class RunLastError:
    code: Optional[str] = None
    message: Optional[str] = None


@dataclass
class AssistantRun:
    id: str
    thread_id: str
    status: RunStatus
    last_error: Optional[RunLastError] = None

    @classmethod
    def from_payload(cls, data: dict) -> "AssistantRun":
        last_error = data.get("last_error")
        return cls(
            id=data["id"],
            thread_id=data.get("thread_id") or "",
            status=RunStatus.parse(data.get("status")),
            last_error=RunLastError(last_error.get("code"), last_error.get("message")) if last_error else None,
        )


@dataclass
class ThreadMessage:
    id: str
    role: str
    text_parts: List[str] = field(default_factory=list)
    run_id: Optional[str] = None
    created_at: Optional[int] = None

    @classmethod
    def from_payload(cls, data: dict) -> "ThreadMessage":
        text_parts = []
        for part in data.get("content") or []:
            if part.get("type") == "text":
                value = (part.get("text") or {}).get("value")
                if value is not None:
                    text_parts.append(value)
        return cls(
            id=data["id"],
            role=data.get("role") or "",
            text_parts=text_parts,
            run_id=data.get("run_id"),
            created_at=data.get("created_at"),
        )


class AssistantBackend(ABC):
    """Remote conversational backend with threads, messages and runs."""

    @abstractmethod
    async def retrieve_assistant(self) -> dict:
        """Fetch the configured assistant; fails when it cannot be resolved."""

    @abstractmethod
    async def create_thread(self) -> str:
        """Create an empty thread and return its id."""

    @abstractmethod
    async def create_message(self, thread_id: str, content: str, metadata: Optional[dict] = None) -> dict:
        """Append a user message to the thread."""

    @abstractmethod
    async def create_run(self, thread_id: str, instructions: Optional[str] = None) -> AssistantRun:
        """Start a run of the configured assistant on the thread."""

    @abstractmethod
    async def get_run(self, thread_id: str, run_id: str) -> AssistantRun:
        """Fetch the current state of a run."""

    @abstractmethod
    async def cancel_run(self, thread_id: str, run_id: str) -> AssistantRun:
        """Ask the backend to stop a run."""

    @abstractmethod
    async def list_messages(self, thread_id: str, run_id: Optional[str] = None, limit: int = 20) -> List[ThreadMessage]:
        """List thread messages, newest first."""
