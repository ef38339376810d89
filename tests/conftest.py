import itertools
import os
from typing import List, Optional
from unittest.mock import Mock

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("VERIFY_TOKEN", "verify-secret")
os.environ.setdefault("VERIFY_ASSISTANT_ON_STARTUP", "false")

from assistant_bridge.services.assistant import AssistantBackend, AssistantRun, RunLastError, ThreadMessage
from assistant_bridge.services.run_state import RunStatus


class FakeBackend(AssistantBackend):
    """In-memory backend that replays a scripted sequence of run statuses."""

    def __init__(self, statuses: Optional[List[str]] = None, last_error: Optional[RunLastError] = None):
        self.statuses = list(statuses or ["completed"])
        self.last_error = last_error
        self.threads_created = 0
        self.messages: dict[str, list[ThreadMessage]] = {}
        self.created_messages: list[tuple[str, str, Optional[dict]]] = []
        self.get_run_calls = 0
        self.cancelled: list[str] = []
        self.reply_text = "Hola, ¿en qué puedo ayudarte?"
        self._ids = itertools.count(1)

    async def retrieve_assistant(self) -> dict:
        return {"id": "asst_test", "name": "Test assistant"}

    async def create_thread(self) -> str:
        self.threads_created += 1
        thread_id = f"thread_{next(self._ids)}"
        self.messages[thread_id] = []
        return thread_id

    async def create_message(self, thread_id: str, content: str, metadata: Optional[dict] = None) -> dict:
        self.created_messages.append((thread_id, content, metadata))
        message = ThreadMessage(id=f"msg_{next(self._ids)}", role="user", text_parts=[content])
        self.messages.setdefault(thread_id, []).insert(0, message)
        return {"id": message.id}

    async def create_run(self, thread_id: str, instructions: Optional[str] = None) -> AssistantRun:
        return AssistantRun(id=f"run_{next(self._ids)}", thread_id=thread_id, status=RunStatus.QUEUED)

    async def get_run(self, thread_id: str, run_id: str) -> AssistantRun:
        index = min(self.get_run_calls, len(self.statuses) - 1)
        self.get_run_calls += 1
        status = RunStatus.parse(self.statuses[index])
        already_replied = any(m.run_id == run_id for m in self.messages.get(thread_id, []))
        if status == RunStatus.COMPLETED and not already_replied:
            reply = ThreadMessage(
                id=f"msg_{next(self._ids)}", role="assistant", text_parts=[self.reply_text], run_id=run_id
            )
            self.messages.setdefault(thread_id, []).insert(0, reply)
        last_error = self.last_error if status == RunStatus.FAILED else None
        return AssistantRun(id=run_id, thread_id=thread_id, status=status, last_error=last_error)

    async def cancel_run(self, thread_id: str, run_id: str) -> AssistantRun:
        self.cancelled.append(run_id)
        return AssistantRun(id=run_id, thread_id=thread_id, status=RunStatus.CANCELLING)

    async def list_messages(self, thread_id: str, run_id: Optional[str] = None, limit: int = 20) -> List[ThreadMessage]:
        return list(self.messages.get(thread_id, []))[:limit]


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("OPENAI_ASSISTANT_ID", "asst_test")
    monkeypatch.setenv("VERIFY_TOKEN", "verify-secret")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
