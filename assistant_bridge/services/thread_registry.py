import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Dict, Optional

from assistant_bridge.logging_config import get_logger
from assistant_bridge.services.assistant import AssistantBackend

logger = get_logger("thread_registry")


class ThreadStore(ABC):
    """Maps a user identifier to a backend thread id."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, user_id: str, thread_id: str) -> None:
        pass

    @abstractmethod
    def delete(self, user_id: str) -> None:
        pass


class InMemoryThreadStore(ThreadStore):
    """Process-wide mapping with no expiry; last write wins."""

    def __init__(self):
        self._threads: Dict[str, str] = {}

    def get(self, user_id: str) -> Optional[str]:
        return self._threads.get(user_id)

    def set(self, user_id: str, thread_id: str) -> None:
        self._threads[user_id] = thread_id

    def delete(self, user_id: str) -> None:
        self._threads.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._threads)


class UserLocks:
    """One asyncio.Lock per user, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str):
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._users[user_id] = self._users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[user_id] -= 1
            if not self._users[user_id]:
                del self._users[user_id]
                del self._locks[user_id]

    def __len__(self) -> int:
        return len(self._locks)


class ThreadRegistry:
    """Create-on-first-contact, reuse-thereafter thread lookup."""

    def __init__(self, backend: AssistantBackend, store: Optional[ThreadStore] = None):
        self.backend = backend
        self.store = store if store is not None else InMemoryThreadStore()
        self.locks = UserLocks()

    async def resolve_thread(self, user_id: str) -> str:
        """Return the user's thread id, creating the remote thread on first contact."""
        thread_id = self.store.get(user_id)
        if thread_id:
            return thread_id

        # Concurrent first messages from one user wait here and reuse the winner's thread.
        async with self.locks.hold(user_id):
            thread_id = self.store.get(user_id)
            if thread_id:
                return thread_id

            thread_id = await self.backend.create_thread()
            self.store.set(user_id, thread_id)
            logger.info("Thread created", extra={"context": {"user_id": user_id, "thread_id": thread_id}})
            return thread_id

    def forget(self, user_id: str) -> None:
        self.store.delete(user_id)
