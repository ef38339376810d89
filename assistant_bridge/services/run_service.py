import asyncio
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

from assistant_bridge.config import settings
from assistant_bridge.logging_config import get_logger
from assistant_bridge.services.assistant import (
    AssistantBackend,
    AssistantError,
    AssistantRun,
    EmptyReplyError,
    RunFailedError,
    RunTimeoutError,
)
from assistant_bridge.services.run_state import RunStatus, is_success, is_terminal

logger = get_logger("run_service")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Provenance:
    message_id: str
    user_id: str
    name: str

    def as_metadata(self) -> dict:
        return {"id": self.message_id, "user_id": self.user_id, "name": self.name}


@dataclass(frozen=True)
class PollPolicy:
    interval_seconds: float = 1.0
    max_attempts: int = 10
    backoff_factor: float = 1.0
    max_interval_seconds: float = 8.0

    @classmethod
    def from_settings(cls) -> "PollPolicy":
        return cls(
            interval_seconds=settings.run_poll_interval_seconds,
            max_attempts=max(settings.run_max_poll_attempts, 1),
            backoff_factor=max(settings.run_poll_backoff_factor, 1.0),
            max_interval_seconds=settings.run_max_poll_interval_seconds,
        )

    def delay(self, attempt: int) -> float:
        """Wait after poll number ``attempt``; ``attempt`` starts at 1."""
        delay = self.interval_seconds * (self.backoff_factor ** (attempt - 1))
        return min(delay, max(self.max_interval_seconds, self.interval_seconds))


async def submit_message(
    backend: AssistantBackend,
    thread_id: str,
    content: str,
    provenance: Provenance,
) -> dict:
    """Append a user message to the thread, tagged with provenance metadata."""
    return await backend.create_message(thread_id, content, metadata=provenance.as_metadata())


async def execute_run(
    backend: AssistantBackend,
    thread_id: str,
    *,
    policy: Optional[PollPolicy] = None,
    sleep: Sleep = asyncio.sleep,
    instructions: Optional[str] = None,
) -> AssistantRun:
    """
    Start a run on the thread and poll it until it settles.

    Returns the completed run. Raises RunTimeoutError once ``max_attempts``
    polls saw no terminal status, RunFailedError when the run ended in any
    other terminal status.
    """
    policy = policy or PollPolicy.from_settings()
    run = await backend.create_run(thread_id, instructions=instructions)
    run_id = run.id

    attempts = 0
    while True:
        run = await backend.get_run(thread_id, run_id)
        attempts += 1
        # The wait follows every fetch, including one that already saw a terminal status.
        await sleep(policy.delay(attempts))
        if is_terminal(run.status) or attempts >= policy.max_attempts:
            break

    logger.debug(
        "Run polling finished",
        extra={"context": {"thread_id": thread_id, "run_id": run_id, "status": run.status.value, "attempts": attempts}},
    )

    if not is_terminal(run.status):
        await _cancel_quietly(backend, thread_id, run_id)
        logger.warning(
            "Run timed out",
            extra={"context": {"thread_id": thread_id, "run_id": run_id, "last_status": run.status.value}},
        )
        run = replace(run, status=RunStatus.TIMED_OUT)
        raise RunTimeoutError(run_id, attempts, run=run)

    if not is_success(run.status):
        last_error = run.last_error
        raise RunFailedError(
            run_id,
            run.status.value,
            last_error=last_error.message if last_error else None,
            code=last_error.code if last_error else None,
        )

    return run


async def _cancel_quietly(backend: AssistantBackend, thread_id: str, run_id: str) -> None:
    try:
        await backend.cancel_run(thread_id, run_id)
    except AssistantError as exc:
        logger.warning(
            "Failed to cancel timed out run",
            extra={"context": {"thread_id": thread_id, "run_id": run_id, "error": str(exc)}},
        )


async def extract_reply(backend: AssistantBackend, thread_id: str, run_id: Optional[str] = None) -> str:
    """Return the first text segment of the newest assistant message in the thread."""
    messages = await backend.list_messages(thread_id, run_id=run_id)
    for message in messages:
        if message.role != "assistant":
            continue
        if run_id and message.run_id and message.run_id != run_id:
            continue
        if message.text_parts:
            return message.text_parts[0]
        break
    raise EmptyReplyError(thread_id)

