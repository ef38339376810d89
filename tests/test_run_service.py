import asyncio
from unittest.mock import AsyncMock

import pytest

from assistant_bridge.services.assistant import (
    AssistantAPIError,
    EmptyReplyError,
    ErrorKind,
    RunFailedError,
    RunLastError,
    RunTimeoutError,
    ThreadMessage,
)
from assistant_bridge.services.run_service import (
    PollPolicy,
    Provenance,
    execute_run,
    extract_reply,
    submit_message,
)
from assistant_bridge.services.run_state import RunStatus
from tests.conftest import FakeBackend, no_sleep


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class TestSubmitMessage:
    def test_attaches_provenance_metadata(self, fake_backend):
        provenance = Provenance(message_id="m-1", user_id="5215550001", name="Ana")

        asyncio.run(submit_message(fake_backend, "thread_x", "Hola", provenance))

        assert fake_backend.created_messages == [
            ("thread_x", "Hola", {"id": "m-1", "user_id": "5215550001", "name": "Ana"})
        ]

    def test_backend_failure_propagates(self):
        backend = FakeBackend()
        backend.create_message = AsyncMock(side_effect=AssistantAPIError("boom", 500))

        with pytest.raises(AssistantAPIError):
            asyncio.run(submit_message(backend, "thread_x", "Hola", Provenance("m-1", "u", "n")))


class TestExecuteRun:
    def test_succeeds_after_four_polls(self):
        backend = FakeBackend(["queued", "in_progress", "in_progress", "completed"])

        run = asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=no_sleep))

        assert run.status.value == "completed"
        assert backend.get_run_calls == 4

    def test_times_out_without_eleventh_poll(self):
        backend = FakeBackend(["in_progress"] * 10 + ["completed"])

        with pytest.raises(RunTimeoutError) as exc_info:
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=no_sleep))

        assert backend.get_run_calls == 10
        assert "response exceeded wait time" in str(exc_info.value)
        assert exc_info.value.kind == ErrorKind.TRANSIENT
        assert exc_info.value.retryable is True

    def test_timeout_cancels_remote_run(self):
        backend = FakeBackend(["queued"])

        with pytest.raises(RunTimeoutError) as exc_info:
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(max_attempts=3), sleep=no_sleep))

        assert backend.cancelled == [exc_info.value.run_id]

    def test_cancel_failure_still_raises_timeout(self):
        backend = FakeBackend(["in_progress"])
        backend.cancel_run = AsyncMock(side_effect=AssistantAPIError("already finished", 400))

        with pytest.raises(RunTimeoutError):
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(max_attempts=2), sleep=no_sleep))

    def test_completed_on_last_attempt_is_success(self):
        backend = FakeBackend(["in_progress"] * 9 + ["completed"])

        run = asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=no_sleep))

        assert run.status.value == "completed"
        assert backend.get_run_calls == 10

    def test_failed_run_carries_last_error(self):
        backend = FakeBackend(["in_progress", "failed"], last_error=RunLastError("rate_limit_exceeded", "rate limit"))

        with pytest.raises(RunFailedError) as exc_info:
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=no_sleep))

        assert "rate limit" in str(exc_info.value)
        assert exc_info.value.code == "rate_limit_exceeded"
        assert backend.get_run_calls == 2

    def test_failed_run_without_details(self):
        backend = FakeBackend(["failed"])

        with pytest.raises(RunFailedError) as exc_info:
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=no_sleep))

        assert exc_info.value.last_error is None
        assert exc_info.value.kind == ErrorKind.PERMANENT

    @pytest.mark.parametrize("status", ["cancelled", "expired", "incomplete"])
    def test_other_terminal_failures_raise(self, status):
        backend = FakeBackend([status])

        with pytest.raises(RunFailedError) as exc_info:
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=no_sleep))

        assert exc_info.value.status == status
        assert backend.get_run_calls == 1

    def test_terminates_within_ceiling_for_unknown_statuses(self):
        backend = FakeBackend(["queued", "mystery", "requires_action", "cancelling"])

        with pytest.raises(RunTimeoutError):
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(max_attempts=6), sleep=no_sleep))

        assert backend.get_run_calls == 6

    def test_sleeps_after_every_poll(self):
        backend = FakeBackend(["queued", "in_progress", "completed"])
        sleep = SleepRecorder()

        asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(interval_seconds=1.0), sleep=sleep))

        assert sleep.calls == [1.0, 1.0, 1.0]

    def test_instant_completion_still_waits_one_interval(self):
        backend = FakeBackend(["completed"])
        sleep = SleepRecorder()

        run = asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=sleep))

        assert run.status.value == "completed"
        assert sleep.calls == [1.0]

    def test_timeout_waits_after_each_of_ten_polls(self):
        backend = FakeBackend(["in_progress"] * 10)
        sleep = SleepRecorder()

        with pytest.raises(RunTimeoutError) as exc_info:
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=sleep))

        assert backend.get_run_calls == 10
        assert sleep.calls == [1.0] * 10
        assert exc_info.value.attempts == 10

    def test_timed_out_run_is_tagged(self):
        backend = FakeBackend(["in_progress"])

        with pytest.raises(RunTimeoutError) as exc_info:
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(max_attempts=2), sleep=no_sleep))

        assert exc_info.value.run.status == RunStatus.TIMED_OUT
        assert exc_info.value.run.id == exc_info.value.run_id

    def test_exponential_backoff_is_capped(self):
        backend = FakeBackend(["in_progress"])
        sleep = SleepRecorder()
        policy = PollPolicy(interval_seconds=1.0, max_attempts=6, backoff_factor=2.0, max_interval_seconds=5.0)

        with pytest.raises(RunTimeoutError):
            asyncio.run(execute_run(backend, "thread_x", policy=policy, sleep=sleep))

        assert sleep.calls == [1.0, 2.0, 4.0, 5.0, 5.0, 5.0]

    def test_create_run_failure_propagates(self):
        backend = FakeBackend()
        backend.create_run = AsyncMock(side_effect=AssistantAPIError("No assistant found with id 'asst_x'.", 404))

        with pytest.raises(AssistantAPIError) as exc_info:
            asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=no_sleep))

        assert exc_info.value.kind == ErrorKind.CONFIGURATION
        assert backend.get_run_calls == 0

    def test_passes_instructions_override(self):
        backend = FakeBackend()
        backend.create_run = AsyncMock(wraps=backend.create_run)

        asyncio.run(execute_run(backend, "thread_x", policy=PollPolicy(), sleep=no_sleep, instructions="Sé breve"))

        backend.create_run.assert_awaited_once_with("thread_x", instructions="Sé breve")


class TestExtractReply:
    def test_returns_newest_assistant_message(self):
        backend = FakeBackend()
        backend.messages["thread_x"] = [
            ThreadMessage(id="m3", role="assistant", text_parts=["Nueva respuesta", "extra"], run_id="run_2"),
            ThreadMessage(id="m2", role="user", text_parts=["Segunda pregunta"]),
            ThreadMessage(id="m1", role="assistant", text_parts=["Respuesta vieja"], run_id="run_1"),
        ]

        assert asyncio.run(extract_reply(backend, "thread_x")) == "Nueva respuesta"

    def test_skips_user_message_listed_first(self):
        backend = FakeBackend()
        backend.messages["thread_x"] = [
            ThreadMessage(id="m2", role="user", text_parts=["Mi pregunta"]),
            ThreadMessage(id="m1", role="assistant", text_parts=["La respuesta"], run_id="run_1"),
        ]

        assert asyncio.run(extract_reply(backend, "thread_x", run_id="run_1")) == "La respuesta"

    def test_ignores_replies_from_other_runs(self):
        backend = FakeBackend()
        backend.messages["thread_x"] = [
            ThreadMessage(id="m2", role="assistant", text_parts=["De otra ejecución"], run_id="run_other"),
        ]

        with pytest.raises(EmptyReplyError):
            asyncio.run(extract_reply(backend, "thread_x", run_id="run_1"))

    def test_empty_thread_raises(self):
        backend = FakeBackend()

        with pytest.raises(EmptyReplyError):
            asyncio.run(extract_reply(backend, "thread_missing"))

    def test_assistant_message_without_text_raises(self):
        backend = FakeBackend()
        backend.messages["thread_x"] = [ThreadMessage(id="m1", role="assistant", text_parts=[])]

        with pytest.raises(EmptyReplyError):
            asyncio.run(extract_reply(backend, "thread_x"))

    def test_round_trip_returns_reply_regardless_of_history(self):
        backend = FakeBackend()
        thread_id = asyncio.run(backend.create_thread())
        for index in range(5):
            backend.messages[thread_id].insert(
                0, ThreadMessage(id=f"old{index}", role="assistant", text_parts=[f"old {index}"], run_id=f"old_run{index}")
            )

        async def scenario():
            await submit_message(backend, thread_id, "¿Horario?", Provenance("m-9", "u1", "Ana"))
            run = await execute_run(backend, thread_id, policy=PollPolicy(), sleep=no_sleep)
            return await extract_reply(backend, thread_id, run_id=run.id)

        backend.reply_text = "Abrimos de 9 a 18"
        assert asyncio.run(scenario()) == "Abrimos de 9 a 18"


class TestPollPolicy:
    def test_defaults_bound_worst_case_wait(self):
        policy = PollPolicy()
        total = sum(policy.delay(attempt) for attempt in range(1, policy.max_attempts + 1))
        assert policy.max_attempts == 10
        assert total == policy.max_attempts * policy.interval_seconds

    def test_from_settings_clamps_values(self, monkeypatch):
        from assistant_bridge.services import run_service

        monkeypatch.setattr(run_service.settings, "run_max_poll_attempts", 0)
        monkeypatch.setattr(run_service.settings, "run_poll_backoff_factor", 0.5)

        policy = PollPolicy.from_settings()

        assert policy.max_attempts == 1
        assert policy.backoff_factor == 1.0
