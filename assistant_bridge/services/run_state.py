from enum import Enum


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    EXPIRED = "expired"
    # Local only: the poll ceiling was reached before a terminal status.
    TIMED_OUT = "timed_out"

    @classmethod
    def parse(cls, value: str | None) -> "RunStatus":
        """Map a backend status string to a RunStatus; unknown values count as in progress."""
        try:
            return cls(value)
        except ValueError:
            return cls.IN_PROGRESS


SUCCESS_STATES = frozenset({RunStatus.COMPLETED})

FAILURE_STATES = frozenset(
    {
        RunStatus.FAILED,
        RunStatus.CANCELLED,
        RunStatus.EXPIRED,
        RunStatus.INCOMPLETE,
        RunStatus.TIMED_OUT,
    }
)


def is_terminal(status: RunStatus) -> bool:
    """Check if the run will not change status anymore."""
    return status in SUCCESS_STATES or status in FAILURE_STATES


def is_success(status: RunStatus) -> bool:
    return status in SUCCESS_STATES
