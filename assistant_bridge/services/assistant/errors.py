"""Error taxonomy for the assistant backend and the run lifecycle.

Every error carries an ``ErrorKind`` set by the component that detects the
condition, so callers decide on fallbacks or retries without parsing text.
"""

from enum import Enum
from typing import Optional

MISSING_ASSISTANT_MARKER = "no assistant found"

TRANSIENT_STATUS_CODES = frozenset({408, 409, 429, 500, 502, 503, 504})
TRANSIENT_RUN_ERROR_CODES = frozenset({"rate_limit_exceeded", "server_error"})


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


def mentions_missing_assistant(message: Optional[str]) -> bool:
    return MISSING_ASSISTANT_MARKER in (message or "").lower()


class AssistantError(Exception):
    def __init__(self, message: str, kind: ErrorKind = ErrorKind.PERMANENT):
        self.message = message
        self.kind = kind
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT


class AssistantConfigurationError(AssistantError):
    def __init__(self, message: str):
        super().__init__(message, ErrorKind.CONFIGURATION)


class AssistantAPIError(AssistantError):
    """Backend answered with a non-2xx status, or could not be reached (status_code is None)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, self._classify(message, status_code))

    @staticmethod
    def _classify(message: str, status_code: Optional[int]) -> ErrorKind:
        if mentions_missing_assistant(message):
            return ErrorKind.CONFIGURATION
        if status_code is None or status_code in TRANSIENT_STATUS_CODES:
            return ErrorKind.TRANSIENT
        return ErrorKind.PERMANENT


class RunTimeoutError(AssistantError):
    def __init__(self, run_id: str, attempts: int, run=None):
        self.run_id = run_id
        self.attempts = attempts
        # Last polled run, tagged timed_out.
        self.run = run
        super().__init__(
            f"Assistant response exceeded wait time (run={run_id}, attempts={attempts})",
            ErrorKind.TRANSIENT,
        )


class RunFailedError(AssistantError):
    def __init__(self, run_id: str, status: str, last_error: Optional[str] = None, code: Optional[str] = None):
        self.run_id = run_id
        self.status = status
        self.last_error = last_error
        self.code = code
        if mentions_missing_assistant(last_error):
            kind = ErrorKind.CONFIGURATION
        elif code in TRANSIENT_RUN_ERROR_CODES:
            kind = ErrorKind.TRANSIENT
        else:
            kind = ErrorKind.PERMANENT
        super().__init__(f"Assistant run {status}: {last_error or 'no error details'}", kind)


class EmptyReplyError(AssistantError):
    def __init__(self, thread_id: str):
        self.thread_id = thread_id
        super().__init__(f"No assistant reply found in thread {thread_id}", ErrorKind.PERMANENT)
