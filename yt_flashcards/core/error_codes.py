"""
Standardised error handling for YT Flashcards.
"""

from yt_flashcards.core.constants import ErrorCode, RETRYABLE_ERRORS


def is_retryable(code: str) -> bool:
    return code in RETRYABLE_ERRORS


class JobError(Exception):
    """Raised when a job encounters a known error condition."""

    def __init__(self, code: str, message: str, retryable: bool | None = None):
        self.code = code
        self.message = message
        # auto-detect retryable from code if not explicitly set
        self.retryable = retryable if retryable is not None else is_retryable(code)
        super().__init__(f"[{code}] {message}")


class ValidationError(JobError):
    """Missing or malformed user input."""

    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT):
        super().__init__(code, message, retryable=False)


class DuplicateError(JobError):
    """A non-failed job already exists for this owner and video."""

    def __init__(self, message: str, job_id: str | None = None, status: str | None = None):
        self.job_id = job_id
        self.status = status
        super().__init__(ErrorCode.DUPLICATE_JOB, message, retryable=False)


class NotFoundError(JobError):
    def __init__(self, message: str, code: str = ErrorCode.VIDEO_NOT_FOUND):
        super().__init__(code, message, retryable=False)


class TransientError(JobError):
    """Network or service hiccup. Always retryable."""

    def __init__(self, code: str, message: str):
        super().__init__(code, message, retryable=True)


class ResourceError(JobError):
    """Local filesystem failure. Logged, never changes job status."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.RESOURCE, message, retryable=False)
