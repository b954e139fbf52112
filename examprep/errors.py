"""Error types raised by the data and session layers."""


class ExamPrepError(Exception):
    """Base class for all package errors."""


class TransientNetworkError(ExamPrepError):
    """Request failed in transport or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationRequiredError(TransientNetworkError):
    """Remote service answered 401."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401)


class RateLimitedError(TransientNetworkError):
    """Remote service answered 429."""

    def __init__(self, message: str = "Too many requests"):
        super().__init__(message, status_code=429)


class MalformedPayloadError(ExamPrepError):
    """Response body could not be parsed or misses required fields."""


class InvalidQuestionCountError(ExamPrepError, ValueError):
    """Random quiz question count is outside the allowed range."""


class QuestionSetMismatchError(ExamPrepError):
    """Refetched question set does not contain the same questions."""


class StorageQuotaExceededError(ExamPrepError):
    """Storage write would exceed the configured quota."""
