"""Exception types raised across casaflow."""

from typing import Optional


class CasaflowError(Exception):
    """Base class for casaflow errors."""


class ConfigurationError(CasaflowError):
    """Required configuration or credentials are missing. Fatal, no work attempted."""


class UpstreamError(CasaflowError):
    """The LLM gateway failed after its bounded retries (or on a fatal status).

    Attributes:
        status_code: HTTP status reported by the provider, if known.
        retryable: True when the failure was transient (429/5xx) and the
            caller may try again later.
        retry_after: Suggested wait in seconds before retrying.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after


class PersistenceError(CasaflowError):
    """A status-changing store write failed and must not be ignored."""


class NotFoundError(CasaflowError):
    """A referenced record does not exist or is not owned by the caller."""


class RateLimitedError(CasaflowError):
    """The caller has sent too many requests in the current window."""

    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after
