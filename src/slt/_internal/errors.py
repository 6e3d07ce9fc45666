"""Custom exception hierarchy for slt."""

from __future__ import annotations


class SltError(Exception):
    """Base exception for all slt errors.

    All custom exceptions raised by slt inherit from this class, making it
    easy to catch any slt-specific error with a single except clause.
    """


class ConfigError(SltError):
    """Raised when configuration is invalid or missing.

    Examples:
        - The target URL has no scheme or host.
        - A header flag is not in ``key=value`` form.
        - A numeric setting is out of its acceptable range.
    """


class EngineError(SltError):
    """Raised when a load test fails for a reason other than transport."""


class FatalTransportError(SltError):
    """Raised when an HTTP exchange could not be completed.

    Connection refused, DNS failure and request timeout all end up here.
    A single occurrence terminates the whole run; it is never retried.

    Attributes:
        url: The target URL of the failed request.
        cause: The underlying transport exception.
    """

    def __init__(self, url: str, cause: BaseException) -> None:
        self.url = url
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(f"request to {url} failed: {detail}")
