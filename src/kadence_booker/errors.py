from __future__ import annotations

from typing import Any


class KadenceError(RuntimeError):
    """Base class for every failure raised by this package."""


class ValidationError(KadenceError):
    """A CSV row is missing required values or carries a malformed one."""


class EntityNotFound(KadenceError):
    """No remote entity matched the requested name."""


class ResolutionFailed(KadenceError):
    """Every listing strategy for a collection failed."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class AuthError(KadenceError):
    """Credentials are missing or the token exchange was rejected."""


class RemoteRequestError(KadenceError):
    """The remote API answered with a non-2xx status (or not at all)."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class SubmissionFailed(KadenceError):
    """Every booking payload shape was rejected.

    The message is the last attempt's error; `errors` keeps all of them.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])
