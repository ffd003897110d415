"""Kadence API integrations: bulk CSV booking and a credentialed proxy."""

from .client import KadenceClient
from .errors import (
    AuthError,
    EntityNotFound,
    KadenceError,
    RemoteRequestError,
    ResolutionFailed,
    SubmissionFailed,
    ValidationError,
)

__all__ = [
    "AuthError",
    "EntityNotFound",
    "KadenceClient",
    "KadenceError",
    "RemoteRequestError",
    "ResolutionFailed",
    "SubmissionFailed",
    "ValidationError",
]
__version__ = "0.1.0"
