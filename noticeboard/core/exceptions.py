"""Error taxonomy shared by every service.

Each class also derives from the built-in exception callers would
naturally catch for that failure (``ValueError`` for bad input,
``PermissionError`` for access, ``KeyError`` for missing rows), so code
that only knows the built-ins keeps working.

Validation, authorization, not-found and state-conflict errors are all
raised before any write.  ``StorageFailure`` is raised when the blob store
cannot persist an upload.
"""
from __future__ import annotations


class NoticeboardError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationFailed(NoticeboardError, ValueError):
    status_code = 400


class NotAuthenticated(NoticeboardError, PermissionError):
    status_code = 401


class Forbidden(NoticeboardError, PermissionError):
    status_code = 403


class NotFound(NoticeboardError, KeyError):
    status_code = 404


class StateConflict(NoticeboardError, ValueError):
    status_code = 409


class StorageFailure(NoticeboardError, RuntimeError):
    status_code = 502
