"""
Domain-level exceptions for uploads and count sessions.
"""

from __future__ import annotations


class IngestError(ValueError):
    """Raised when an uploaded spreadsheet cannot be turned into valid rows."""


class EmptyUpload(IngestError):
    """Raised when there are no rows left to assign."""


class UploadValidationError(ValueError):
    """Base exception for rejected upload requests."""


class NoFileSelected(UploadValidationError):
    """Raised when an upload is submitted without a file."""


class NoUsersSelected(UploadValidationError):
    """Raised when an upload is submitted without any users to assign."""


class UnsupportedFileType(UploadValidationError):
    """Raised when the uploaded file is not a supported spreadsheet format."""


class UnknownUsers(UploadValidationError):
    """Raised when an upload selects usernames that have no account."""


class InvalidCredentialsError(Exception):
    """Raised when a username/password pair does not match an account."""


class EntryAccessError(PermissionError):
    """Raised when a caller edits an entry they are not allowed to see."""


class EntryNotLoadedError(LookupError):
    """Raised when an edit targets an entry that is not in the loaded report."""
