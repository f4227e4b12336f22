"""Custom exceptions for the token and file lifecycle."""
from typing import Optional


class FiledropError(Exception):
    """Base exception for all filedrop errors."""

    status_code = 500

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(FiledropError):
    """Raised when a token request carries a malformed field or enum value."""

    status_code = 422

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message)


class DuplicateTokenError(FiledropError):
    """Raised when a live token already exists for the requested path."""

    status_code = 409

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Token already exists for path {path}")


class DuplicateUserError(ValidationError):
    """Raised when creating a user whose name is already taken."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User {username} already exists")


class NotFoundError(FiledropError):
    """Raised when a token or file is absent, expired or deleted."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class PayloadTooLargeError(FiledropError):
    """Raised when an upload stream exceeds the token's size budget."""

    status_code = 413

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit
        message = "Upload exceeds the size limit of this token"
        if limit is not None:
            message = f"{message} ({limit} bytes)"
        super().__init__(message)


class ProtocolDecodeError(FiledropError):
    """Raised when a multipart body cannot be decoded."""

    status_code = 400

    def __init__(self, message: str = "Malformed multipart body"):
        super().__init__(message)


class StorageError(FiledropError):
    """Raised when the metadata store fails."""

    def __init__(self, message: str = "Metadata store failure"):
        super().__init__(message)


class InvalidStateError(StorageError):
    """Raised by the store when a transition is attempted from the wrong state."""


class DataCorruptionError(StorageError):
    """Raised when the store holds rows that violate an invariant."""


class FileIOError(FiledropError):
    """Raised when a filesystem operation fails."""

    def __init__(self, path, message: str = "Filesystem failure", not_found: bool = False):
        self.path = str(path)
        self.not_found = not_found
        super().__init__(f"{message}: {self.path}")
