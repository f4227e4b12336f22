"""
Services module for the filedrop backend.
Contains the token lifecycle, upload and cleanup logic.
"""
from .cleanup_service import CleanupReport, CleanupService
from .token_service import DeletionReport, TokenService
from .upload_service import UploadIngestor, UploadOutcome
from .user_service import UserService

__all__ = [
    "CleanupReport",
    "CleanupService",
    "DeletionReport",
    "TokenService",
    "UploadIngestor",
    "UploadOutcome",
    "UserService",
]
