"""Pydantic schemas for uploaded files."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ...core.enums import TokenStatus


class FileResponse(BaseModel):
    """Schema for file metadata."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str]
    content_type: Optional[str]
    size: Optional[int]
    created_at: datetime
    download_uri: Optional[str] = None
    is_image: bool = False


class FileListResponse(BaseModel):
    """Schema for the files of a used token."""
    path: str
    status: TokenStatus
    content_expires_at: Optional[datetime]
    files: list[FileResponse]


class UploadResponse(BaseModel):
    """Schema returned once an upload session completed."""
    path: str
    msg: str
    files: list[FileResponse]
