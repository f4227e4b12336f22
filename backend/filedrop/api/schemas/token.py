"""Pydantic schemas for upload token management."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ...core.enums import TokenStatus


class TokenCreate(BaseModel):
    """Schema for requesting a new token.

    Enum values are checked by the token service, not here, so that an
    unknown value is reported the same way from the API and the CLI.
    """
    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(..., max_length=255, description="Slug the token is addressed by")
    max_size: str = Field("Unlimited", alias="max-size", description="Unlimited, 1MB, 10MB, 200MB, 1GB or 5GB")
    content_expires: str = Field("1Day", alias="content-expires", description="1Hour, 1Day, 1Week or 1Month")
    valid_for: str = Field("1Day", alias="valid-for", description="1Hour, 1Day, 1Week, 1Month or DoesntExpire")


class TokenResponse(BaseModel):
    """Schema for a token."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    path: str
    status: TokenStatus
    max_size_mib: Optional[int]
    created_at: datetime
    token_expires_at: Optional[datetime]
    content_expires_at: Optional[datetime]
    content_expires_after_hours: Optional[int]


class UploadInfoResponse(BaseModel):
    """What a consumer needs to know before uploading through a fresh token."""
    path: str
    status: TokenStatus
    upload_uri: str
    max_size_mib: Optional[int]
    token_expires_at: Optional[datetime]
    content_expires_after_hours: Optional[int]
    fields: list[str]
