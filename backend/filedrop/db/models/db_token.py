"""
Database model for upload tokens.
"""
from datetime import timedelta
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String

from ...core.enums import TokenStatus
from ..database import Base
from .types import EnumText


class Token(Base):
    """A path-scoped capability to upload files once and download them afterwards."""

    __tablename__ = "token"
    __table_args__ = (
        CheckConstraint("status in ('FRESH', 'USED', 'DELETED')", name="ck_token_status"),
    )

    id = Column(Integer, primary_key=True)
    path = Column(String(255), nullable=False, index=True)
    status = Column(EnumText(TokenStatus), nullable=False, default=TokenStatus.FRESH)
    max_size_mib = Column(Integer, nullable=True)  # None means no size limit
    created_at = Column(DateTime, nullable=False)
    token_expires_at = Column(DateTime, nullable=True)  # None means DoesntExpire
    # Set when the token is consumed, never recomputed afterwards
    content_expires_at = Column(DateTime, nullable=True)
    # Whole hours, sub-hour precision is truncated
    content_expires_after_hours = Column(Integer, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    @property
    def max_total_size(self) -> Optional[int]:
        """Upper bound on uploaded bytes, None when unlimited."""
        if self.max_size_mib is None:
            return None
        return self.max_size_mib * 1024 * 1024

    @property
    def content_expires_after(self) -> Optional[timedelta]:
        if self.content_expires_after_hours is None:
            return None
        return timedelta(hours=self.content_expires_after_hours)

    def __repr__(self) -> str:
        return f"<Token id={self.id} path={self.path!r} status={self.status}>"
