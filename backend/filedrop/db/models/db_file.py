"""
Database model for uploaded files.
The bytes live on disk under the token directory, only metadata is stored here.
"""
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from ...core.enums import FileUploadStatus
from ..database import Base
from .types import EnumText


class File(Base):
    """Model for a file uploaded through a token."""

    __tablename__ = "file"
    __table_args__ = (
        CheckConstraint(
            "file_upload_status in ('STARTED', 'COMPLETED')",
            name="ck_file_upload_status",
        ),
    )

    id = Column(Integer, primary_key=True)
    token_id = Column(Integer, ForeignKey("token.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)  # as supplied by the client
    path = Column(String(1024), nullable=False)  # location of the bytes on disk
    content_type = Column(String(255), nullable=True)
    size = Column(Integer, nullable=True)  # bytes, known once the upload completed
    created_at = Column(DateTime, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    file_upload_status = Column(
        EnumText(FileUploadStatus),
        nullable=False,
        default=FileUploadStatus.STARTED,
    )

    def __repr__(self) -> str:
        return f"<File id={self.id} token_id={self.token_id} name={self.name!r}>"
