"""
Database model for user credentials.
"""
from sqlalchemy import CheckConstraint, Column, String, Text

from ...core.enums import AuthType
from ..database import Base
from .types import EnumText


class AuthRecord(Base):
    """Username and hashed password of an administrator."""

    __tablename__ = "auth"
    __table_args__ = (
        CheckConstraint("typ in ('BASIC')", name="ck_auth_typ"),
    )

    id = Column(String(255), primary_key=True)  # username
    typ = Column(EnumText(AuthType), nullable=False, default=AuthType.BASIC)
    data = Column(Text, nullable=False)  # password hash string
