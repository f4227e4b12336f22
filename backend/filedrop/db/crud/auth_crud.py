"""CRUD operations for user credentials in the database."""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.enums import AuthType
from ...core.exceptions import DuplicateUserError
from ..models.db_auth import AuthRecord


async def get_user_auth(
    db: AsyncSession,
    username: str
) -> Optional[AuthRecord]:
    """Retrieve the credentials of a user by username."""
    result = await db.execute(
        select(AuthRecord).where(AuthRecord.id == username)
    )
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    username: str,
    password_hash: str
) -> AuthRecord:
    """
    Store a user with a BASIC password hash.

    Raises:
        DuplicateUserError: the username is already taken.
    """
    if await get_user_auth(db, username) is not None:
        raise DuplicateUserError(username)

    record = AuthRecord(id=username, typ=AuthType.BASIC, data=password_hash)
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record
