"""CRUD operations for token lifecycle management in the database."""
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.clock import utcnow
from ...core.enums import TokenStatus
from ...core.exceptions import DataCorruptionError, DuplicateTokenError, InvalidStateError
from ..models.db_file import File
from ..models.db_token import Token


def _to_hours(duration: Optional[timedelta]) -> Optional[int]:
    if duration is None:
        return None
    # whole hours only, matches the integer column
    return int(duration.total_seconds() // 3600)


def live_clause(now: datetime):
    """
    Tokens that can still be used: a Fresh token until its upload deadline,
    a Used token until its content deadline. A missing deadline never expires.
    """
    fresh_and_valid = and_(
        Token.status == TokenStatus.FRESH,
        or_(Token.token_expires_at.is_(None), Token.token_expires_at >= now),
    )
    used_and_valid = and_(
        Token.status == TokenStatus.USED,
        or_(Token.content_expires_at.is_(None), Token.content_expires_at >= now),
    )
    return and_(Token.deleted_at.is_(None), or_(fresh_and_valid, used_and_valid))


def expired_clause(now: datetime):
    """Tokens whose relevant deadline has passed but that are not marked deleted yet."""
    fresh_expired = and_(
        Token.status == TokenStatus.FRESH,
        Token.token_expires_at.is_not(None),
        Token.token_expires_at <= now,
    )
    used_expired = and_(
        Token.status == TokenStatus.USED,
        Token.content_expires_at.is_not(None),
        Token.content_expires_at <= now,
    )
    return and_(
        Token.deleted_at.is_(None),
        Token.status != TokenStatus.DELETED,
        or_(fresh_expired, used_expired),
    )


async def create_token(
    db: AsyncSession,
    path: str,
    token_expires_at: Optional[datetime],
    max_size_mib: Optional[int] = None,
    content_expires_after: Optional[timedelta] = None,
) -> Token:
    """
    Create a new Fresh token.

    The count of live tokens for ``path`` and the insert happen in the same
    transaction; callers hold the write lock.

    Raises:
        DuplicateTokenError: a live token already exists for ``path``.
    """
    now = utcnow()
    result = await db.execute(
        select(func.count()).select_from(Token).where(Token.path == path, live_clause(now))
    )
    if result.scalar_one() > 0:
        raise DuplicateTokenError(path)

    token = Token(
        path=path,
        status=TokenStatus.FRESH,
        max_size_mib=max_size_mib,
        created_at=now,
        token_expires_at=token_expires_at,
        content_expires_at=None,
        content_expires_after_hours=_to_hours(content_expires_after),
        deleted_at=None,
    )
    db.add(token)
    await db.commit()
    await db.refresh(token)
    return token


async def get_valid_token(
    db: AsyncSession,
    path: str
) -> Optional[Token]:
    """
    Return the live token for ``path``, or None.

    Raises:
        DataCorruptionError: more than one live token matches.
    """
    result = await db.execute(
        select(Token).where(Token.path == path, live_clause(utcnow()))
    )
    tokens = result.scalars().all()
    if len(tokens) > 1:
        raise DataCorruptionError(f"{len(tokens)} live tokens for path {path}")
    return tokens[0] if tokens else None


async def get_token_by_id(
    db: AsyncSession,
    token_id: int
) -> Optional[Token]:
    result = await db.execute(select(Token).where(Token.id == token_id))
    return result.scalar_one_or_none()


async def find_tokens_by_path(
    db: AsyncSession,
    path: str
) -> List[Token]:
    """All tokens for ``path`` not yet marked deleted, whatever their deadlines."""
    result = await db.execute(
        select(Token)
        .where(Token.path == path, Token.deleted_at.is_(None))
        .order_by(Token.id.desc())
    )
    return list(result.scalars().all())


async def consume_token(
    db: AsyncSession,
    token: Token
) -> Token:
    """
    Mark a Fresh token as Used and anchor its content deadline.

    Raises:
        InvalidStateError: the token is not Fresh anymore.
    """
    now = utcnow()
    content_expires_at = None
    if token.content_expires_after_hours is not None:
        content_expires_at = now + timedelta(hours=token.content_expires_after_hours)

    result = await db.execute(
        update(Token)
        .where(Token.id == token.id, Token.status == TokenStatus.FRESH)
        .values(status=TokenStatus.USED, content_expires_at=content_expires_at)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise InvalidStateError(f"Token {token.id} is not fresh")
    await db.commit()

    token.status = TokenStatus.USED
    token.content_expires_at = content_expires_at
    return token


async def mark_tokens_expired_and_get_paths(
    db: AsyncSession
) -> List[Tuple[int, str]]:
    """
    Flip every expired token to Deleted and return their ids and paths.

    Files of those tokens are marked deleted too: their directory is removed
    by the caller. Selection and update share one transaction.
    """
    now = utcnow()
    result = await db.execute(select(Token).where(expired_clause(now)))
    expired = result.scalars().all()
    if not expired:
        return []

    ids = [token.id for token in expired]
    await db.execute(
        update(File)
        .where(File.token_id.in_(ids), File.deleted_at.is_(None))
        .values(deleted_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(Token)
        .where(Token.id.in_(ids))
        .values(status=TokenStatus.DELETED, deleted_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return [(token.id, token.path) for token in expired]


async def delete_files_for_tokens(
    db: AsyncSession,
    token_ids: List[int]
) -> int:
    """
    Mark every file of the given tokens deleted, and the tokens themselves.

    Returns:
        Number of file rows newly marked deleted
    """
    if not token_ids:
        return 0

    now = utcnow()
    result = await db.execute(
        update(File)
        .where(File.token_id.in_(token_ids), File.deleted_at.is_(None))
        .values(deleted_at=now)
        .execution_options(synchronize_session=False)
    )
    deleted_file_count = result.rowcount
    await db.execute(
        update(Token)
        .where(Token.id.in_(token_ids), Token.deleted_at.is_(None))
        .values(status=TokenStatus.DELETED, deleted_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return deleted_file_count
