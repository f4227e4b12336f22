"""CRUD operations for uploaded file metadata in the database."""
from pathlib import PurePath
from typing import Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.clock import utcnow
from ...core.enums import FileUploadStatus, TokenStatus
from ..models.db_file import File
from ..models.db_token import Token


async def create_file(
    db: AsyncSession,
    token_id: int,
    path: str,
    name: Optional[str] = None,
    content_type: Optional[str] = None,
    prefix_with_id: bool = False
) -> File:
    """
    Register a file whose bytes are about to be written, in STARTED state.

    With ``prefix_with_id`` the last component of ``path`` is prefixed with
    the new row id, so two files never share a location on disk.
    """
    file = File(
        token_id=token_id,
        name=name,
        path=path,
        content_type=content_type,
        size=None,
        created_at=utcnow(),
        deleted_at=None,
        file_upload_status=FileUploadStatus.STARTED,
    )
    db.add(file)
    if prefix_with_id:
        await db.flush()
        location = PurePath(path)
        file.path = str(location.with_name(f"{file.id}-{location.name}"))
    await db.commit()
    await db.refresh(file)
    return file


async def complete_upload(
    db: AsyncSession,
    file_id: int,
    size: Optional[int] = None
) -> bool:
    """Mark a file COMPLETED once all of its bytes are on disk."""
    result = await db.execute(
        update(File)
        .where(File.id == file_id, File.deleted_at.is_(None))
        .values(file_upload_status=FileUploadStatus.COMPLETED, size=size)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount > 0


async def abort_upload(
    db: AsyncSession,
    file_id: int
) -> bool:
    """Remove the row of a file whose upload failed before completion."""
    result = await db.execute(
        delete(File)
        .where(File.id == file_id, File.file_upload_status == FileUploadStatus.STARTED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount > 0


async def list_completed_files(
    db: AsyncSession,
    token: Token
) -> List[File]:
    """Completed, non-deleted files owned by ``token``."""
    result = await db.execute(
        select(File)
        .where(
            File.token_id == token.id,
            File.file_upload_status == FileUploadStatus.COMPLETED,
            File.deleted_at.is_(None),
        )
        .order_by(File.id)
    )
    return list(result.scalars().all())


async def get_file(
    db: AsyncSession,
    token: Token,
    file_id: int
) -> Optional[File]:
    """A completed file of ``token`` by id; files of other tokens are never returned."""
    result = await db.execute(
        select(File).where(
            File.id == file_id,
            File.token_id == token.id,
            File.file_upload_status == FileUploadStatus.COMPLETED,
            File.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def list_token_files(
    db: AsyncSession,
    token_id: int
) -> List[File]:
    """Every non-deleted file row of a token, whatever its upload status."""
    result = await db.execute(
        select(File)
        .where(File.token_id == token_id, File.deleted_at.is_(None))
        .order_by(File.id)
    )
    return list(result.scalars().all())


async def find_expired_files(
    db: AsyncSession
) -> Dict[Token, List[File]]:
    """
    Files of tokens whose content deadline has passed, grouped by token.

    Only tokens not yet marked deleted are considered.
    """
    now = utcnow()
    result = await db.execute(
        select(Token).where(
            Token.content_expires_at.is_not(None),
            Token.content_expires_at <= now,
            Token.deleted_at.is_(None),
            Token.status != TokenStatus.DELETED,
        )
    )
    expired_tokens = result.scalars().all()

    # one query per token, fine for a local sqlite file
    expired: Dict[Token, List[File]] = {}
    for token in expired_tokens:
        expired[token] = await list_token_files(db, token.id)
    return expired
