"""
Service for the token lifecycle: creation, lookup, consumption and forced deletion.

State machine::

    create:  -> FRESH
    consume: FRESH -> USED        (first successful upload session)
    expire:  FRESH|USED -> DELETED (cleanup job or admin deletion)

No transition re-enters FRESH or USED.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..api.schemas import token as token_schema
from ..core.clock import utcnow
from ..core.enums import Lifetime, SizeLimit, TokenStatus
from ..core.exceptions import InvalidStateError, NotFoundError, ValidationError
from ..core.write_lock import WriteLock
from ..db.crud import files_crud, tokens_crud
from ..db.database import Database
from ..db.models import File, Token
from .storage import path_dir, remove_file, remove_token_dir, validate_token_path

logger = logging.getLogger(__name__)


def _parse_enum(enum_class, raw: str, field_name: str):
    try:
        return enum_class(raw)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_class)
        raise ValidationError(f"Invalid {field_name} {raw!r}. Allowed values: {allowed}") from e


@dataclass
class DeletionReport:
    """Outcome of a forced token deletion."""
    path: str
    tokens: int
    files: int


class TokenService:
    """Creates tokens, resolves them for reads and consumes them."""

    def __init__(self, database: Database, write_lock: WriteLock, root_path: Union[str, Path]):
        self.database = database
        self.write_lock = write_lock
        self.root_path = Path(root_path)

    def path_dir(self, token_path: str) -> Path:
        return path_dir(self.root_path, token_path)

    async def request_token(self, params: token_schema.TokenCreate) -> Token:
        """
        Create a Fresh token.

        Validates:
        - path is a non-empty single directory name
        - max-size, content-expires and valid-for are recognized values

        Raises:
            ValidationError: a field is malformed
            DuplicateTokenError: a live token already exists for the path
        """
        path = validate_token_path(params.path)
        path_dir(self.root_path, path)

        size_limit = _parse_enum(SizeLimit, params.max_size, "max-size")
        content_expires = _parse_enum(Lifetime, params.content_expires, "content-expires")
        if content_expires is Lifetime.DOESNT_EXPIRE:
            raise ValidationError("content-expires does not accept DoesntExpire")
        valid_for = _parse_enum(Lifetime, params.valid_for, "valid-for")

        token_expires_at = None
        if valid_for.duration is not None:
            token_expires_at = utcnow() + valid_for.duration

        async with self.write_lock:
            async with self.database.session() as db:
                token = await tokens_crud.create_token(
                    db,
                    path=path,
                    token_expires_at=token_expires_at,
                    max_size_mib=size_limit.mebibytes,
                    content_expires_after=content_expires.duration,
                )
        logger.info("Created token %s for path %s", token.id, token.path)
        return token

    async def resolve_for_read(self, path: str) -> Optional[Token]:
        """The live token for ``path``; None when absent, expired or deleted."""
        async with self.database.session() as db:
            token = await tokens_crud.get_valid_token(db, path)
        if token is None or token.status == TokenStatus.DELETED:
            return None
        return token

    async def consume(self, token: Token) -> Token:
        """
        Move a token from Fresh to Used.

        Consuming a token that is not Fresh anymore is a no-op, so retries and
        concurrent upload sessions are not reported as failures.
        """
        async with self.write_lock:
            async with self.database.session() as db:
                try:
                    token = await tokens_crud.consume_token(db, token)
                except InvalidStateError:
                    logger.info("Token %s for path %s was already consumed", token.id, token.path)
                    return token
        logger.info(
            "Consumed token %s for path %s, content expires at %s",
            token.id, token.path, token.content_expires_at,
        )
        return token

    async def list_completed_files(self, path: str) -> List[File]:
        """Downloadable files of the token at ``path``, empty when there is no such token."""
        token = await self.resolve_for_read(path)
        if token is None or token.status != TokenStatus.USED:
            return []
        async with self.database.session() as db:
            return await files_crud.list_completed_files(db, token)

    async def get_file(self, path: str, file_id: int) -> Optional[File]:
        """A downloadable file of the token at ``path`` by id."""
        token = await self.resolve_for_read(path)
        if token is None or token.status != TokenStatus.USED:
            return None
        async with self.database.session() as db:
            return await files_crud.get_file(db, token, file_id)

    async def open_file(self, path: str, file_id: int) -> Tuple[File, Path]:
        """
        The file row and the location of its bytes, for streaming a download.

        Raises:
            NotFoundError: no such file, or its bytes are gone
        """
        file = await self.get_file(path, file_id)
        if file is None:
            raise NotFoundError("File not found")
        location = Path(file.path)
        if not location.is_file():
            logger.error("File %s of token %s is missing on disk at %s", file.id, path, location)
            raise NotFoundError("File not found")
        return file, location

    async def delete_token(self, path: str) -> DeletionReport:
        """
        Delete every non-deleted token for ``path`` with its files, whatever
        their deadlines, then remove the whole path directory.

        The directory is removed even when no token row matches.
        """
        directory = self.path_dir(path)
        async with self.database.session() as db:
            tokens = await tokens_crud.find_tokens_by_path(db, path)
            files = []
            for token in tokens:
                files.extend(await files_crud.list_token_files(db, token.id))

        for file in files:
            await remove_file(file.path)
        await remove_token_dir(directory)

        deleted_files = 0
        if tokens:
            async with self.write_lock:
                async with self.database.session() as db:
                    deleted_files = await tokens_crud.delete_files_for_tokens(
                        db, [token.id for token in tokens]
                    )
            logger.info("Deleted %d files for %d tokens at path %s", deleted_files, len(tokens), path)
        else:
            logger.info("No token found at path %s, removed %s", path, directory)
        return DeletionReport(path=path, tokens=len(tokens), files=deleted_files)
