"""
Service for streaming an upload session into a token's directory.

For every named part:
1. register a STARTED file row (so an interrupted write leaves a row behind);
   its on-disk name is the row id followed by the sanitized file name
2. stream the bytes to disk in chunks, within the token's size budget
3. mark the row COMPLETED with its size

Once every part is processed (even zero), the token is consumed.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterable, Iterable, List, Optional, Protocol, Union

import aiofiles
import aiofiles.os

from ..config import settings
from ..core.enums import FileUploadStatus
from ..core.exceptions import FileIOError, PayloadTooLargeError, ProtocolDecodeError
from ..core.write_lock import WriteLock
from ..db.crud import files_crud
from ..db.database import Database
from ..db.models import File, Token
from .multipart import MultipartReader, UploadPart
from .storage import MAX_NAME_LENGTH, remove_file, sanitize_filename, token_dir
from .token_service import TokenService

logger = logging.getLogger(__name__)


class PartSource(Protocol):
    """Anything handing out upload parts one after the other."""

    async def next_part(self) -> Optional[UploadPart]:
        ...


@dataclass
class UploadOutcome:
    """Result of a successful upload session."""
    token: Token
    files: List[File] = field(default_factory=list)
    bytes_written: int = 0


class UploadIngestor:
    """Writes upload sessions to disk and records them in the metadata store."""

    def __init__(
        self,
        database: Database,
        write_lock: WriteLock,
        token_service: TokenService,
        root_path: Union[str, Path],
        overhead_bytes: Optional[int] = None,
        allowed_fields: Optional[Iterable[str]] = None,
    ):
        self.database = database
        self.write_lock = write_lock
        self.token_service = token_service
        self.root_path = Path(root_path)
        self.overhead_bytes = (
            overhead_bytes if overhead_bytes is not None else settings.MULTIPART_OVERHEAD_BYTES
        )
        self.allowed_fields = tuple(allowed_fields or settings.UPLOAD_FIELDS)

    def max_stream_size(self, token: Token) -> Optional[int]:
        """Byte budget for an upload session, None when the token has no size limit."""
        if token.max_total_size is None:
            return None
        return token.max_total_size + self.overhead_bytes

    async def ingest_stream(
        self,
        token: Token,
        body: AsyncIterable[bytes],
        boundary: str
    ) -> UploadOutcome:
        """Decode a raw multipart body and ingest its parts."""
        max_bytes = self.max_stream_size(token)
        logger.info(
            "Streaming at most %s bytes for token %s",
            max_bytes if max_bytes is not None else "unlimited", token.path,
        )
        reader = MultipartReader(
            body,
            boundary,
            allowed_fields=self.allowed_fields,
            max_bytes=max_bytes,
        )
        return await self.ingest(token, reader)

    async def ingest(self, token: Token, parts: PartSource) -> UploadOutcome:
        """
        Ingest every part of an upload session, then consume the token.

        Parts without a file name are skipped. When the size budget is exceeded
        or the body is malformed, the current part's bytes and row are
        discarded and the token stays Fresh. Any other failure (disk error,
        client disconnect) leaves the current row STARTED and the token Fresh.

        Raises:
            PayloadTooLargeError: the parts exceed the token's budget
            ProtocolDecodeError: the multipart body is malformed
            FileIOError: the bytes could not be written
        """
        budget = self.max_stream_size(token)
        outcome = UploadOutcome(token=token)
        directory = token_dir(self.root_path, token.path, token.id)

        while True:
            part = await parts.next_part()
            if part is None:
                break
            if not part.filename:
                # avoid creating empty files
                logger.debug("Skipping part %s without a file name", part.name)
                continue

            await self._ensure_directory(directory)
            db_file = await self._register(token, part, directory)
            file_path = Path(db_file.path)

            remaining = None if budget is None else budget - outcome.bytes_written
            try:
                size = await self._write_part(part, file_path, remaining)
            except (PayloadTooLargeError, ProtocolDecodeError) as e:
                logger.warning("Aborting upload of %s for token %s: %s", file_path, token.path, e.message)
                await self._discard(db_file, file_path)
                raise

            outcome.bytes_written += size
            db_file = await self._complete(db_file, size)
            outcome.files.append(db_file)
            logger.info("For file %s wrote %d bytes", file_path, size)

        outcome.token = await self.token_service.consume(token)
        return outcome

    async def _ensure_directory(self, directory: Path) -> None:
        try:
            await aiofiles.os.makedirs(directory, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create token directory %s: %s", directory, e, exc_info=True)
            raise FileIOError(directory, "Cannot create token directory") from e

    async def _register(self, token: Token, part: UploadPart, directory: Path) -> File:
        # room for the id prefix added by the store
        stored_name = sanitize_filename(part.filename, MAX_NAME_LENGTH - 32)
        async with self.write_lock:
            async with self.database.session() as db:
                return await files_crud.create_file(
                    db,
                    token_id=token.id,
                    path=str(directory / stored_name),
                    name=part.filename,
                    content_type=part.content_type,
                    prefix_with_id=True,
                )

    async def _write_part(self, part: UploadPart, file_path: Path, remaining: Optional[int]) -> int:
        written = 0
        try:
            async with aiofiles.open(file_path, "wb") as writer:
                while True:
                    chunk = await part.read_chunk()
                    if chunk is None:
                        break
                    written += len(chunk)
                    if remaining is not None and written > remaining:
                        raise PayloadTooLargeError(remaining)
                    await writer.write(chunk)
                await writer.flush()
        except OSError as e:
            logger.error("Error writing to file %s: %s", file_path, e, exc_info=True)
            raise FileIOError(file_path, "Error writing to file") from e
        return written

    async def _complete(self, db_file: File, size: int) -> File:
        async with self.write_lock:
            async with self.database.session() as db:
                await files_crud.complete_upload(db, db_file.id, size)
        db_file.file_upload_status = FileUploadStatus.COMPLETED
        db_file.size = size
        return db_file

    async def _discard(self, db_file: File, file_path: Path) -> None:
        await remove_file(file_path)
        async with self.write_lock:
            async with self.database.session() as db:
                await files_crud.abort_upload(db, db_file.id)
