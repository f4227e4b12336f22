"""
Periodic reaper for expired tokens and their content.

Each run has two phases:
1. Used tokens past their content deadline: remove every file, then the
   token directory, then mark the files and the token deleted.
2. Any remaining expired token (typically a Fresh token never used before
   its upload deadline): flip it to Deleted, then remove its directory.

Disk removal happens before the metadata is marked, so a crash midway
leaves rows that the next run finds again.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from ..core.write_lock import WriteLock
from ..db.crud import files_crud, tokens_crud
from ..db.database import Database
from .storage import path_dir, remove_file, remove_path_dir_if_empty, remove_token_dir, token_dir

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    """What a cleanup run removed."""
    tokens_with_expired_content: int = 0
    files_deleted: int = 0
    expired_paths: List[str] = field(default_factory=list)

    @property
    def tokens_deleted(self) -> int:
        return self.tokens_with_expired_content + len(self.expired_paths)


class CleanupService:
    """Removes expired content from disk and marks it deleted in the store."""

    def __init__(self, database: Database, write_lock: WriteLock, root_path: Union[str, Path]):
        self.database = database
        self.write_lock = write_lock
        self.root_path = Path(root_path)

    async def run_once(self) -> CleanupReport:
        """
        Run both cleanup phases once.

        Missing files and directories are logged and skipped. Any other
        filesystem failure aborts the run with FileIOError; the tokens not
        processed yet stay unmarked and are picked up by the next run.
        """
        report = CleanupReport()
        await self._delete_expired_content(report)
        await self._delete_expired_tokens(report)
        logger.info(
            "Cleanup finished: %d tokens deleted, %d files deleted",
            report.tokens_deleted, report.files_deleted,
        )
        return report

    async def _delete_expired_content(self, report: CleanupReport) -> None:
        async with self.database.session() as db:
            expired = await files_crud.find_expired_files(db)

        for token, files in expired.items():
            logger.info(
                "Content of token %s at path %s expired, removing %d files",
                token.id, token.path, len(files),
            )
            for file in files:
                await remove_file(file.path)
            await self._remove_token_dir(token.id, token.path)

            async with self.write_lock:
                async with self.database.session() as db:
                    report.files_deleted += await tokens_crud.delete_files_for_tokens(db, [token.id])
            report.tokens_with_expired_content += 1

    async def _delete_expired_tokens(self, report: CleanupReport) -> None:
        async with self.write_lock:
            async with self.database.session() as db:
                expired = await tokens_crud.mark_tokens_expired_and_get_paths(db)

        for token_id, path in expired:
            logger.info("Token %s at path %s expired, removing its directory", token_id, path)
            await self._remove_token_dir(token_id, path)
            report.expired_paths.append(path)

    async def _remove_token_dir(self, token_id: int, path: str) -> None:
        await remove_token_dir(token_dir(self.root_path, path, token_id))
        await remove_path_dir_if_empty(path_dir(self.root_path, path))
