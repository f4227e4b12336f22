"""
Assembly of the long-lived components shared by the web layer and the CLI.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from fastapi import Request

from ..config import settings
from ..db.database import Database
from ..services import CleanupService, TokenService, UploadIngestor, UserService
from .write_lock import WriteLock


@dataclass
class AppServices:
    """Every service, built once around one Database and one WriteLock."""
    database: Database
    write_lock: WriteLock
    root_path: Path
    tokens: TokenService
    uploads: UploadIngestor
    cleanup: CleanupService
    users: UserService


def build_services(
    database: Database,
    root_path: Optional[Union[str, Path]] = None,
    write_lock: Optional[WriteLock] = None,
) -> AppServices:
    root = Path(root_path if root_path is not None else settings.ROOT_PATH)
    lock = write_lock or WriteLock()
    tokens = TokenService(database, lock, root)
    return AppServices(
        database=database,
        write_lock=lock,
        root_path=root,
        tokens=tokens,
        uploads=UploadIngestor(database, lock, tokens, root),
        cleanup=CleanupService(database, lock, root),
        users=UserService(database, lock),
    )


def get_services(request: Request) -> AppServices:
    """FastAPI dependency returning the services built by the lifespan."""
    return request.app.state.services
