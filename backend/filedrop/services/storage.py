"""
Filesystem layout of uploaded files.

Every token owns one directory, ``<root>/<token path>/<token id>``, holding
the files uploaded through it. A path that is reused by a later token gets a
sibling directory, so removing one token never touches another token's bytes.
Nothing outside the root is ever written or removed.
"""
import asyncio
import errno
import logging
import shutil
from pathlib import Path, PurePath
from typing import Union

import aiofiles.os

from ..core.exceptions import FileIOError, ValidationError

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255


def validate_token_path(path: str) -> str:
    """Check that a token path is usable as a single directory name under the root."""
    if path is None or not path.strip():
        raise ValidationError("Missing path")
    if len(path) > MAX_NAME_LENGTH:
        raise ValidationError(f"Path is longer than {MAX_NAME_LENGTH} characters")
    if path in (".", "..") or "/" in path or "\\" in path or "\x00" in path:
        raise ValidationError(f"Invalid path {path!r}")
    return path


def path_dir(root_path: Union[str, Path], token_path: str) -> Path:
    """Directory grouping every token ever issued for ``token_path``."""
    root = Path(root_path).resolve()
    directory = (root / validate_token_path(token_path)).resolve()
    if directory.parent != root:
        raise ValidationError(f"Path {token_path!r} escapes the storage root")
    return directory


def token_dir(root_path: Union[str, Path], token_path: str, token_id: int) -> Path:
    """Directory owned by the token ``token_id`` issued for ``token_path``."""
    return path_dir(root_path, token_path) / str(int(token_id))


def sanitize_filename(name: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Reduce a client supplied file name to a safe single path component."""
    # browsers may send a full client-side path
    base = PurePath(name.replace("\\", "/")).name
    cleaned = "".join(c if c.isalnum() or c in "._- " else "_" for c in base).strip()
    if cleaned in ("", ".", ".."):
        cleaned = "_" + cleaned
    return cleaned[:max_length]


async def remove_file(path: Union[str, Path]) -> bool:
    """
    Remove one file.

    A missing file is logged and reported as False; any other failure raises.
    """
    try:
        await aiofiles.os.remove(path)
        return True
    except FileNotFoundError:
        logger.error("Attempted to delete file at %s but didn't find anything.", path)
        return False
    except OSError as e:
        logger.error("Could not remove file at %s: %s", path, e, exc_info=True)
        raise FileIOError(path, "Could not remove file") from e


async def remove_token_dir(path: Path) -> bool:
    """
    Recursively remove a token directory.

    A missing directory is logged and reported as False; any other failure raises.
    """
    logger.info("Removing token directory %s", path)
    try:
        await asyncio.to_thread(shutil.rmtree, path)
        return True
    except FileNotFoundError:
        logger.error("Attempted to cleanup token at path %s but didn't find anything", path)
        return False
    except OSError as e:
        logger.error("Could not remove token directory %s: %s", path, e, exc_info=True)
        raise FileIOError(path, "Could not remove token directory") from e


async def remove_path_dir_if_empty(path: Path) -> bool:
    """
    Remove a path directory once no token directory is left in it.

    Returns False when the directory is missing or still in use by another
    token; any other failure raises.
    """
    try:
        await aiofiles.os.rmdir(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
            logger.debug("Keeping %s, another token still stores files there", path)
            return False
        logger.error("Could not remove path directory %s: %s", path, e, exc_info=True)
        raise FileIOError(path, "Could not remove path directory") from e
