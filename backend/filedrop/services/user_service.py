"""
Service for administrator accounts guarding token creation.
"""
import logging
from typing import Optional

from passlib.context import CryptContext

from ..config import settings
from ..core.enums import AuthType
from ..core.exceptions import ValidationError
from ..core.write_lock import WriteLock
from ..db.crud import auth_crud
from ..db.database import Database
from ..db.models import AuthRecord

logger = logging.getLogger(__name__)


def build_password_context(rounds: Optional[int] = None) -> CryptContext:
    """Password hashing context, scrypt with a random salt per hash."""
    return CryptContext(
        schemes=["scrypt"],
        scrypt__rounds=rounds if rounds is not None else settings.SCRYPT_ROUNDS,
    )


class UserService:
    """Creates users and checks their credentials."""

    def __init__(self, database: Database, write_lock: WriteLock,
                 pwd_context: Optional[CryptContext] = None):
        self.database = database
        self.write_lock = write_lock
        self.pwd_context = pwd_context or build_password_context()

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    async def create_user(self, username: str, password: str) -> AuthRecord:
        """
        Store a new user with a hashed password.

        Raises:
            ValidationError: empty username or password
            DuplicateUserError: the username is taken
        """
        if not username or not password:
            raise ValidationError("Username and password are required")
        password_hash = self.hash_password(password)
        async with self.write_lock:
            async with self.database.session() as db:
                record = await auth_crud.create_user(db, username, password_hash)
        logger.info("Created user %s", username)
        return record

    async def verify(self, username: str, password: str) -> bool:
        """True when ``username`` exists and ``password`` matches its hash."""
        async with self.database.session() as db:
            record = await auth_crud.get_user_auth(db, username)
        if record is None or record.typ != AuthType.BASIC:
            logger.info("Authentication failed: unknown user %s", username)
            return False
        if not self.pwd_context.verify(password, record.data):
            logger.info("Authentication failed: wrong password for user %s", username)
            return False
        return True
