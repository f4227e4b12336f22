from .db_token import Token
from .db_file import File
from .db_auth import AuthRecord

__all__ = [
    "Token",
    "File",
    "AuthRecord",
]
