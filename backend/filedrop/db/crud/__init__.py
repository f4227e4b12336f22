"""
CRUD operations for database models.
"""
from . import tokens_crud
from . import files_crud
from . import auth_crud

__all__ = [
    "tokens_crud",
    "files_crud",
    "auth_crud",
]
