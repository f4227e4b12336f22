"""Shared test fixtures for the filedrop test suite.

Every test gets its own SQLite file and storage root under ``tmp_path``,
so tests never share state.
"""

import pytest
import pytest_asyncio

from filedrop.core.dependencies import build_services
from filedrop.db.database import Database
from filedrop.services.user_service import build_password_context


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'filedrop.sqlite'}"


@pytest.fixture
def root_path(tmp_path):
    root = tmp_path / "files"
    root.mkdir()
    return root


@pytest_asyncio.fixture
async def database(database_url):
    db = Database(database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def services(database, root_path):
    services = build_services(database, root_path=root_path)
    # cheap hashes keep the suite fast
    services.users.pwd_context = build_password_context(rounds=4)
    return services
