"""Tests for administrator accounts."""

import pytest

from filedrop.core.enums import AuthType
from filedrop.core.exceptions import DuplicateUserError, ValidationError
from filedrop.db.crud import auth_crud


class TestUserService:
    @pytest.mark.asyncio
    async def test_create_and_verify(self, services, database):
        await services.users.create_user("admin", "s3cret")

        assert await services.users.verify("admin", "s3cret") is True
        assert await services.users.verify("admin", "wrong") is False
        assert await services.users.verify("nobody", "s3cret") is False

    @pytest.mark.asyncio
    async def test_password_stored_as_scrypt_hash(self, services, database):
        await services.users.create_user("admin", "s3cret")

        async with database.session() as db:
            record = await auth_crud.get_user_auth(db, "admin")
        assert record.typ == AuthType.BASIC
        assert record.data.startswith("$scrypt$")
        assert "s3cret" not in record.data

    @pytest.mark.asyncio
    async def test_same_password_gets_distinct_salts(self, services, database):
        await services.users.create_user("one", "same")
        await services.users.create_user("two", "same")

        async with database.session() as db:
            one = await auth_crud.get_user_auth(db, "one")
            two = await auth_crud.get_user_auth(db, "two")
        assert one.data != two.data

    @pytest.mark.asyncio
    async def test_duplicate_username(self, services):
        await services.users.create_user("admin", "a")

        with pytest.raises(DuplicateUserError):
            await services.users.create_user("admin", "b")
        assert await services.users.verify("admin", "a") is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username, password", [("", "pw"), ("admin", "")])
    async def test_missing_credentials(self, services, username, password):
        with pytest.raises(ValidationError):
            await services.users.create_user(username, password)
