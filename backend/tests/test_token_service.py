"""Tests for the token lifecycle service."""

from pathlib import Path

import pytest

from filedrop.api.schemas.token import TokenCreate
from filedrop.core.enums import TokenStatus
from filedrop.core.exceptions import DuplicateTokenError, NotFoundError, ValidationError

from helpers import FakePart, FakeParts, expire_token, make_token


class TestRequestToken:
    @pytest.mark.asyncio
    async def test_enum_values_mapped(self, services):
        token = await make_token(services, max_size="1GB", content_expires="1Week", valid_for="1Hour")

        assert token.status == TokenStatus.FRESH
        assert token.max_size_mib == 1024
        assert token.content_expires_after_hours == 7 * 24
        assert token.token_expires_at is not None

    @pytest.mark.asyncio
    async def test_unlimited_and_doesnt_expire(self, services):
        token = await make_token(services, max_size="Unlimited", valid_for="DoesntExpire")

        assert token.max_size_mib is None
        assert token.max_total_size is None
        assert token.token_expires_at is None

    @pytest.mark.asyncio
    async def test_month_is_31_days(self, services):
        token = await make_token(services, content_expires="1Month")
        assert token.content_expires_after_hours == 31 * 24

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field, value", [
        ("max_size", "2MB"),
        ("content_expires", "1Year"),
        ("content_expires", "DoesntExpire"),
        ("valid_for", "forever"),
    ])
    async def test_invalid_enum_values(self, services, field, value):
        params = TokenCreate(path="demo", **{field: value})
        with pytest.raises(ValidationError):
            await services.tokens.request_token(params)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["", "   ", ".", "..", "a/b", "..\\x"])
    async def test_invalid_paths(self, services, path):
        with pytest.raises(ValidationError):
            await make_token(services, path=path)

    @pytest.mark.asyncio
    async def test_duplicate_path(self, services):
        await make_token(services)
        with pytest.raises(DuplicateTokenError):
            await make_token(services)

    @pytest.mark.asyncio
    async def test_form_aliases_accepted(self, services):
        params = TokenCreate.model_validate({
            "path": "aliased",
            "max-size": "10MB",
            "content-expires": "1Hour",
            "valid-for": "1Day",
        })
        token = await services.tokens.request_token(params)
        assert token.max_size_mib == 10
        assert token.content_expires_after_hours == 1


class TestResolveAndConsume:
    @pytest.mark.asyncio
    async def test_resolve_unknown_path(self, services):
        assert await services.tokens.resolve_for_read("missing") is None

    @pytest.mark.asyncio
    async def test_consume_is_idempotent(self, services):
        token = await make_token(services)

        used = await services.tokens.consume(token)
        deadline = used.content_expires_at
        again = await services.tokens.consume(used)

        assert again.status == TokenStatus.USED
        assert again.content_expires_at == deadline
        resolved = await services.tokens.resolve_for_read("demo")
        assert resolved.content_expires_at == deadline

    @pytest.mark.asyncio
    async def test_expired_content_not_resolved(self, services, database):
        token = await services.tokens.consume(await make_token(services))
        await expire_token(database, token.id, content_expires_at=True)

        assert await services.tokens.resolve_for_read("demo") is None
        assert await services.tokens.list_completed_files("demo") == []

    @pytest.mark.asyncio
    async def test_fresh_token_exposes_no_files(self, services):
        await make_token(services)
        assert await services.tokens.list_completed_files("demo") == []
        assert await services.tokens.get_file("demo", 1) is None


class TestOpenFile:
    @pytest.mark.asyncio
    async def test_open_uploaded_file(self, services):
        token = await make_token(services)
        outcome = await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "a.txt", "text/plain", [b"abc"]),
        ))

        file, location = await services.tokens.open_file("demo", outcome.files[0].id)
        assert file.name == "a.txt"
        assert location.read_bytes() == b"abc"

    @pytest.mark.asyncio
    async def test_missing_bytes_is_not_found(self, services):
        token = await make_token(services)
        outcome = await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "a.txt", "text/plain", [b"abc"]),
        ))
        file_id = outcome.files[0].id
        Path(outcome.files[0].path).unlink()

        with pytest.raises(NotFoundError):
            await services.tokens.open_file("demo", file_id)

    @pytest.mark.asyncio
    async def test_unknown_file(self, services):
        await services.tokens.consume(await make_token(services))
        with pytest.raises(NotFoundError):
            await services.tokens.open_file("demo", 42)


class TestDeleteToken:
    @pytest.mark.asyncio
    async def test_forced_deletion_regardless_of_deadlines(self, services):
        token = await make_token(services, valid_for="DoesntExpire")
        await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "a.txt", None, [b"a"]),
            FakePart("file-1", "b.txt", None, [b"b"]),
        ))
        directory = services.root_path / "demo"
        assert (directory / str(token.id)).is_dir()

        report = await services.tokens.delete_token("demo")

        assert report.tokens == 1
        assert report.files == 2
        assert not directory.exists()
        assert await services.tokens.resolve_for_read("demo") is None
        # the path can be handed out again
        await make_token(services)

    @pytest.mark.asyncio
    async def test_no_token_still_removes_directory(self, services):
        directory = services.root_path / "orphan"
        directory.mkdir()
        (directory / "left.txt").write_bytes(b"x")

        report = await services.tokens.delete_token("orphan")

        assert report.tokens == 0
        assert report.files == 0
        assert not directory.exists()
