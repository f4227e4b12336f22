"""Tests for the upload ingestor."""

import asyncio
from pathlib import Path

import pytest
from sqlalchemy import select

from filedrop.core.enums import FileUploadStatus, TokenStatus
from filedrop.core.exceptions import FileIOError, PayloadTooLargeError, ProtocolDecodeError
from filedrop.db.models import File

from helpers import FakePart, FakeParts, make_token, multipart_body, stream_of

MIB = 1024 * 1024


async def _file_rows(database, token_id):
    async with database.session() as db:
        result = await db.execute(select(File).where(File.token_id == token_id).order_by(File.id))
        return list(result.scalars().all())


class DisconnectingPart(FakePart):
    """Part whose body stops with a cancellation after the first chunk."""

    async def read_chunk(self):
        if self._chunks:
            return self._chunks.pop(0)
        raise asyncio.CancelledError()


class TestIngest:
    @pytest.mark.asyncio
    async def test_demo_round_trip(self, services, database):
        token = await make_token(services, path="demo", max_size="10MB")

        outcome = await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "hello.txt", "text/plain", [b"hello ", b"world"]),
        ))

        assert outcome.token.status == TokenStatus.USED
        assert outcome.token.content_expires_at is not None
        assert outcome.bytes_written == 11
        stored = Path(outcome.files[0].path)
        assert stored.parent == services.root_path.resolve() / "demo" / str(token.id)
        assert stored.read_bytes() == b"hello world"

        files = await services.tokens.list_completed_files("demo")
        assert [(f.name, f.size, f.content_type) for f in files] == [("hello.txt", 11, "text/plain")]
        rows = await _file_rows(database, token.id)
        assert all(row.file_upload_status == FileUploadStatus.COMPLETED for row in rows)

    @pytest.mark.asyncio
    async def test_multiple_parts(self, services):
        token = await make_token(services)

        outcome = await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "a.txt", None, [b"a"]),
            FakePart("file-1", "b.txt", None, [b"bb"]),
        ))

        assert [f.name for f in outcome.files] == ["a.txt", "b.txt"]
        assert [f.size for f in outcome.files] == [1, 2]

    @pytest.mark.asyncio
    async def test_same_filename_twice_keeps_both_files(self, services):
        token = await make_token(services)

        outcome = await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "a.txt", None, [b"first-longer-content"]),
            FakePart("file-1", "a.txt", None, [b"2nd"]),
        ))

        first, second = outcome.files
        assert first.path != second.path
        assert (first.name, second.name) == ("a.txt", "a.txt")
        for file, content in ((first, b"first-longer-content"), (second, b"2nd")):
            row, location = await services.tokens.open_file("demo", file.id)
            assert row.size == len(content)
            assert location.read_bytes() == content

    @pytest.mark.asyncio
    async def test_part_without_filename_skipped(self, services, database):
        token = await make_token(services)

        outcome = await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "", None, [b"ignored"]),
        ))

        assert outcome.files == []
        assert outcome.token.status == TokenStatus.USED
        assert await _file_rows(database, token.id) == []

    @pytest.mark.asyncio
    async def test_empty_session_consumes_token(self, services):
        token = await make_token(services)

        outcome = await services.uploads.ingest(token, FakeParts())

        assert outcome.token.status == TokenStatus.USED
        resolved = await services.tokens.resolve_for_read("demo")
        assert resolved.status == TokenStatus.USED

    @pytest.mark.asyncio
    async def test_client_path_stripped_from_filename(self, services):
        token = await make_token(services)

        outcome = await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "../../etc/passwd", None, [b"x"]),
        ))

        assert outcome.files[0].name == "../../etc/passwd"
        stored = Path(outcome.files[0].path)
        assert stored.name.endswith("-passwd")
        assert stored.read_bytes() == b"x"

    @pytest.mark.asyncio
    async def test_over_budget_aborts_and_keeps_token_fresh(self, services, database):
        token = await make_token(services, max_size="1MB")
        chunk = b"x" * (256 * 1024)

        with pytest.raises(PayloadTooLargeError):
            await services.uploads.ingest(token, FakeParts(
                FakePart("file-1", "big.bin", None, [chunk] * 5),
            ))

        assert await _file_rows(database, token.id) == []
        assert list((services.root_path / "demo" / str(token.id)).iterdir()) == []
        resolved = await services.tokens.resolve_for_read("demo")
        assert resolved.status == TokenStatus.FRESH

    @pytest.mark.asyncio
    async def test_budget_counts_every_part(self, services, database):
        token = await make_token(services, max_size="1MB")
        chunk = b"x" * (512 * 1024)

        with pytest.raises(PayloadTooLargeError):
            await services.uploads.ingest(token, FakeParts(
                FakePart("file-1", "first.bin", None, [chunk]),
                FakePart("file-1", "second.bin", None, [chunk, chunk]),
            ))

        rows = await _file_rows(database, token.id)
        assert [(row.name, row.file_upload_status) for row in rows] == [("first.bin", FileUploadStatus.COMPLETED)]
        assert (await services.tokens.resolve_for_read("demo")).status == TokenStatus.FRESH

    @pytest.mark.asyncio
    async def test_budget_includes_overhead_allowance(self, services):
        token = await make_token(services, max_size="1MB")
        assert services.uploads.max_stream_size(token) == MIB + 10 * 1024

        outcome = await services.uploads.ingest(token, FakeParts(
            FakePart("file-1", "exact.bin", None, [b"x" * MIB]),
        ))
        assert outcome.files[0].size == MIB

    @pytest.mark.asyncio
    async def test_write_failure_leaves_row_started(self, services, database):
        token = await make_token(services)
        # a directory where the file should go makes the open fail
        (services.root_path / "demo" / str(token.id) / "1-a.txt").mkdir(parents=True)

        with pytest.raises(FileIOError):
            await services.uploads.ingest(token, FakeParts(
                FakePart("file-1", "a.txt", None, [b"a"]),
            ))

        rows = await _file_rows(database, token.id)
        assert [row.file_upload_status for row in rows] == [FileUploadStatus.STARTED]
        assert (await services.tokens.resolve_for_read("demo")).status == TokenStatus.FRESH
        assert await services.tokens.list_completed_files("demo") == []

    @pytest.mark.asyncio
    async def test_disconnect_leaves_row_started(self, services, database):
        token = await make_token(services)

        with pytest.raises(asyncio.CancelledError):
            await services.uploads.ingest(token, FakeParts(
                DisconnectingPart("file-1", "a.txt", None, [b"partial"]),
            ))

        rows = await _file_rows(database, token.id)
        assert [row.file_upload_status for row in rows] == [FileUploadStatus.STARTED]
        assert (await services.tokens.resolve_for_read("demo")).status == TokenStatus.FRESH
        assert not services.write_lock.locked()


class TestIngestStream:
    @pytest.mark.asyncio
    async def test_multipart_body(self, services):
        token = await make_token(services)
        body = multipart_body("XyZ", [
            ("file-1", "notes.md", "text/markdown", b"# notes\n"),
            ("file-1", "", None, b""),
        ])

        outcome = await services.uploads.ingest_stream(token, stream_of(body), "XyZ")

        assert [f.name for f in outcome.files] == ["notes.md"]
        assert Path(outcome.files[0].path).read_bytes() == b"# notes\n"

    @pytest.mark.asyncio
    async def test_unknown_field_keeps_token_fresh(self, services):
        token = await make_token(services)
        body = multipart_body("XyZ", [("file-2", "a.txt", None, b"a")])

        with pytest.raises(ProtocolDecodeError):
            await services.uploads.ingest_stream(token, stream_of(body), "XyZ")

        assert (await services.tokens.resolve_for_read("demo")).status == TokenStatus.FRESH

    @pytest.mark.asyncio
    async def test_truncated_body_discards_partial_file(self, services, database):
        token = await make_token(services)
        body = multipart_body("XyZ", [("file-1", "a.txt", None, b"0123456789" * 10)])

        with pytest.raises(ProtocolDecodeError):
            await services.uploads.ingest_stream(token, stream_of(body[:-20]), "XyZ")

        assert await _file_rows(database, token.id) == []
        assert list((services.root_path / "demo" / str(token.id)).iterdir()) == []
