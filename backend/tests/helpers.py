"""Factory helpers shared by the test modules."""

from datetime import timedelta

from sqlalchemy import update

from filedrop.api.schemas.token import TokenCreate
from filedrop.core.clock import utcnow
from filedrop.db.models import Token


async def make_token(services, path="demo", max_size="Unlimited", content_expires="1Day", valid_for="1Day"):
    params = TokenCreate(path=path, max_size=max_size, content_expires=content_expires, valid_for=valid_for)
    return await services.tokens.request_token(params)


async def expire_token(database, token_id, **deadlines):
    """Move token deadlines into the past instead of sleeping."""
    past = utcnow() - timedelta(seconds=1)
    values = {name: past for name, enabled in deadlines.items() if enabled}
    async with database.session() as db:
        await db.execute(update(Token).where(Token.id == token_id).values(**values))


class FakePart:
    """In-memory stand-in for a multipart part."""

    def __init__(self, name, filename, content_type, chunks):
        self.name = name
        self.filename = filename
        self.content_type = content_type
        self._chunks = list(chunks)
        self.done = False

    async def read_chunk(self):
        if not self._chunks:
            self.done = True
            return None
        return self._chunks.pop(0)


class FakeParts:
    """Hands out FakeParts in order, like MultipartReader.next_part."""

    def __init__(self, *parts):
        self._parts = list(parts)

    async def next_part(self):
        return self._parts.pop(0) if self._parts else None


async def stream_of(*chunks):
    for chunk in chunks:
        yield chunk


def multipart_body(boundary, parts):
    """Encode ``(field, filename, content_type, data)`` tuples as a multipart body."""
    body = b""
    for field, filename, content_type, data in parts:
        disposition = f'form-data; name="{field}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        body += f"--{boundary}\r\n".encode()
        body += f"Content-Disposition: {disposition}\r\n".encode()
        if content_type:
            body += f"Content-Type: {content_type}\r\n".encode()
        body += b"\r\n" + data + b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    return body
