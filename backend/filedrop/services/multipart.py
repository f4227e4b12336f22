"""
Streaming multipart/form-data reader.

Wraps the python-multipart push parser into a pull interface: the caller
asks for the next part, then reads that part's body chunk by chunk. Bytes are
only pulled from the request body when the caller needs them, so nothing is
buffered beyond the chunk being parsed.
"""
import logging
from collections import deque
from typing import AsyncIterable, AsyncIterator, Deque, Dict, Iterable, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from ..core.exceptions import PayloadTooLargeError, ProtocolDecodeError

logger = logging.getLogger(__name__)

_HEADERS = "headers"
_DATA = "data"
_PART_END = "part_end"


def parse_boundary(content_type: Optional[str]) -> str:
    """
    Extract the boundary of a multipart/form-data Content-Type header.

    Raises:
        ProtocolDecodeError: not multipart/form-data, or no boundary
    """
    if not content_type:
        raise ProtocolDecodeError("Missing Content-Type header")
    media_type, params = parse_options_header(content_type)
    if media_type != b"multipart/form-data":
        raise ProtocolDecodeError(f"Expected multipart/form-data, got {media_type.decode('latin-1')}")
    boundary = params.get(b"boundary")
    if not boundary:
        raise ProtocolDecodeError("Missing multipart boundary")
    return boundary.decode("latin-1")


class UploadPart:
    """One part of a multipart body: headers plus a lazily read body."""

    def __init__(self, reader: "MultipartReader", name: str, filename: Optional[str],
                 content_type: Optional[str]):
        self._reader = reader
        self.name = name
        self.filename = filename
        self.content_type = content_type
        self.done = False

    async def read_chunk(self) -> Optional[bytes]:
        """Next chunk of this part's body, or None once the part is finished."""
        while not self.done:
            kind, payload = await self._reader._next_event()
            if kind == _DATA:
                if payload:
                    return payload
            elif kind == _PART_END:
                self.done = True
            else:
                raise ProtocolDecodeError("Part headers found inside a part body")
        return None

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read_chunk()
            if chunk is None:
                return
            yield chunk

    def __repr__(self) -> str:
        return f"<UploadPart name={self.name!r} filename={self.filename!r}>"


class MultipartReader:
    """
    Pull-based reader over a streamed multipart/form-data body.

    Args:
        body: the raw request body
        boundary: boundary from the Content-Type header
        allowed_fields: accepted field names; any other name is a protocol error
        max_bytes: maximum size of the raw body, None for unbounded
    """

    def __init__(self, body: AsyncIterable[bytes], boundary: str,
                 allowed_fields: Optional[Iterable[str]] = None,
                 max_bytes: Optional[int] = None):
        self._body = body.__aiter__()
        self.allowed_fields = set(allowed_fields) if allowed_fields is not None else None
        self.max_bytes = max_bytes
        self.bytes_received = 0

        self._events: Deque[Tuple[str, object]] = deque()
        self._body_exhausted = False
        self._ended = False
        self._current: Optional[UploadPart] = None

        self._header_field = b""
        self._header_value = b""
        self._headers: Dict[bytes, bytes] = {}

        callbacks = {
            "on_part_begin": self._on_part_begin,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
            "on_end": self._on_end,
        }
        self._parser = MultipartParser(boundary, callbacks)

    # parser callbacks, called synchronously from MultipartParser.write

    def _on_part_begin(self) -> None:
        self._headers = {}

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._events.append((_DATA, bytes(data[start:end])))

    def _on_part_end(self) -> None:
        self._events.append((_PART_END, None))

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        self._events.append((_HEADERS, dict(self._headers)))

    def _on_end(self) -> None:
        self._ended = True

    async def _feed(self) -> None:
        try:
            chunk = await self._body.__anext__()
        except StopAsyncIteration:
            self._body_exhausted = True
            self._parser.finalize()
            if not self._ended:
                raise ProtocolDecodeError("Multipart body ended before the closing boundary")
            return

        self.bytes_received += len(chunk)
        if self.max_bytes is not None and self.bytes_received > self.max_bytes:
            raise PayloadTooLargeError(self.max_bytes)
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            raise ProtocolDecodeError(f"Malformed multipart body: {e}") from e

    async def _next_event(self) -> Tuple[str, object]:
        while not self._events:
            if self._body_exhausted:
                raise ProtocolDecodeError("Multipart body ended inside a part")
            await self._feed()
        return self._events.popleft()

    def _make_part(self, headers: Dict[bytes, bytes]) -> UploadPart:
        disposition = headers.get(b"content-disposition")
        if disposition is None:
            raise ProtocolDecodeError("Part without Content-Disposition header")
        _, options = parse_options_header(disposition)
        raw_name = options.get(b"name")
        if raw_name is None:
            raise ProtocolDecodeError("Part without a field name")
        name = raw_name.decode("utf-8", errors="replace")
        if self.allowed_fields is not None and name not in self.allowed_fields:
            raise ProtocolDecodeError(f"Unknown field {name!r}")

        raw_filename = options.get(b"filename")
        filename = raw_filename.decode("utf-8", errors="replace") if raw_filename is not None else None
        raw_content_type = headers.get(b"content-type")
        content_type = raw_content_type.decode("latin-1").strip() if raw_content_type else None
        return UploadPart(self, name, filename, content_type)

    async def next_part(self) -> Optional[UploadPart]:
        """
        Advance to the next part, skipping whatever is left of the current one.

        Returns:
            The next part, or None after the closing boundary
        """
        if self._current is not None and not self._current.done:
            while await self._current.read_chunk() is not None:
                pass
        self._current = None

        while True:
            if not self._events:
                if self._ended and self._body_exhausted:
                    return None
                if self._body_exhausted:
                    raise ProtocolDecodeError("Multipart body ended inside a part")
                if self._ended:
                    # drain the epilogue so finalize() runs and the size is checked
                    await self._feed()
                    continue
                await self._feed()
                continue
            kind, payload = self._events.popleft()
            if kind == _HEADERS:
                self._current = self._make_part(payload)
                return self._current
            logger.debug("Ignoring stray multipart event %s", kind)
