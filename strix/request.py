"""
Request - ASGI request wrapper used by the request context.

Provides:
- Typed, async request object wrapping ASGI scope/receive
- Streaming body support with idempotent caching
- ``parse_form()``: one-shot URL-encoded body + query parsing
- ``multipart_reader()``: streaming multipart/form-data part reader
- Security limits: max body size, max fields
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from typing import (
    Any, AsyncIterator, Awaitable, Callable, Deque, Dict, List,
    Mapping, Optional, Tuple
)
from urllib.parse import parse_qsl

from python_multipart import MultipartParser
from python_multipart.exceptions import MultipartParseError as _ParserError
from python_multipart.multipart import parse_options_header

from ._datastructures import Headers, ParameterSpace, ParsedContentType
from ._uploads import FilePart, sanitize_filename
from .faults import Fault, FaultDomain, Severity


logger = logging.getLogger("strix.request")

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART_FORM = "multipart/form-data"

# Methods whose body carries form values
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

# A '%' not followed by two hex digits
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


# ============================================================================
# Request Faults
# ============================================================================

class RequestFault(Fault):
    """Base class for request-related faults."""
    domain = FaultDomain.IO
    severity = Severity.ERROR
    public = True

    def __init__(self, message: str = None, **metadata):
        super().__init__(
            code=self.code,
            message=message or self.message,
            public=self.public,
            metadata=metadata,
        )


class BodyParseError(RequestFault):
    """Request form body or query string could not be parsed (400)."""
    code = "BODY_PARSE_ERROR"
    message = "Malformed form encoding"


class MultipartReadError(RequestFault):
    """Multipart body missing, already consumed, or malformed (400)."""
    code = "MULTIPART_READ_ERROR"
    message = "Multipart read failed"


class PayloadTooLarge(RequestFault):
    """Request payload exceeds limits (413)."""
    code = "PAYLOAD_TOO_LARGE"
    message = "Payload too large"


class ClientDisconnect(RequestFault):
    """Client disconnected during request (499)."""
    code = "CLIENT_DISCONNECT"
    message = "Client disconnected"
    severity = Severity.WARN


# ============================================================================
# URL-encoded parsing
# ============================================================================

def parse_urlencoded(text: str, *, encoding: str = "utf-8") -> List[Tuple[str, str]]:
    """
    Strictly parse an ``application/x-www-form-urlencoded`` string.

    Order and repeated keys are preserved, blank values are kept.

    Raises:
        ValueError: On a ``;`` separator, an invalid percent escape, or
            escapes that do not decode with ``encoding``.
    """
    if not text:
        return []

    for field in text.split("&"):
        if ";" in field:
            raise ValueError("invalid semicolon separator in form data")
        bad = _BAD_ESCAPE_RE.search(field)
        if bad:
            raise ValueError(f"invalid URL escape {field[bad.start():bad.start() + 3]!r}")

    # UnicodeDecodeError is a ValueError subclass
    return parse_qsl(text, keep_blank_values=True, encoding=encoding, errors="strict")


# ============================================================================
# Request Class
# ============================================================================

class Request:
    """
    Request object for Strix.

    Features:
    - Streaming-first body access with a cached full read
    - Lazy query parsing
    - One-shot form parsing (``parse_form``) exposing ``form``
    - Streaming multipart part reader
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[..., Awaitable[dict]],
        *,
        max_body_size: int = 10_485_760,  # 10 MiB
        max_field_count: int = 1000,
        chunk_size: int = 64 * 1024,
    ):
        """
        Initialize Request.

        Args:
            scope: ASGI scope dict
            receive: ASGI receive callable
            max_body_size: Maximum request body size in bytes
            max_field_count: Maximum number of form fields/parts
            chunk_size: Default chunk size for streaming
        """
        self.scope = scope
        self._receive = receive

        self.max_body_size = max_body_size
        self.max_field_count = max_field_count
        self.chunk_size = chunk_size

        # Cached values
        self._body: Optional[bytes] = None
        self._stream_taken = False
        self._form: Optional[ParameterSpace] = None
        self._headers: Optional[Headers] = None
        self._disconnected = False

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        """Request path (decoded)."""
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        """Raw query string."""
        return self.scope.get("query_string", b"").decode("latin-1")

    # ========================================================================
    # Headers
    # ========================================================================

    @property
    def headers(self) -> Headers:
        """Get parsed headers."""
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    def content_type(self) -> Optional[str]:
        """Get Content-Type header."""
        return self.header("content-type")

    def content_length(self) -> Optional[int]:
        """Get Content-Length header as int."""
        length = self.header("content-length")
        if length:
            try:
                return int(length)
            except ValueError:
                return None
        return None

    @property
    def has_body(self) -> bool:
        """
        Whether the request announces a body.

        True for a positive Content-Length or any Transfer-Encoding.
        """
        if self.headers.has("transfer-encoding"):
            return True
        length = self.content_length()
        return bool(length and length > 0)

    # ========================================================================
    # Query & Form
    # ========================================================================

    @property
    def form(self) -> Optional[ParameterSpace]:
        """Form values once ``parse_form`` has run, else None."""
        return self._form

    async def parse_form(self) -> ParameterSpace:
        """
        Parse the URL-encoded body and the query string into ``form``.

        Body values come first, then query values, so a body value is
        the first one seen for a key present in both. The body is only
        read for POST/PUT/PATCH requests that declare a body with a
        form-urlencoded Content-Type; the query string is always parsed,
        with or without a body. Idempotent.

        Raises:
            BodyParseError: If either source is malformed or the body
                cannot be read.
        """
        if self._form is not None:
            return self._form

        items: List[Tuple[str, str]] = []

        parsed_ct = ParsedContentType.parse(self.content_type())
        if (
            self.method in _BODY_METHODS
            and self.has_body
            and parsed_ct is not None
            and parsed_ct.media_type == FORM_URLENCODED
        ):
            try:
                body_bytes = await self.body()
                items.extend(parse_urlencoded(
                    body_bytes.decode(parsed_ct.charset),
                    encoding=parsed_ct.charset,
                ))
            except (PayloadTooLarge, ClientDisconnect) as e:
                raise BodyParseError(f"Could not read form body: {e.message}", cause=e.code) from e
            except (ValueError, LookupError) as e:
                raise BodyParseError(f"Malformed form body: {e}") from e

        try:
            items.extend(parse_urlencoded(self.query_string))
        except ValueError as e:
            raise BodyParseError(f"Malformed query string: {e}") from e

        if len(items) > self.max_field_count:
            raise BodyParseError(
                "Too many form fields",
                max_allowed=self.max_field_count,
                actual=len(items),
            )

        self._form = ParameterSpace(items)
        logger.debug("Parsed %d form values for %s %s", len(items), self.method, self.path)
        return self._form

    # ========================================================================
    # Body Reading (Streaming & Single-shot)
    # ========================================================================

    async def _receive_message(self) -> dict:
        """
        Receive next ASGI message.

        Handles disconnect detection.
        """
        try:
            message = await self._receive()
        except asyncio.CancelledError:
            self._disconnected = True
            raise
        if message["type"] == "http.disconnect":
            self._disconnected = True
            raise ClientDisconnect("Client disconnected")
        return message

    def is_disconnected(self) -> bool:
        """Check if client has disconnected."""
        return self._disconnected

    @property
    def body_consumed(self) -> bool:
        """True once the ASGI stream was taken without caching the body."""
        return self._stream_taken and self._body is None

    async def iter_bytes(self, chunk_size: Optional[int] = None) -> AsyncIterator[bytes]:
        """
        Stream request body in chunks.

        Yields from the cached body if ``body()`` already ran. The ASGI
        stream itself can only be taken once; later calls yield nothing.

        Raises:
            ClientDisconnect: If client disconnects during streaming
            PayloadTooLarge: If body exceeds max_body_size
        """
        chunk_size = chunk_size or self.chunk_size

        if self._body is not None:
            for i in range(0, len(self._body), chunk_size):
                yield self._body[i:i + chunk_size]
            return

        if self._stream_taken:
            return
        self._stream_taken = True

        total_size = 0
        while True:
            message = await self._receive_message()

            if message["type"] == "http.request":
                chunk = message.get("body", b"")

                if chunk:
                    total_size += len(chunk)
                    if total_size > self.max_body_size:
                        raise PayloadTooLarge(
                            "Request body exceeds maximum size",
                            max_allowed=self.max_body_size,
                            actual=total_size,
                        )
                    yield chunk

                if not message.get("more_body", False):
                    break

    async def body(self) -> bytes:
        """
        Read full request body (idempotent).

        Raises:
            ClientDisconnect: If client disconnects
            PayloadTooLarge: If body exceeds max_body_size
        """
        if self._body is not None:
            return self._body

        chunks = []
        async for chunk in self.iter_bytes():
            chunks.append(chunk)

        self._body = b"".join(chunks)
        return self._body

    # ========================================================================
    # Multipart
    # ========================================================================

    def multipart_reader(self) -> "MultipartReader":
        """
        Get a streaming reader over the multipart/form-data body.

        Raises:
            MultipartReadError: If the request is not multipart, carries
                no boundary, or its body stream was already consumed.
        """
        ct = self.content_type()
        parsed_ct = ParsedContentType.parse(ct)
        if parsed_ct is None or parsed_ct.media_type != MULTIPART_FORM:
            raise MultipartReadError(
                f"Request Content-Type isn't {MULTIPART_FORM}",
                content_type=ct,
            )

        boundary = parsed_ct.boundary
        if not boundary:
            raise MultipartReadError("No boundary in multipart Content-Type")

        if self.body_consumed:
            raise MultipartReadError("Request body already consumed")

        return MultipartReader(self, boundary.encode("latin-1"))


# ============================================================================
# MultipartReader
# ============================================================================

class MultipartReader:
    """
    Async iterator over the parts of a multipart/form-data body.

    Body chunks are fed to python-multipart as parts are requested;
    completed parts are buffered until handed out. Each part's content
    is held in memory.
    """

    def __init__(self, request: Request, boundary: bytes):
        self._request = request
        self._chunks: Optional[AsyncIterator[bytes]] = None
        self._pending: Deque[FilePart] = deque()
        self._exhausted = False
        self._ended = False
        self._part_count = 0

        self._header_field = bytearray()
        self._header_value = bytearray()
        self._part_headers: Dict[str, str] = {}
        self._part_data = bytearray()

        self._parser = MultipartParser(boundary, {
            "on_part_begin": self._on_part_begin,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_end": self._on_end,
        })

    def __aiter__(self) -> "MultipartReader":
        return self

    async def __anext__(self) -> FilePart:
        part = await self.next_part()
        if part is None:
            raise StopAsyncIteration
        return part

    async def next_part(self) -> Optional[FilePart]:
        """
        Return the next part, or None at the end of the stream.

        Raises:
            MultipartReadError: If the stream is malformed, truncated,
                or cannot be read.
        """
        while not self._pending:
            if self._exhausted:
                return None
            await self._feed()
        return self._pending.popleft()

    async def _feed(self) -> None:
        if self._chunks is None:
            self._chunks = self._request.iter_bytes().__aiter__()

        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            self._exhausted = True
            self._parser.finalize()
            if not self._ended:
                raise MultipartReadError("Unexpected end of multipart stream")
            return
        except (PayloadTooLarge, ClientDisconnect) as e:
            self._exhausted = True
            raise MultipartReadError(f"Could not read multipart body: {e.message}", cause=e.code) from e

        try:
            self._parser.write(chunk)
        except _ParserError as e:
            self._exhausted = True
            raise MultipartReadError(f"Multipart parsing failed: {e}") from e

    # -- parser callbacks ---------------------------------------------------

    def _on_part_begin(self) -> None:
        self._part_count += 1
        if self._part_count > self._request.max_field_count:
            raise MultipartReadError(
                "Too many multipart parts",
                max_allowed=self._request.max_field_count,
            )
        self._part_headers = {}
        self._part_data = bytearray()

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field.extend(data[start:end])

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value.extend(data[start:end])

    def _on_header_end(self) -> None:
        if self._header_field:
            name = self._header_field.decode("utf-8", errors="replace").lower()
            self._part_headers[name] = self._header_value.decode("utf-8", errors="replace")
        self._header_field = bytearray()
        self._header_value = bytearray()

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._part_data.extend(data[start:end])

    def _on_part_end(self) -> None:
        name = ""
        filename = ""
        disposition = self._part_headers.get("content-disposition")
        if disposition:
            _, options = parse_options_header(disposition)
            if options.get(b"name"):
                name = options[b"name"].decode("utf-8", errors="replace")
            if options.get(b"filename"):
                filename = sanitize_filename(options[b"filename"].decode("utf-8", errors="replace"))

        self._pending.append(FilePart(
            name=name,
            filename=filename,
            content_type=self._part_headers.get("content-type", "text/plain"),
            headers=self._part_headers,
            content=bytes(self._part_data),
        ))

    def _on_end(self) -> None:
        self._ended = True
