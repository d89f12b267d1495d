"""
Response - Buffered HTTP response sink for a request context.

Provides:
- ResponseWriter: status, headers and body accumulated by handlers
- Redirect helper (Location header + status)
- Header validation against injection
- ASGI 3 send
"""

from __future__ import annotations

import html
import logging
from http import HTTPStatus
from typing import Awaitable, Callable, Dict, List, Optional, Union

from .faults import Fault, FaultDomain, Severity


logger = logging.getLogger("strix.response")


class InvalidHeaderError(Fault):
    code = "INVALID_HEADER"
    message = "Invalid header"
    domain = FaultDomain.SECURITY
    severity = Severity.ERROR


class ResponseWriter:
    """
    Response sink handed to handlers through the request context.

    Handlers set a status, headers and body; the dispatch layer sends
    the result with ``send``. The first status written wins.
    """

    def __init__(self, *, encoding: str = "utf-8", validate_headers: bool = True):
        self.status: int = HTTPStatus.OK
        self.encoding = encoding
        self.validate_headers = validate_headers
        self._headers: Dict[str, Union[str, List[str]]] = {}
        self._body = bytearray()
        self._status_written = False

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        """Get response headers."""
        return self._headers

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    @property
    def written(self) -> bool:
        """True once a status or body has been written."""
        return self._status_written

    # ========================================================================
    # Header Helpers
    # ========================================================================

    def set_header(self, name: str, value: str) -> None:
        """Set header (replaces existing)."""
        if self.validate_headers:
            self._validate_header(name, value)
        self._headers[name.lower()] = value

    def add_header(self, name: str, value: str) -> None:
        """Add header (supports multiple values)."""
        if self.validate_headers:
            self._validate_header(name, value)

        name_lower = name.lower()
        if name_lower in self._headers:
            existing = self._headers[name_lower]
            if isinstance(existing, list):
                existing.append(value)
            else:
                self._headers[name_lower] = [existing, value]
        else:
            self._headers[name_lower] = value

    def get_header(self, name: str) -> Optional[str]:
        value = self._headers.get(name.lower())
        if isinstance(value, list):
            return value[0]
        return value

    def _validate_header(self, name: str, value: str) -> None:
        """
        Validate header name and value against injection attacks.

        Raises InvalidHeaderError if header contains control characters.
        """
        for char in name:
            if ord(char) < 32 or char in ("\r", "\n"):
                raise InvalidHeaderError(
                    message=f"Invalid header name: {name!r}",
                    metadata={"header_name": name},
                )

        for char in value:
            if char in ("\r", "\n"):
                raise InvalidHeaderError(
                    message=f"Invalid header value: {value!r}",
                    metadata={"header_name": name, "header_value": value},
                )

    # ========================================================================
    # Writing
    # ========================================================================

    def write_status(self, status: int) -> None:
        """Set the status code. Only the first call takes effect."""
        if self._status_written:
            logger.warning("Status already written (%d), ignoring %d", self.status, status)
            return
        self.status = status
        self._status_written = True

    def write(self, content: Union[bytes, str]) -> int:
        """Append to the body, writing a 200 status first if none was set."""
        if not self._status_written:
            self.write_status(HTTPStatus.OK)
        if isinstance(content, str):
            content = content.encode(self.encoding)
        self._body.extend(content)
        return len(content)

    def redirect(self, url: str, status: int = HTTPStatus.FOUND) -> None:
        """
        Write a redirect to ``url``.

        Sets the Location header and status, with a short HTML body
        linking to the target.
        """
        self.set_header("location", url)
        self.set_header("content-type", "text/html; charset=utf-8")
        self.write_status(status)
        try:
            phrase = HTTPStatus(status).phrase
        except ValueError:
            phrase = "Redirect"
        self.write(f'<a href="{html.escape(url)}">{phrase}</a>.\n')

    # ========================================================================
    # ASGI Send
    # ========================================================================

    def _prepare_headers(self) -> List[tuple]:
        """Prepare headers for ASGI (convert to list of byte tuples)."""
        headers_list = []
        for name, value in self._headers.items():
            name_bytes = name.encode("latin-1")
            if isinstance(value, list):
                for v in value:
                    headers_list.append((name_bytes, v.encode("latin-1")))
            else:
                headers_list.append((name_bytes, value.encode("latin-1")))
        return headers_list

    async def send(self, send: Callable[[dict], Awaitable[None]]) -> None:
        """Send the buffered response via ASGI."""
        if "content-length" not in self._headers:
            self._headers["content-length"] = str(len(self._body))

        await send({
            "type": "http.response.start",
            "status": int(self.status),
            "headers": self._prepare_headers(),
        })
        await send({
            "type": "http.response.body",
            "body": bytes(self._body),
            "more_body": False,
        })

