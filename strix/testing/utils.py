"""
Strix Testing - Request/context utility factories.

Provides helper functions for building ASGI scopes, receive callables,
Request objects, multipart bodies and RequestContext objects for tests.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

from strix.config import Config
from strix.context import RequestContext
from strix.request import Request
from strix.response import ResponseWriter
from strix.routing import Route, RouteBinding


def make_test_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
) -> dict:
    """
    Build a minimal ASGI HTTP scope for testing.

    Args:
        method: HTTP method.
        path: Request path.
        query_string: Raw query string (without ``?``).
        headers: List of ``(name, value)`` tuples (strings or bytes).
        scheme: URL scheme.

    Returns:
        ASGI scope dictionary.
    """
    raw_headers: list[tuple[bytes, bytes]] = []
    if headers:
        for name, value in headers:
            raw_headers.append((
                name.encode("latin-1") if isinstance(name, str) else name,
                value.encode("latin-1") if isinstance(value, str) else value,
            ))

    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": (
            query_string.encode("utf-8")
            if isinstance(query_string, str)
            else query_string
        ),
        "headers": raw_headers,
        "scheme": scheme,
        "server": ("127.0.0.1", 8000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_test_receive(
    body: bytes = b"",
    *,
    chunks: Optional[List[bytes]] = None,
):
    """
    Create an ASGI receive callable.

    Args:
        body: Complete request body bytes.
        chunks: Optional list of body chunks (overrides *body*).

    Returns:
        Async callable matching the ASGI ``receive`` protocol.
    """
    if chunks:
        messages: list[dict] = []
        for i, chunk in enumerate(chunks):
            messages.append({
                "type": "http.request",
                "body": chunk,
                "more_body": i < len(chunks) - 1,
            })
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


def make_test_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    form_data: Optional[Union[Dict[str, str], Sequence[Tuple[str, str]]]] = None,
    chunks: Optional[List[bytes]] = None,
    **kwargs: Any,
) -> Request:
    """
    Build a full :class:`~strix.request.Request` for testing.

    When *form_data* is provided the body is URL-encoded and the
    ``Content-Type`` header is injected. A ``Content-Length`` header is
    added for any non-empty body unless one was given.

    Args:
        method: HTTP method.
        path: Request path.
        query_string: Raw query string.
        headers: Header list.
        body: Raw body bytes.
        form_data: Optional ``application/x-www-form-urlencoded`` payload.
        chunks: Optional body chunks (overrides *body*).
        **kwargs: Forwarded to :class:`Request`.
    """
    headers = list(headers) if headers else []

    if form_data is not None:
        body = urlencode(form_data).encode("utf-8")
        headers.append(("content-type", "application/x-www-form-urlencoded"))

    size = sum(len(c) for c in chunks) if chunks else len(body)
    names = {(n.decode("latin-1") if isinstance(n, bytes) else n).lower() for n, _ in headers}
    if size and not names & {"content-length", "transfer-encoding"}:
        headers.append(("content-length", str(size)))

    scope = make_test_scope(
        method=method,
        path=path,
        query_string=query_string,
        headers=headers,
    )
    return Request(scope, make_test_receive(body, chunks=chunks), **kwargs)


def make_multipart_body(
    fields: Optional[Sequence[Tuple[str, str]]] = None,
    files: Optional[Sequence[Tuple[str, str, bytes, str]]] = None,
    boundary: str = "strixboundary",
) -> Tuple[bytes, str]:
    """
    Encode a multipart/form-data body.

    Args:
        fields: ``(name, value)`` plain fields.
        files: ``(name, filename, content, content_type)`` file parts.
        boundary: Multipart boundary.

    Returns:
        ``(body, content_type)`` tuple.
    """
    lines: List[bytes] = []
    for name, value in fields or []:
        lines.append(f"--{boundary}\r\n".encode())
        lines.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
        lines.append(value.encode("utf-8") + b"\r\n")
    for name, filename, content, content_type in files or []:
        lines.append(f"--{boundary}\r\n".encode())
        lines.append(
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'.encode()
        )
        lines.append(f"Content-Type: {content_type}\r\n\r\n".encode())
        lines.append(content + b"\r\n")
    lines.append(f"--{boundary}--\r\n".encode())
    return b"".join(lines), f"multipart/form-data; boundary={boundary}"


def make_test_context(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    *,
    route: Optional[Union[str, Route, RouteBinding]] = None,
    config: Optional[Union[Config, Dict[str, Any]]] = None,
    logger: Optional[logging.Logger] = None,
    request: Optional[Request] = None,
    **kwargs: Any,
) -> RequestContext:
    """
    Build a :class:`~strix.context.RequestContext` for testing.

    Args:
        route: Route pattern, template or binding for the request.
        config: Config instance or plain dict of settings.
        logger: Context logger (defaults to ``strix.context``).
        request: Pre-built request (other request arguments ignored).
        **kwargs: Forwarded to :func:`make_test_request`.
    """
    if request is None:
        request = make_test_request(
            method=method,
            path=path,
            query_string=query_string,
            headers=headers,
            body=body,
            **kwargs,
        )
    if isinstance(route, str):
        route = Route(route)
    if isinstance(config, dict):
        config = Config(config)

    return RequestContext(
        ResponseWriter(),
        request,
        route,
        config=config,
        logger=logger,
    )

