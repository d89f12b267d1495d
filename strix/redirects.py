"""
Redirect helpers with an open-redirect guard.

Checked redirects only accept internal paths: the target must start
with ``/`` and must not contain ``:`` (which rules out ``http://``,
``javascript:`` and similar schemes). A protocol-relative ``//host``
target is refused too, as is any target carrying CR or LF; both are
deliberately stricter than the plain "leading slash, no colon" rule.
A refused redirect writes nothing and is only logged; the handler
decides what to send instead.

To send a client elsewhere on purpose use ``redirect_external``. It
never refuses, but percent-encodes CR and LF so the Location header
cannot be split.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .context import RequestContext


# Temporary by default: route targets may change
DEFAULT_REDIRECT_STATUS = HTTPStatus.FOUND

REDIRECT_PARAM = "redirect"

_HEADER_BREAKS = {"\r": "%0D", "\n": "%0A"}


def is_internal_path(path: str) -> bool:
    """True if ``path`` is a same-origin absolute path."""
    if not path.startswith("/") or ":" in path:
        return False
    if "\r" in path or "\n" in path:
        return False
    # Browsers read "//host" and "/\host" as another origin
    return not path.startswith(("//", "/\\"))


def _sanitize_url(url: str) -> str:
    for char, escaped in _HEADER_BREAKS.items():
        url = url.replace(char, escaped)
    return url


async def redirect_status(
    context: "RequestContext",
    path: str,
    status: int,
    *,
    allow_param_override: bool = False,
) -> bool:
    """
    Redirect to an internal path with the given status.

    Status may be any value, e.g. 301 (permanent), 302 (temporary) or
    401 (access denied).

    Args:
        context: Request context to write to
        path: Target path
        status: HTTP status code
        allow_param_override: When True, a non-empty ``redirect``
            request param replaces ``path``. Off by default.

    Returns:
        True if the redirect was written, False if it was refused.
    """
    if allow_param_override:
        override = await context.param(REDIRECT_PARAM)
        if override:
            path = override

    if is_internal_path(path):
        context.log("Redirecting (%d) to path: %s", status, path)
        context.writer.redirect(path, status)
        return True

    context.log_error("Ignoring redirect to external path %s", path)
    return False


async def redirect(
    context: "RequestContext",
    path: str,
    *,
    allow_param_override: bool = False,
) -> bool:
    """Redirect to an internal path with a temporary (302) status."""
    return await redirect_status(
        context,
        path,
        DEFAULT_REDIRECT_STATUS,
        allow_param_override=allow_param_override,
    )


def redirect_external(context: "RequestContext", url: str) -> None:
    """
    Redirect to any URL with a temporary (302) status.

    Does no checks on ``url`` and ignores the ``redirect`` param.
    CR and LF are percent-encoded. Use with caution.
    """
    context.writer.redirect(_sanitize_url(url), DEFAULT_REDIRECT_STATUS)
