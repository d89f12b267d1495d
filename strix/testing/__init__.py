"""
Strix Testing - ASGI builders for request contexts.

Usage:
    from strix.testing import make_test_context

    ctx = make_test_context(
        method="POST",
        path="/users/42",
        route=Route("/users/:id"),
        body=b"name=alice",
        headers=[("content-type", "application/x-www-form-urlencoded")],
    )
    assert await ctx.param("id") == "42"
"""

from .utils import (
    make_test_scope,
    make_test_receive,
    make_test_request,
    make_test_context,
    make_multipart_body,
)

__all__ = [
    "make_test_scope",
    "make_test_receive",
    "make_test_request",
    "make_test_context",
    "make_multipart_body",
]
