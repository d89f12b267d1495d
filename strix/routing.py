"""
Route templates and per-request path-variable bindings.

A ``Route`` is compiled once and shared by every request that matches
it. Matching a path never mutates the route: it yields a fresh
``RouteBinding`` that lazily extracts and caches the path variables for
that one request.

Pattern placeholders:
- ``:name`` or ``{name}``: one path segment
- ``{name:regex}``: one segment constrained by ``regex``
- ``*name``: the rest of the path (may contain slashes)
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern

from .faults import Fault, FaultDomain


class PatternError(Fault):
    """Route pattern could not be compiled."""
    code = "PATTERN_ERROR"
    message = "Invalid route pattern"
    domain = FaultDomain.ROUTING


_SEGMENT_TOKEN_RE = re.compile(
    r"^(?::(?P<colon>[A-Za-z_]\w*)"
    r"|\{(?P<brace>[A-Za-z_]\w*)(?::(?P<regex>[^}]+))?\}"
    r"|\*(?P<splat>[A-Za-z_]\w*))$"
)


def clean_path(path: str) -> str:
    """
    Return the canonical form of a request path.

    Collapses repeated slashes, resolves ``.`` and ``..`` segments and
    drops a trailing slash. Always starts with ``/``.
    """
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path

    cleaned = posixpath.normpath(path)
    # normpath keeps exactly two leading slashes (POSIX)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


@dataclass
class Route:
    """
    Compiled route template.

    Attributes:
        pattern: Raw pattern, e.g. ``/users/:id``
        name: Optional route name
        param_names: Placeholder names in pattern order
    """

    pattern: str
    name: Optional[str] = None
    param_names: List[str] = field(default_factory=list, init=False)
    _regex: Pattern = field(init=False, repr=False)

    def __post_init__(self):
        self._regex = self._compile(self.pattern)

    def _compile(self, pattern: str) -> Pattern:
        if not pattern.startswith("/"):
            raise PatternError(message=f"Route pattern must start with '/': {pattern!r}")

        parts = []
        segments = [s for s in pattern.strip("/").split("/") if s]
        for index, segment in enumerate(segments):
            token = _SEGMENT_TOKEN_RE.match(segment)
            if token is None:
                if any(c in segment for c in ":{}*"):
                    raise PatternError(message=f"Malformed placeholder {segment!r} in {pattern!r}")
                parts.append("/" + re.escape(segment))
                continue

            param = token.group("colon") or token.group("brace") or token.group("splat")
            if param in self.param_names:
                raise PatternError(message=f"Duplicate parameter name {param!r} in {pattern!r}")
            self.param_names.append(param)

            if token.group("splat"):
                if index != len(segments) - 1:
                    raise PatternError(message=f"Splat must be the last segment in {pattern!r}")
                parts.append(f"(?:/(?P<{param}>.*))?")
            else:
                regex = token.group("regex") or "[^/]+"
                parts.append(f"/(?P<{param}>{regex})")

        return re.compile("^" + ("".join(parts) or "/") + "$")

    def matches(self, path: str) -> bool:
        """Check whether ``path`` (cleaned) matches this route."""
        return self._regex.match(clean_path(path)) is not None

    def bind(self) -> "RouteBinding":
        """Create an unparsed per-request binding for this route."""
        return RouteBinding(route=self)

    def match(self, path: str) -> Optional["RouteBinding"]:
        """Return a fresh binding when ``path`` matches, else None."""
        if not self.matches(path):
            return None
        return self.bind()

    def extract(self, path: str) -> Dict[str, str]:
        """Extract path variables from ``path``; empty if it does not match."""
        found = self._regex.match(clean_path(path))
        if found is None:
            return {}
        return {name: value for name, value in found.groupdict().items() if value is not None}


@dataclass
class RouteBinding:
    """
    Path-variable bindings of one route for one request.

    ``params`` is None until ``parse`` runs; afterwards it holds the
    bound variables (possibly empty). Only the first ``parse`` call
    does any work.
    """

    route: Route
    params: Optional[Dict[str, str]] = None

    @property
    def parsed(self) -> bool:
        return self.params is not None

    def parse(self, path: str) -> Dict[str, str]:
        """Bind path variables for ``path`` (idempotent)."""
        if self.params is None:
            self.params = self.route.extract(path)
        return self.params

    def get(self, key: str) -> str:
        """Bound value for ``key``, or empty string."""
        if self.params is None:
            return ""
        return self.params.get(key, "")
