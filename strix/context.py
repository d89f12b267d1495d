"""
RequestContext - per-request facade over request, response, route and config.

Parameter resolution merges three sources into one ParameterSpace:

1. form body values (URL-encoded POST/PUT/PATCH bodies)
2. query string values
3. route path variables

Sources 1 and 2 come from ``Request.parse_form``, which parses the query
string strictly whether or not the request has a body; source 3 from
the route binding.
The body parse and the route parse each run at most once per request.
The merge itself is rebuilt on every ``params()`` call.

Because form/query values are added first and ``ParameterSpace.get``
returns the first value, they win over route variables of the same
name.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from ._datastructures import ParameterSpace
from ._uploads import FilePart
from .config import Config
from .redirects import redirect, redirect_external, redirect_status
from .request import BodyParseError, Request
from .response import ResponseWriter
from .routing import Route, RouteBinding, clean_path


class RequestContext:
    """
    Request context for one HTTP exchange.

    Attributes:
        writer: Response sink for this request
        request: The inbound request
        path: Cleaned request path
        route: Per-request route binding (None when nothing matched)
        errors: Errors collected while routing or rendering
        logger: Logger shared with the router
        config: Process-wide configuration

    Not safe to share between requests. Tasks fanned out within one
    request may share it: the body parse runs under a lock.
    """

    def __init__(
        self,
        writer: ResponseWriter,
        request: Request,
        route: Optional[Union[Route, RouteBinding]] = None,
        *,
        path: Optional[str] = None,
        config: Optional[Config] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.writer = writer
        self.request = request
        self.path = clean_path(path if path is not None else request.path)
        # A bare template gets its own binding so parses never touch shared state
        if isinstance(route, Route):
            route = route.bind()
        self.route = route
        self.errors: List[Exception] = []
        self.logger = logger or logging.getLogger("strix.context")
        self.config = config or Config()

        self._body_parsed = False
        self._body_error: Optional[BodyParseError] = None
        self._body_lock = asyncio.Lock()

    @classmethod
    def from_scope(
        cls,
        scope: Mapping[str, Any],
        receive: Callable[..., Awaitable[dict]],
        route: Optional[Union[Route, RouteBinding]] = None,
        **kwargs,
    ) -> "RequestContext":
        """Build a context with a fresh writer from an ASGI scope."""
        request_options = {
            key: kwargs.pop(key)
            for key in ("max_body_size", "max_field_count", "chunk_size")
            if key in kwargs
        }
        return cls(ResponseWriter(), Request(scope, receive, **request_options), route, **kwargs)

    # ========================================================================
    # Logging & errors
    # ========================================================================

    def log(self, msg: str, *args: Any) -> None:
        """Log an informational message through the context logger."""
        self.logger.info(msg, *args)

    def log_error(self, msg: str, *args: Any) -> None:
        self.logger.error(msg, *args)

    def add_error(self, error: Exception) -> None:
        """Record an error raised while routing or rendering."""
        self.errors.append(error)

    # ========================================================================
    # Parameters
    # ========================================================================

    async def params(self) -> ParameterSpace:
        """
        Load and return all params for the request.

        May trigger the one-time body parse and route parse.

        Raises:
            BodyParseError: If the form body or query string is
                malformed. The failure is remembered: later calls raise
                it again without re-reading the body.
        """
        try:
            await self._parse_body()
        except BodyParseError as e:
            self.log_error("Error parsing request params: %s", e)
            raise

        params = ParameterSpace()

        for key, value in self.request.form.items_list():
            params.add(key, value)

        for key, value in self._route_params().items():
            params.add(key, value)

        return params

    async def param(self, key: str) -> str:
        """
        Get a single param value, ignoring multiple values.

        Returns an empty string when the key is absent or the body
        could not be parsed.
        """
        try:
            params = await self.params()
        except BodyParseError:
            return ""
        return params.get(key)

    async def param_int(self, key: str) -> int:
        """
        Get a single param value as int, ignoring multiple values.

        Returns 0 when the key is absent, not an integer, or the body
        could not be parsed.
        """
        try:
            params = await self.params()
        except BodyParseError:
            return 0
        return params.get_int(key)

    def route_param(self, key: str) -> str:
        """Get a param bound by the route (may be empty string)."""
        return self._route_params().get(key, "")

    async def param_files(self, name: Optional[str] = None) -> List[FilePart]:
        """
        Get the uploaded files from a multipart/form-data body.

        Parts without a filename (plain fields) are skipped. With
        ``name``, only parts of that form field are returned. Consumes
        the body stream; a second call raises.

        Raises:
            MultipartReadError: If the request is not multipart or the
                stream cannot be read.
        """
        parts: List[FilePart] = []

        async for part in self.request.multipart_reader():
            if not part.filename:
                continue
            if name is not None and part.name != name:
                continue
            parts.append(part)

        return parts

    async def _parse_body(self) -> None:
        """Parse the request form body and query once, remembering failure."""
        if self._body_error is not None:
            raise self._body_error
        if self._body_parsed:
            return

        async with self._body_lock:
            if self._body_error is not None:
                raise self._body_error
            if self._body_parsed:
                return
            try:
                await self.request.parse_form()
            except BodyParseError as e:
                self._body_error = e
                raise
            self._body_parsed = True

    def _route_params(self) -> Dict[str, str]:
        if self.route is None:
            return {}
        if self.route.params is None:
            self.route.parse(self.path)
        return self.route.params

    # ========================================================================
    # Request & config accessors
    # ========================================================================

    def current_path(self) -> str:
        """Return the cleaned path for the request."""
        return self.path

    def config_value(self, key: str) -> str:
        """Return a key from the context config."""
        return self.config.config(key)

    def production(self) -> bool:
        """Whether this context is running in production."""
        return self.config.production()

    # ========================================================================
    # Redirects
    # ========================================================================

    async def redirect(self, path: str, **kwargs: Any) -> bool:
        """Checked redirect with the default status (see ``strix.redirects``)."""
        return await redirect(self, path, **kwargs)

    async def redirect_status(self, path: str, status: int, **kwargs: Any) -> bool:
        return await redirect_status(self, path, status, **kwargs)

    def redirect_external(self, url: str) -> None:
        """Unchecked redirect; only for trusted, deliberate cross-origin targets."""
        redirect_external(self, url)
