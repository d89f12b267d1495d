"""
Strix - Request context and parameter resolution for ASGI routing

Brings together:
- RequestContext: one facade per request over request, response,
  matched route, config and logger
- ParameterSpace: ordered multi-value view of form, query and path params
- Route / RouteBinding: shared route templates, per-request bindings
- Checked redirects that refuse external targets
- Faults: structured error types
"""

__version__ = "0.1.0"

from ._datastructures import (
    ParameterSpace,
    Headers,
    ParsedContentType,
)
from ._uploads import FilePart
from .config import Config, ConfigLoader, ConfigError
from .context import RequestContext
from .faults import Fault, FaultDomain, Severity
from .redirects import (
    redirect,
    redirect_status,
    redirect_external,
    is_internal_path,
)
from .request import (
    Request,
    MultipartReader,
    RequestFault,
    BodyParseError,
    MultipartReadError,
    PayloadTooLarge,
    ClientDisconnect,
)
from .response import ResponseWriter, InvalidHeaderError
from .routing import Route, RouteBinding, PatternError, clean_path


__all__ = [
    "__version__",
    # Data structures
    "ParameterSpace",
    "Headers",
    "ParsedContentType",
    "FilePart",
    # Config
    "Config",
    "ConfigLoader",
    "ConfigError",
    # Context
    "RequestContext",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    # Redirects
    "redirect",
    "redirect_status",
    "redirect_external",
    "is_internal_path",
    # Request
    "Request",
    "MultipartReader",
    "RequestFault",
    "BodyParseError",
    "MultipartReadError",
    "PayloadTooLarge",
    "ClientDisconnect",
    # Response
    "ResponseWriter",
    "InvalidHeaderError",
    # Routing
    "Route",
    "RouteBinding",
    "PatternError",
    "clean_path",
]
