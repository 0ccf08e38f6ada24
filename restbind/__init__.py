"""
Typed request binding for HTTP handlers.

Handlers are declared as request-object types (pydantic models or dataclasses)
whose ``Path`` and ``Query`` sub-structures are filled from the URL, whose
``Body`` is decoded from the payload and whose ``Response`` is encoded once the
handler succeeded. The same declarations drive OpenAPI parameter documentation.
"""

from http import HTTPStatus

from .application import RestApplication
from .binder import BoundRequest, RequestBinder, RequestWrapper, title_case, wrap_request
from .capabilities import (
    BodyDecoder,
    Handler,
    JSONBodyDecoder,
    JSONResponseEncoder,
    ResponseEncoder,
)
from .config import BinderConfig
from .convert import compile_shape, convert_value
from .exceptions import (
    AggregateBindingError,
    ConversionError,
    InvalidHandlerTypeError,
    MissingFieldError,
    RestBindError,
    UnsupportedTypeError,
)
from .models import HTTPMethod, Request, RequestContext, Response, ResponseWriter
from .openapi import Operation, generate_params
from .router import Router
from .server import ASGIAdapter, create_asgi_app
from .types import (
    Float32,
    Float64,
    Int8,
    Int16,
    Int32,
    Int64,
    Uint8,
    Uint16,
    Uint32,
    Uint64,
)

__version__ = "0.1.0"
__author__ = "restbind Contributors"
__license__ = "MIT"

__all__ = [
    "RestApplication",
    "Router",
    "Request",
    "Response",
    "ResponseWriter",
    "RequestContext",
    "HTTPMethod",
    "HTTPStatus",
    "BinderConfig",
    "RequestBinder",
    "RequestWrapper",
    "BoundRequest",
    "wrap_request",
    "title_case",
    "Handler",
    "BodyDecoder",
    "ResponseEncoder",
    "JSONBodyDecoder",
    "JSONResponseEncoder",
    "compile_shape",
    "convert_value",
    "Operation",
    "generate_params",
    "ASGIAdapter",
    "create_asgi_app",
    "RestBindError",
    "ConversionError",
    "UnsupportedTypeError",
    "MissingFieldError",
    "AggregateBindingError",
    "InvalidHandlerTypeError",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "Uint8",
    "Uint16",
    "Uint32",
    "Uint64",
    "Float32",
    "Float64",
]
