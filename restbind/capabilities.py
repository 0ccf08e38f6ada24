"""
Capabilities a request-object type can implement.

Every bindable type implements :class:`Handler`. :class:`BodyDecoder` and
:class:`ResponseEncoder` are optional; the JSON mixins below cover the common
case of JSON request and response payloads.
"""

from typing import Any, BinaryIO, Protocol, runtime_checkable

from pydantic_core import to_json

from .fields import RequestSpec
from .models import RequestContext, ResponseWriter


@runtime_checkable
class Handler(Protocol):
    """Executes a bound request and translates its own failures into a response."""

    def handle(self, ctx: RequestContext, writer: ResponseWriter) -> None:
        ...

    def handle_error(self, ctx: RequestContext, writer: ResponseWriter, error: Exception) -> None:
        ...


@runtime_checkable
class BodyDecoder(Protocol):
    """Decodes the raw request payload into the ``Body`` field."""

    def decode_body(self, body: BinaryIO, target: Any) -> Any:
        ...


@runtime_checkable
class ResponseEncoder(Protocol):
    """Writes the ``Response`` field once the handler succeeded."""

    def encode_response(self, writer: ResponseWriter, response: Any) -> None:
        ...


class JSONBodyDecoder:
    """Mixin decoding a JSON payload into the declared ``Body`` annotation.

    An empty payload leaves the body at its current value. Invalid JSON or
    content that does not match the annotation raises pydantic's
    ``ValidationError``.
    """

    def decode_body(self, body: BinaryIO, target: Any) -> Any:
        raw = body.read()
        if not raw:
            return target
        return RequestSpec.for_type(type(self)).body.adapter.validate_json(raw)


class JSONResponseEncoder:
    """Mixin writing the ``Response`` field as ``application/json``."""

    def encode_response(self, writer: ResponseWriter, response: Any) -> None:
        if "Content-Type" not in writer.headers:
            writer.headers["Content-Type"] = "application/json"
        writer.write(to_json(response))
