"""
Binding of HTTP request data onto request objects, and dispatch to their handlers.

A request object declares what it reads through by-convention attributes:
``Path`` and ``Query`` hold typed parameter fields, ``Body`` the decoded
payload and ``Response`` the value handed to the response encoder::

    class ItemPath(BaseModel):
        ID: int = Field(0, examples=["5"])

    class GetItem(JSONResponseEncoder, BaseModel):
        Path: ItemPath = Field(default_factory=ItemPath, examples=["/items/5"])
        Response: Optional[Item] = None

        def handle(self, ctx, writer):
            self.Response = load_item(self.Path.ID)

        def handle_error(self, ctx, writer, error):
            writer.write_json({"error": str(error)}, 500)
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode, TracerProvider
from pydantic import ValidationError

from .config import BinderConfig
from .exceptions import AggregateBindingError, ConversionError
from .fields import BODY, RESPONSE, FieldSpec, RequestSpec, fresh_instance
from .models import Request, RequestContext, ResponseWriter

# Set up logger for this module
logger = logging.getLogger(__name__)

_WORD_START = re.compile(r"(?<!\w)(\w)")


def title_case(key: str) -> str:
    """Upper-case the first letter of every word and leave the rest untouched.

    ``name`` becomes ``Name``, ``page-size`` becomes ``Page-Size`` and
    ``first_name`` becomes ``First_name`` (underscores do not start a word).
    """
    return _WORD_START.sub(lambda m: m.group(1).upper(), key)


class BoundRequest:
    """A request object filled from one HTTP request."""

    def __init__(self, obj: Any, spec: RequestSpec):
        self.obj = obj
        self.spec = spec

    @property
    def has_response(self) -> bool:
        return self.spec.response is not None

    @property
    def response(self) -> Any:
        """Current value of the ``Response`` field, read after the handler ran."""
        if not self.has_response:
            return None
        return getattr(self.obj, RESPONSE, None)


class RequestBinder:
    """Fills request objects from HTTP requests.

    Args:
        tracer_provider: OpenTelemetry provider for dispatch spans; the global
            provider is used when omitted
        config: Binder settings; read from the environment when omitted
    """

    def __init__(
        self,
        tracer_provider: Optional[TracerProvider] = None,
        config: Optional[BinderConfig] = None,
    ):
        self.config = config or BinderConfig.from_env()
        self.tracer = trace.get_tracer(self.config.tracer_name, tracer_provider=tracer_provider)

    def prepare(self, template: Any) -> Tuple[Any, RequestSpec]:
        """Resolve a template (class or instance) into an instance and its binding plan.

        Raises:
            InvalidHandlerTypeError: If the type cannot be bound or dispatched
        """
        if isinstance(template, type):
            spec = RequestSpec.for_type(template)
            return spec.struct.new_instance(), spec
        return template, RequestSpec.for_type(type(template))

    def bind(self, request: Request, template: Any) -> BoundRequest:
        """Fill a fresh request object from ``request``.

        Path and query fields are converted first and every failure is
        collected. The body is only decoded once they all succeeded.

        Raises:
            AggregateBindingError: If any path or query field failed to convert
        """
        bound = self.bind_params(request, template)
        self.decode_body(request, bound)
        return bound

    def bind_params(self, request: Request, template: Any) -> BoundRequest:
        """Fill path and query fields, raising every failure at once."""
        template, spec = self.prepare(template)
        obj = fresh_instance(template)
        errors: Dict[str, str] = {}
        span = trace.get_current_span()

        if spec.path is not None:
            target = spec.path.resolve(obj)
            for key, value in (request.path_params or {}).items():
                field = spec.path.spec.get(key)
                if field is not None:
                    self._set_field(span, errors, f"request.path.{key}", target, field, value)

        if spec.query is not None:
            target = spec.query.resolve(obj)
            for key, value in request.first_query_values():
                name = title_case(key)
                field = spec.query.spec.get(name)
                if field is not None:
                    self._set_field(span, errors, f"request.query.{name}", target, field, value)

        if errors:
            logger.debug(f"Binding {spec.request_type.__name__} failed: {errors}")
            raise AggregateBindingError(errors)

        return BoundRequest(obj, spec)

    def decode_body(self, request: Request, bound: BoundRequest) -> None:
        """Hand the payload to the request object's ``decode_body``, if it has one.

        Decoder exceptions propagate unchanged.
        """
        spec = bound.spec
        if spec.body is None or not spec.decodes_body:
            return

        obj = bound.obj
        target = getattr(obj, BODY, None)
        if target is None and spec.body_struct_type is not None:
            target = spec.body_struct_type.model_construct()
            setattr(obj, BODY, target)

        decoded = obj.decode_body(request.body_stream(), target)
        if decoded is not None:
            setattr(obj, BODY, decoded)

    @staticmethod
    def _set_field(
        span: Span,
        errors: Dict[str, str],
        path: str,
        target: Any,
        field: FieldSpec,
        value: str,
    ) -> None:
        try:
            converted = field.shape.convert(value)
        except ConversionError as e:
            errors[path] = str(e)
            return
        try:
            setattr(target, field.name, converted)
        except ValidationError as e:
            # Models with validate_assignment apply their own constraints here
            reason = "; ".join(err["msg"] for err in e.errors(include_url=False))
            errors[path] = f'parsing "{value}" as {field.shape.name}: {reason}'
            return
        span.set_attribute(path, value)

    def wrap(self, template: Any, route: Optional[str] = None) -> "RequestWrapper":
        """Build the dispatch callable for a request type.

        Capabilities are checked here, so a type without ``handle`` or
        ``handle_error`` fails at registration rather than per request.
        """
        instance, spec = self.prepare(template)
        return RequestWrapper(self, instance, spec, route)


class RequestWrapper:
    """Dispatches one request: bind, then handle, then encode.

    Called as ``wrapper(request, writer)``. Exactly one of the error path or
    the handler path runs for each request.
    """

    def __init__(self, binder: RequestBinder, template: Any, spec: RequestSpec, route: Optional[str] = None):
        self.binder = binder
        self.template = template
        self.spec = spec
        self.route = route

    @property
    def request_type(self):
        return self.spec.request_type

    def __call__(self, request: Request, writer: ResponseWriter) -> None:
        config = self.binder.config
        with self.binder.tracer.start_as_current_span(config.span_name) as span:
            try:
                bound = self.binder.bind_params(request, self.template)
            except AggregateBindingError as e:
                self._record_error(span, e)
                self._write_errors(writer, e.errors)
                return

            try:
                self.binder.decode_body(request, bound)
            except Exception as e:
                logger.debug(f"Decoding body for {self.request_type.__name__} failed: {e}")
                self._record_error(span, e)
                self._write_errors(writer, {"request.body": str(e)})
                return

            ctx = RequestContext(request=request, span=span, route=self.route)
            obj = bound.obj
            try:
                obj.handle(ctx, writer)
            except Exception as e:
                self._record_error(span, e)
                obj.handle_error(ctx, writer, e)
                return

            if bound.has_response and self.spec.encodes_response:
                obj.encode_response(writer, bound.response)

    def _write_errors(self, writer: ResponseWriter, errors: Dict[str, str]) -> None:
        try:
            data = json.dumps(errors)
        except (TypeError, ValueError):
            data = "{}"
        writer.headers["Content-Type"] = "application/json"
        writer.headers["X-Content-Type-Options"] = "nosniff"
        writer.write_header(self.binder.config.error_status)
        writer.write(data)

    @staticmethod
    def _record_error(span: Span, error: Exception) -> None:
        span.record_exception(error)
        span.set_status(Status(StatusCode.ERROR, str(error)))


def wrap_request(template: Any, tracer_provider: Optional[TracerProvider] = None) -> RequestWrapper:
    """Wrap a request type with a binder of its own."""
    return RequestBinder(tracer_provider=tracer_provider).wrap(template)
