"""
Main application class: routing, dispatch and OpenAPI generation.
"""

import inspect
import json
import logging
from http import HTTPStatus
from typing import Any, Dict, Optional

from opentelemetry.trace import TracerProvider

from .binder import RequestBinder, title_case
from .config import BinderConfig
from .convert import is_struct_type, unwrap_optional
from .models import HTTPMethod, Request, Response, ResponseWriter
from .openapi import REF_TEMPLATE, Operation, generate_params, schema_for
from .router import Route, Router

# Set up logger for this module
logger = logging.getLogger(__name__)

BINDING_ERROR_SCHEMA = {
    "type": "object",
    "description": "Map of dotted field paths (request.path.<key>, request.query.<Key>) to parse errors",
    "additionalProperties": {"type": "string"},
}


def _json_error(status: HTTPStatus, message: str, headers: Optional[Dict[str, str]] = None) -> Response:
    return Response(
        int(status),
        json.dumps({"error": message}),
        headers=headers,
        content_type="application/json",
    )


class RestApplication:
    """Application holding the routes of bindable request-object types.

    Example::

        app = RestApplication()

        @app.get("/items/{ID}")
        class GetItem(JSONResponseEncoder, BaseModel):
            Path: ItemPath = Field(default_factory=ItemPath, examples=["/items/5"])
            Response: Optional[Item] = None

            def handle(self, ctx, writer):
                self.Response = Item(id=self.Path.ID)

            def handle_error(self, ctx, writer, error):
                writer.write_json({"error": str(error)}, 500)

        response = app.execute(Request(HTTPMethod.GET, "/items/42"))
    """

    def __init__(
        self,
        tracer_provider: Optional[TracerProvider] = None,
        config: Optional[BinderConfig] = None,
    ):
        self.binder = RequestBinder(tracer_provider=tracer_provider, config=config)
        self._router = Router(app=self)

    @property
    def router(self) -> Router:
        return self._router

    def mount(self, prefix: str, router: Router):
        """Mount a router with a given prefix."""
        self._router.mount(prefix, router)

    def route(self, method: HTTPMethod, path: str, template: Any) -> Route:
        """Register a request-object type (class or template instance)."""
        return self._router.add_route(method, path, template)

    def get(self, path: str):
        return self._router.get(path)

    def post(self, path: str):
        return self._router.post(path)

    def put(self, path: str):
        return self._router.put(path)

    def delete(self, path: str):
        return self._router.delete(path)

    def patch(self, path: str):
        return self._router.patch(path)

    def execute(self, request: Request) -> Response:
        """Route and dispatch a request, returning the written response."""
        try:
            match = self._router.match_route(request.path, request.method)
            if match is None:
                if self._router.has_path(request.path):
                    allowed = ", ".join(m.value for m in self._router.get_methods_for_path(request.path))
                    return _json_error(HTTPStatus.METHOD_NOT_ALLOWED, "Method not allowed", {"Allow": allowed})
                return _json_error(HTTPStatus.NOT_FOUND, "Not found")

            route, path_params = match
            request.path_params = path_params
            wrapper = route.wrapper or route.bind(self.binder)

            writer = ResponseWriter()
            wrapper(request, writer)
            return writer.to_response()
        except Exception as e:
            logger.error(f"Unhandled exception processing {request.method.value} {request.path}: {e}", exc_info=True)
            return _json_error(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error")

    def _build_operation(self, route: Route, schemas: Dict[str, Any]) -> Operation:
        spec = route.spec
        request_type = spec.request_type
        doc = inspect.cleandoc(request_type.__doc__) if request_type.__doc__ else None
        operation = Operation(
            operation_id=request_type.__name__,
            summary=doc.splitlines()[0] if doc else None,
        )

        if spec.path is not None:
            generate_params(self._router, operation, request_type, route.method, schemas)

        if spec.query is not None:
            for field in spec.query.spec.fields.values():
                param: Dict[str, Any] = {
                    "name": title_case(field.name),
                    "in": "query",
                    "required": False,
                    "schema": schema_for(field.annotation, schemas),
                }
                if field.example is not None:
                    param["example"] = field.example
                operation.add_parameter(param)

        if spec.body is not None:
            operation.request_body = {
                "required": not unwrap_optional(spec.body.annotation)[0],
                "content": {"application/json": {"schema": self._schema_ref(spec.body.annotation, schemas)}},
            }

        ok: Dict[str, Any] = {"description": "Successful response"}
        if spec.response is not None:
            ok["content"] = {"application/json": {"schema": self._schema_ref(spec.response.annotation, schemas)}}
        operation.responses["200"] = ok
        operation.responses[str(int(self.binder.config.error_status))] = {
            "description": "Invalid path or query parameters",
            "content": {"application/json": {"schema": {"$ref": REF_TEMPLATE.format(model="BindingErrors")}}},
        }
        return operation

    @staticmethod
    def _schema_ref(annotation: Any, schemas: Dict[str, Any]) -> Dict[str, Any]:
        """Schema for a body or response annotation, with models collected as refs."""
        is_optional, inner = unwrap_optional(annotation)
        if is_struct_type(inner):
            name = inner.__name__
            if name not in schemas:
                schemas[name] = schema_for(inner, schemas)
            return {"$ref": REF_TEMPLATE.format(model=name)}
        return schema_for(annotation, schemas)

    def generate_openapi(
        self,
        title: str = "REST API",
        version: str = "1.0.0",
        description: str = "API generated by restbind",
    ) -> Dict[str, Any]:
        """Generate an OpenAPI 3.0 document from the registered routes.

        Raises:
            MissingFieldError: If a route's ``Path`` declaration does not cover
                the parameters its example matches
        """
        schemas: Dict[str, Any] = {"BindingErrors": BINDING_ERROR_SCHEMA}
        paths: Dict[str, Dict[str, Any]] = {}

        for path, route in self._router.get_all_routes():
            operation = self._build_operation(route, schemas)
            paths.setdefault(path, {})[route.method.value.lower()] = operation.to_dict()

        return {
            "openapi": "3.0.3",
            "info": {"title": title, "version": version, "description": description},
            "paths": paths,
            "components": {"schemas": schemas},
        }

    def generate_openapi_json(self, **kwargs) -> str:
        """Generate the OpenAPI document as a JSON string."""
        return json.dumps(self.generate_openapi(**kwargs), indent=2)

    def save_openapi_json(self, filename: str, **kwargs) -> str:
        """Write the OpenAPI document to ``filename`` and return the path."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.generate_openapi_json(**kwargs))
        logger.info(f"OpenAPI specification written to {filename}")
        return filename
