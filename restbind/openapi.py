"""
OpenAPI parameter documentation derived from request-object types.

The parameters a route documents come from the same ``Path`` declaration the
binder fills, so documentation and binding cannot drift apart.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import TypeAdapter

from .convert import unwrap_optional
from .exceptions import MissingFieldError
from .fields import PATH, StructSpec
from .models import HTTPMethod

# Set up logger for this module
logger = logging.getLogger(__name__)

REF_TEMPLATE = "#/components/schemas/{model}"


class Operation:
    """A single OpenAPI operation under construction."""

    def __init__(self, operation_id: Optional[str] = None, summary: Optional[str] = None):
        self.operation_id = operation_id
        self.summary = summary
        self.parameters: List[Dict[str, Any]] = []
        self.request_body: Optional[Dict[str, Any]] = None
        self.responses: Dict[str, Dict[str, Any]] = {}

    def add_parameter(self, parameter: Dict[str, Any]) -> None:
        """Append a parameter, replacing any earlier one with the same name and location."""
        self.parameters = [
            p for p in self.parameters
            if (p["name"], p["in"]) != (parameter["name"], parameter["in"])
        ]
        self.parameters.append(parameter)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.operation_id:
            data["operationId"] = self.operation_id
        if self.summary:
            data["summary"] = self.summary
        if self.parameters:
            data["parameters"] = list(self.parameters)
        if self.request_body:
            data["requestBody"] = self.request_body
        data["responses"] = self.responses or {"200": {"description": "Successful response"}}
        return data


def convert_schema_to_openapi(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a pydantic JSON schema to an OpenAPI 3.0 compliant schema."""
    if not isinstance(schema, dict):
        return schema

    converted: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "anyOf" and isinstance(value, list):
            # Handle anyOf patterns for optional fields
            converted.update(_convert_anyof_to_nullable(value))
        elif key == "exclusiveMinimum" and isinstance(value, (int, float)):
            converted["minimum"] = value
            converted["exclusiveMinimum"] = True
        elif key == "exclusiveMaximum" and isinstance(value, (int, float)):
            converted["maximum"] = value
            converted["exclusiveMaximum"] = True
        elif key == "$defs":
            continue
        elif isinstance(value, dict):
            converted[key] = convert_schema_to_openapi(value)
        elif isinstance(value, list):
            converted[key] = [
                convert_schema_to_openapi(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            converted[key] = value
    return converted


def _convert_anyof_to_nullable(anyof_list: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Convert anyOf with null to a nullable field for OpenAPI 3.0."""
    if len(anyof_list) == 2:
        type_schema = None
        has_null = False

        for item in anyof_list:
            if isinstance(item, dict):
                if item.get("type") == "null":
                    has_null = True
                else:
                    type_schema = item

        if has_null and type_schema:
            result = convert_schema_to_openapi(type_schema)
            result["nullable"] = True
            return result

    return {"anyOf": [convert_schema_to_openapi(item) for item in anyof_list]}


def schema_for(annotation: Any, definitions: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Generate an OpenAPI schema fragment for a field annotation.

    Nested model definitions are moved into ``definitions`` (when given) and
    referenced as ``#/components/schemas/<Model>``.
    """
    schema = TypeAdapter(annotation).json_schema(ref_template=REF_TEMPLATE)
    defs = schema.get("$defs", {})
    if definitions is not None:
        for name, definition in defs.items():
            definitions.setdefault(name, convert_schema_to_openapi(definition))
    return convert_schema_to_openapi(schema)


def generate_params(
    router: Any,
    operation: Operation,
    request_type: Type[Any],
    method: HTTPMethod,
    definitions: Optional[Dict[str, Any]] = None,
) -> None:
    """Append the path parameters of ``request_type`` to ``operation``.

    The ``Path`` field's example (``/items/5``) is matched against the router
    and every captured key becomes a path parameter documented from the
    same-named ``Path`` field.

    Raises:
        MissingFieldError: If the type declares no ``Path`` field, or a routed
            key has no matching field on it
    """
    struct = StructSpec.for_type(request_type)
    path_field = struct.get(PATH)
    if path_field is None:
        raise MissingFieldError(
            f"{request_type.__name__}: wrong struct, {PATH} field expected", PATH
        )

    example = path_field.example
    match = router.match_route(str(example), method) if example else None
    if match is None:
        logger.warning(
            f"{request_type.__name__}: {PATH} example {example!r} matches no "
            f"{method.value} route, no path parameters documented"
        )
        return

    _, params = match
    logger.debug(f"{request_type.__name__}: {PATH} example {example!r} matched {params}")

    _, path_type = unwrap_optional(path_field.annotation)
    path_struct = StructSpec.for_type(path_type)
    for key in params:
        field = path_struct.get(key)
        if field is None:
            raise MissingFieldError(
                f"{request_type.__name__}: wrong path struct, field {key} expected", key
            )

        param: Dict[str, Any] = {
            "name": key,
            "in": "path",
            "required": True,
            "schema": schema_for(field.annotation, definitions),
        }
        if field.example is not None:
            param["example"] = field.example

        operation.add_parameter(param)
