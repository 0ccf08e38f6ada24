"""
Field metadata registry for request-object types.

Request types are introspected once, when they are registered, into
:class:`StructSpec` and :class:`RequestSpec` records. Binding then looks fields
up by name in plain dictionaries instead of reflecting over the type on every
request.
"""

import copy
import dataclasses
import logging
from functools import cached_property
from typing import Annotated, Any, Dict, Optional, Type, get_type_hints

from pydantic import BaseModel, TypeAdapter

from .convert import Shape, compile_shape, is_struct_type, unwrap_optional
from .exceptions import InvalidHandlerTypeError

# Set up logger for this module
logger = logging.getLogger(__name__)

PATH = "Path"
QUERY = "Query"
BODY = "Body"
RESPONSE = "Response"


class FieldSpec:
    """A single field: its name, declared annotation and optional example."""

    def __init__(self, name: str, annotation: Any, example: Optional[Any] = None):
        self.name = name
        self.annotation = annotation
        self.example = example

    @cached_property
    def shape(self) -> Shape:
        return compile_shape(self.annotation)

    @cached_property
    def adapter(self) -> TypeAdapter:
        return TypeAdapter(self.annotation)

    def __repr__(self):
        return f"FieldSpec({self.name!r}, {self.annotation!r}, example={self.example!r})"


def _pydantic_example(info) -> Optional[Any]:
    if info.examples:
        return info.examples[0]
    extra = info.json_schema_extra
    if isinstance(extra, dict):
        return extra.get("example")
    return None


def _collect_fields(struct_type: Type[Any]) -> Dict[str, FieldSpec]:
    fields: Dict[str, FieldSpec] = {}

    if issubclass(struct_type, BaseModel):
        for name, info in struct_type.model_fields.items():
            # pydantic moves top-level Annotated metadata onto the FieldInfo
            annotation = info.annotation
            if info.metadata:
                annotation = Annotated[(annotation, *info.metadata)]
            fields[name] = FieldSpec(name, annotation, _pydantic_example(info))
    else:
        try:
            hints = get_type_hints(struct_type, include_extras=True)
        except (NameError, TypeError):
            hints = {}
        for f in dataclasses.fields(struct_type):
            annotation = hints.get(f.name, f.type)
            fields[f.name] = FieldSpec(f.name, annotation, f.metadata.get("example"))

    return fields


class StructSpec:
    """Name-indexed fields of a pydantic model or dataclass."""

    _cache: Dict[Type[Any], "StructSpec"] = {}

    def __init__(self, struct_type: Type[Any], fields: Dict[str, FieldSpec]):
        self.struct_type = struct_type
        self.fields = fields

    @classmethod
    def for_type(cls, struct_type: Type[Any]) -> "StructSpec":
        """Return the cached spec for ``struct_type``, building it on first use."""
        spec = cls._cache.get(struct_type)
        if spec is None:
            if not is_struct_type(struct_type):
                raise InvalidHandlerTypeError(
                    f"{struct_type!r} must be a pydantic model or a dataclass"
                )
            spec = cls(struct_type, _collect_fields(struct_type))
            cls._cache[struct_type] = spec
        return spec

    def get(self, name: str) -> Optional[FieldSpec]:
        return self.fields.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.fields

    def new_instance(self) -> Any:
        """Allocate an instance with field defaults applied."""
        if issubclass(self.struct_type, BaseModel):
            return self.struct_type.model_construct()
        try:
            return self.struct_type()
        except TypeError as e:
            raise InvalidHandlerTypeError(
                f"cannot allocate {self.struct_type.__name__}: {e}"
            ) from e


class SubStructure:
    """A by-convention sub-structure (``Path`` or ``Query``) of a request type."""

    def __init__(self, field: FieldSpec, spec: StructSpec):
        self.field = field
        self.spec = spec

    @property
    def name(self) -> str:
        return self.field.name

    def resolve(self, obj: Any) -> Any:
        """Return the sub-structure instance on ``obj``, allocating it if unset."""
        instance = getattr(obj, self.field.name, None)
        if instance is None:
            instance = self.spec.new_instance()
            setattr(obj, self.field.name, instance)
        return instance


def implements(request_type: Type[Any], *methods: str) -> bool:
    """Check that ``request_type`` defines every named method."""
    return all(callable(getattr(request_type, m, None)) for m in methods)


def _is_frozen(struct_type: Type[Any]) -> bool:
    if isinstance(struct_type, type) and issubclass(struct_type, BaseModel):
        return bool(struct_type.model_config.get("frozen"))
    return dataclasses.is_dataclass(struct_type) and struct_type.__dataclass_params__.frozen


def fresh_instance(template: Any) -> Any:
    """Return a deep copy of ``template`` so per-request mutation never leaks back."""
    if isinstance(template, BaseModel):
        return template.model_copy(deep=True)
    return copy.deepcopy(template)


class RequestSpec:
    """Binding plan for a request-object type, resolved once at registration."""

    _cache: Dict[Type[Any], "RequestSpec"] = {}

    def __init__(self, request_type: Type[Any]):
        self.request_type = request_type
        self.struct = StructSpec.for_type(request_type)

        self.path = self._sub_structure(PATH)
        self.query = self._sub_structure(QUERY)
        self.body = self.struct.get(BODY)
        self.response = self.struct.get(RESPONSE)

        self.decodes_body = implements(request_type, "decode_body")
        self.encodes_response = implements(request_type, "encode_response")

    @classmethod
    def for_type(cls, request_type: Type[Any]) -> "RequestSpec":
        """Return the cached binding plan for ``request_type``.

        Raises:
            InvalidHandlerTypeError: If the type is not a pydantic model or dataclass,
                or does not implement ``handle`` and ``handle_error``
        """
        spec = cls._cache.get(request_type)
        if spec is not None:
            return spec

        if not implements(request_type, "handle", "handle_error"):
            raise InvalidHandlerTypeError(
                f"{getattr(request_type, '__name__', request_type)!r} must implement "
                "handle(ctx, writer) and handle_error(ctx, writer, error)"
            )

        spec = cls(request_type)
        if spec.body is not None and not spec.decodes_body:
            logger.warning(
                f"{request_type.__name__} declares Body but implements no decode_body; "
                "request bodies will not be decoded"
            )
        cls._cache[request_type] = spec
        return spec

    def _sub_structure(self, name: str) -> Optional[SubStructure]:
        field = self.struct.get(name)
        if field is None:
            return None
        _, struct_type = unwrap_optional(field.annotation)
        if not is_struct_type(struct_type):
            raise InvalidHandlerTypeError(
                f"{self.request_type.__name__}.{name} must be a pydantic model or a dataclass"
            )
        if _is_frozen(struct_type):
            raise InvalidHandlerTypeError(
                f"{self.request_type.__name__}.{name} must not be frozen"
            )
        sub = SubStructure(field, StructSpec.for_type(struct_type))
        # Compile field shapes now so a bad declaration fails at registration
        for f in sub.spec.fields.values():
            try:
                _ = f.shape
            except TypeError as e:
                raise InvalidHandlerTypeError(
                    f"{self.request_type.__name__}.{name}.{f.name}: {e}"
                ) from e
        return sub

    @property
    def body_struct_type(self) -> Optional[Type[Any]]:
        """The body's model type when it can be allocated before decoding."""
        if self.body is None:
            return None
        _, body_type = unwrap_optional(self.body.annotation)
        if isinstance(body_type, type) and issubclass(body_type, BaseModel):
            return body_type
        return None
