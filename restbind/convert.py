"""
Conversion of wire strings into typed field values.

A field annotation is compiled once into a :class:`Shape` tree, then every
request reuses the compiled shape. Conversion is pure: it knows nothing about
HTTP and works for path segments, query values or any other string source.
"""

import dataclasses
import math
import re
import struct
import types
from collections import abc
from functools import lru_cache
from typing import (
    Annotated,
    Any,
    List,
    Sequence,
    Union,
    get_args,
    get_origin,
)

from pydantic import BaseModel, TypeAdapter, ValidationError

from .exceptions import ConversionError, UnsupportedTypeError
from .types import FLOAT64, INT64, FloatWidth, IntegerWidth

_SIGNED_RE = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_RE = re.compile(r"[0-9]+")

# X | None (PEP 604) has its own origin on 3.10+
_UNION_ORIGINS = tuple(o for o in (Union, getattr(types, "UnionType", None)) if o is not None)

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class Shape:
    """Compiled structural kind of a field."""

    name = "unknown"

    def convert(self, value: str) -> Any:
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


class PointerShape(Shape):
    """``Optional[X]``: converts to X and never yields ``None`` on success."""

    def __init__(self, inner: Shape):
        self.inner = inner
        self.name = f"*{inner.name}"

    def convert(self, value: str) -> Any:
        return self.inner.convert(value)


class SequenceShape(Shape):
    """``List[X]``: a bracketed, comma separated list of X."""

    def __init__(self, item: Shape):
        self.item = item
        self.name = f"[]{item.name}"

    def convert(self, value: str) -> List[Any]:
        if value.startswith("["):
            value = value[1:]
        if value.endswith("]"):
            value = value[:-1]
        # "[]" splits into a single empty element; callers rely on that.
        return [self.item.convert(part) for part in value.split(",")]


class StructShape(Shape):
    """Pydantic model or dataclass decoded from a JSON object."""

    def __init__(self, annotation: Any):
        self.annotation = annotation
        self.name = getattr(annotation, "__name__", repr(annotation))
        self._adapter = TypeAdapter(annotation)

    def convert(self, value: str) -> Any:
        try:
            return self._adapter.validate_json(value)
        except ValidationError as e:
            reason = "; ".join(err["msg"] for err in e.errors(include_url=False))
            raise ConversionError(self.name, value, reason) from e


class StringShape(Shape):
    name = "string"

    def __init__(self, annotation: Any = str):
        self.annotation = annotation
        if annotation is not str:
            self.name = annotation.__name__

    def convert(self, value: str) -> str:
        if value.startswith('"'):
            value = value[1:]
        if value.endswith('"'):
            value = value[:-1]
        if self.annotation is str:
            return value
        try:
            return self.annotation(value)
        except (ValueError, TypeError) as e:
            raise ConversionError(self.name, value, str(e)) from e


class BoolShape(Shape):
    name = "bool"

    def convert(self, value: str) -> bool:
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        raise ConversionError(self.name, value, "invalid syntax")


class IntegerShape(Shape):
    """Base-10 integer, parsed at 64 bits then narrowed to the declared width."""

    def __init__(self, width: IntegerWidth = INT64):
        self.width = width
        self.name = width.name

    def convert(self, value: str) -> int:
        pattern = _SIGNED_RE if self.width.signed else _UNSIGNED_RE
        if not pattern.fullmatch(value):
            raise ConversionError(self.name, value, "invalid syntax")
        n = int(value, 10)
        if not self.width.minimum <= n <= self.width.maximum:
            raise ConversionError(self.name, value, "value out of range")
        return n


class FloatShape(Shape):
    """Decimal float, parsed at 64 bits then narrowed to the declared precision."""

    def __init__(self, width: FloatWidth = FLOAT64):
        self.width = width
        self.name = width.name

    def convert(self, value: str) -> float:
        if not value or not value.isascii() or value != value.strip() or "_" in value:
            raise ConversionError(self.name, value, "invalid syntax")
        try:
            x = float(value)
        except ValueError:
            raise ConversionError(self.name, value, "invalid syntax") from None
        if math.isinf(x) and "inf" not in value.lower():
            raise ConversionError(self.name, value, "value out of range")
        if self.width.bits == 32:
            try:
                x = struct.unpack("<f", struct.pack("<f", x))[0]
            except OverflowError:
                raise ConversionError(self.name, value, "value out of range") from None
        return x


class UnsupportedShape(Shape):
    """Shape without a conversion rule; every conversion fails."""

    def __init__(self, annotation: Any):
        self.annotation = annotation
        self.name = getattr(annotation, "__name__", None) or repr(annotation)

    def convert(self, value: str) -> Any:
        raise UnsupportedTypeError(self.name, value)


def is_struct_type(annotation: Any) -> bool:
    """Return True for pydantic models and dataclasses."""
    if not isinstance(annotation, type):
        return False
    return issubclass(annotation, BaseModel) or dataclasses.is_dataclass(annotation)


def unwrap_optional(annotation: Any):
    """Return ``(True, X)`` for ``Optional[X]``, ``(False, annotation)`` otherwise."""
    if get_origin(annotation) in _UNION_ORIGINS:
        args = get_args(annotation)
        if len(args) == 2 and type(None) in args:
            inner = args[0] if args[1] is type(None) else args[1]
            return True, inner
    return False, annotation


def compile_shape(annotation: Any) -> Shape:
    """Compile a type annotation into a reusable :class:`Shape`.

    Hashable annotations are compiled once and cached.
    """
    try:
        hash(annotation)
    except TypeError:
        return _compile_shape(annotation)
    return _cached_shape(annotation)


@lru_cache(maxsize=None)
def _cached_shape(annotation: Any) -> Shape:
    return _compile_shape(annotation)


def _compile_shape(annotation: Any) -> Shape:
    metadata: Sequence[Any] = ()
    if get_origin(annotation) is Annotated:
        annotation, *metadata = get_args(annotation)

    is_optional, inner = unwrap_optional(annotation)
    if is_optional:
        if metadata:
            inner = Annotated[(inner, *metadata)]
        return PointerShape(compile_shape(inner))

    if get_origin(annotation) in (list, abc.Sequence):
        args = get_args(annotation)
        if len(args) != 1:
            return UnsupportedShape(annotation)
        return SequenceShape(compile_shape(args[0]))

    if is_struct_type(annotation):
        return StructShape(annotation)

    if isinstance(annotation, type):
        # bool before int: bool is an int subclass
        if annotation is bool:
            return BoolShape()
        if annotation is int:
            width = next((m for m in metadata if isinstance(m, IntegerWidth)), INT64)
            return IntegerShape(width)
        if annotation is float:
            width = next((m for m in metadata if isinstance(m, FloatWidth)), FLOAT64)
            return FloatShape(width)
        if issubclass(annotation, str):
            return StringShape(annotation)

    return UnsupportedShape(annotation)


def convert_value(target: Any, value: str) -> Any:
    """Convert ``value`` into the type described by ``target``.

    Args:
        target: A type annotation or an already compiled :class:`Shape`
        value: The raw wire string

    Returns:
        The typed value

    Raises:
        ConversionError: If the value does not fit the shape
        UnsupportedTypeError: If the shape has no conversion rule
    """
    shape = target if isinstance(target, Shape) else compile_shape(target)
    return shape.convert(value)
