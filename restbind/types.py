"""
Fixed-width numeric annotations for request fields.

Python integers are unbounded, so request types declare a wire width with
``Annotated`` metadata. The converter range-checks against it and the
OpenAPI schema picks up ``format``/``minimum``/``maximum`` from it::

    class ItemQuery(BaseModel):
        Limit: Uint16 = 20
        Ratio: Float32 = 1.0

Plain ``int`` is treated as ``Int64`` and plain ``float`` as ``Float64``.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Dict


@dataclass(frozen=True)
class IntegerWidth:
    """Bit width and signedness of an integer field."""

    bits: int = 64
    signed: bool = True

    @property
    def name(self) -> str:
        return f"{'int' if self.signed else 'uint'}{self.bits}"

    @property
    def minimum(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def maximum(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1

    def __get_pydantic_json_schema__(self, core_schema, handler) -> Dict[str, Any]:
        json_schema = handler(core_schema)
        json_schema = handler.resolve_ref_schema(json_schema)
        if self.bits in (32, 64):
            json_schema["format"] = f"int{self.bits}"
        json_schema.setdefault("minimum", self.minimum)
        json_schema.setdefault("maximum", self.maximum)
        return json_schema


@dataclass(frozen=True)
class FloatWidth:
    """Precision of a floating-point field (32 or 64 bits)."""

    bits: int = 64

    @property
    def name(self) -> str:
        return f"float{self.bits}"

    def __get_pydantic_json_schema__(self, core_schema, handler) -> Dict[str, Any]:
        json_schema = handler(core_schema)
        json_schema = handler.resolve_ref_schema(json_schema)
        json_schema["format"] = "float" if self.bits == 32 else "double"
        return json_schema


INT64 = IntegerWidth(64, signed=True)
UINT64 = IntegerWidth(64, signed=False)
FLOAT64 = FloatWidth(64)

Int8 = Annotated[int, IntegerWidth(8, signed=True)]
Int16 = Annotated[int, IntegerWidth(16, signed=True)]
Int32 = Annotated[int, IntegerWidth(32, signed=True)]
Int64 = Annotated[int, INT64]
Uint8 = Annotated[int, IntegerWidth(8, signed=False)]
Uint16 = Annotated[int, IntegerWidth(16, signed=False)]
Uint32 = Annotated[int, IntegerWidth(32, signed=False)]
Uint64 = Annotated[int, UINT64]
Float32 = Annotated[float, FloatWidth(32)]
Float64 = Annotated[float, FLOAT64]

__all__ = [
    "IntegerWidth",
    "FloatWidth",
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
