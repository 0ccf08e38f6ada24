"""
Custom exceptions for request binding and parameter documentation.
"""
from typing import Any, Dict


class RestBindError(Exception):
    """Base exception for restbind errors."""

    pass


class ConversionError(RestBindError):
    """Raised when a wire value cannot be coerced into a field shape."""

    def __init__(self, shape: str, value: str, reason: str):
        self.shape = shape
        self.value = value
        self.reason = reason
        super().__init__(f'parsing "{value}" as {shape}: {reason}')


class UnsupportedTypeError(ConversionError):
    """Raised when a field shape has no conversion rule."""

    def __init__(self, shape: str, value: str):
        super().__init__(shape, value, f"invalid type: {shape}")


class MissingFieldError(RestBindError):
    """Raised when a routed parameter has no matching field on the request type."""

    def __init__(self, message: str, field_name: str = ""):
        self.field_name = field_name
        super().__init__(message)


class AggregateBindingError(RestBindError):
    """Raised when one or more path or query fields failed to convert.

    Carries the full map of dotted field paths to error messages so every
    invalid field is reported in a single response.
    """

    def __init__(self, errors: Dict[str, str], message: str = "input parsing error"):
        self.errors = dict(errors)
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.errors)


class InvalidHandlerTypeError(RestBindError):
    """Raised at registration when a request type cannot be bound or dispatched."""

    pass
