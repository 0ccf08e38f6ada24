"""
Binder configuration.

Values resolve in the order: explicit argument, ``RESTBIND_*`` environment
variable, built-in default.
"""

import logging
import os
from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional

# Set up logger for this module
logger = logging.getLogger(__name__)

DEFAULT_TRACER_NAME = "restbind"
DEFAULT_SPAN_NAME = "wrap_request"
DEFAULT_ERROR_STATUS = HTTPStatus.BAD_REQUEST


@dataclass(frozen=True)
class BinderConfig:
    """Settings for :class:`~restbind.binder.RequestBinder`.

    Attributes:
        tracer_name: Instrumentation name passed to the tracer provider
        span_name: Name of the span opened for every dispatched request
        error_status: Status written when path or query binding fails
    """

    tracer_name: str = DEFAULT_TRACER_NAME
    span_name: str = DEFAULT_SPAN_NAME
    error_status: int = DEFAULT_ERROR_STATUS

    @classmethod
    def from_env(
        cls,
        tracer_name: Optional[str] = None,
        span_name: Optional[str] = None,
        error_status: Optional[int] = None,
    ) -> "BinderConfig":
        """Build a config from arguments, falling back to the environment."""
        # Tracer name: arg > env > default
        final_tracer = tracer_name or os.environ.get("RESTBIND_TRACER_NAME", DEFAULT_TRACER_NAME)

        # Span name: arg > env > default
        final_span = span_name or os.environ.get("RESTBIND_SPAN_NAME", DEFAULT_SPAN_NAME)

        # Error status: arg > env > default
        if error_status is None:
            status_str = os.environ.get("RESTBIND_ERROR_STATUS", str(int(DEFAULT_ERROR_STATUS)))
            try:
                error_status = int(status_str)
            except ValueError:
                logger.warning(f"Invalid RESTBIND_ERROR_STATUS {status_str!r}, using 400")
                error_status = DEFAULT_ERROR_STATUS
        if not 400 <= int(error_status) < 500:
            logger.warning(f"Binding error status {error_status} is not a client error, using 400")
            error_status = DEFAULT_ERROR_STATUS

        return cls(tracer_name=final_tracer, span_name=final_span, error_status=int(error_status))
