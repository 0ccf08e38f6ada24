"""
Test framework for request-binding tests using 4-layer architecture.
"""

from .dsl import RestApiDsl, HttpRequest, HttpResponse
from .drivers import RestBindDriver, AsgiDriver

__all__ = [
    'RestApiDsl',
    'HttpRequest',
    'HttpResponse',
    'RestBindDriver',
    'AsgiDriver',
]
