"""
Core data models for request binding and dispatch.
"""

import io
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union

# Set up logger for this module
logger = logging.getLogger(__name__)


class MultiValueHeaders:
    """
    Multi-value, case-insensitive headers container.

    HTTP headers are case-insensitive per RFC 7230, and the same header can appear
    multiple times. Lookups ignore case; ``add`` keeps every value while
    ``set``/``__setitem__`` replace them.

    Example::

        headers = MultiValueHeaders()
        headers.add('Set-Cookie', 'session=abc')
        headers.add('Set-Cookie', 'user=123')
        headers.get('set-cookie')      # Returns 'session=abc' (first value)
        headers.get_all('set-cookie')  # Returns ['session=abc', 'user=123']
    """

    def __init__(self, data=None):
        # Internal storage: Dict[lowercase_name, List[Tuple[original_name, value]]]
        self._headers: Dict[str, List[Tuple[str, str]]] = {}

        if data is not None:
            if isinstance(data, MultiValueHeaders):
                self._headers = {k: list(v) for k, v in data._headers.items()}
            elif isinstance(data, dict):
                for key, value in data.items():
                    if isinstance(value, list):
                        for v in value:
                            self.add(key, v)
                    else:
                        self.add(key, value)
            elif isinstance(data, (list, tuple)):
                for key, value in data:
                    self.add(key, value)

    def add(self, name: str, value: str) -> None:
        """Add a header value, allowing multiple values for the same name."""
        self._headers.setdefault(name.lower(), []).append((name, value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get the first value for a header name."""
        if not isinstance(name, str):
            return default
        values = self._headers.get(name.lower())
        if values:
            return values[0][1]
        return default

    def get_all(self, name: str) -> List[str]:
        """Get all values for a header name."""
        return [value for _, value in self._headers.get(name.lower(), [])]

    def set(self, name: str, value: str) -> None:
        """Set a header to a single value, replacing any existing values."""
        self._headers[name.lower()] = [(name, value)]

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return name.lower() in self._headers

    def __delitem__(self, name: str) -> None:
        if not isinstance(name, str) or name.lower() not in self._headers:
            raise KeyError(name)
        del self._headers[name.lower()]

    def __iter__(self):
        """Iterate over header names (using original casing of first occurrence)."""
        for values in self._headers.values():
            if values:
                yield values[0][0]

    def __len__(self):
        return len(self._headers)

    def items(self):
        """Return (name, first_value) pairs."""
        return [(values[0][0], values[0][1]) for values in self._headers.values() if values]

    def items_all(self):
        """Return all (name, value) pairs including duplicates."""
        result = []
        for values in self._headers.values():
            result.extend(values)
        return result

    def to_dict(self) -> Dict[str, str]:
        return {values[0][0]: values[0][1] for values in self._headers.values() if values}

    def copy(self):
        return MultiValueHeaders(self)

    def __repr__(self):
        return f"MultiValueHeaders({self.items()!r})"


class HTTPMethod(Enum):
    """Enumeration of supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


QueryParams = Dict[str, Union[str, List[str]]]


@dataclass
class Request:
    """Represents an HTTP request.

    ``query_params`` values may be a single string or the list of every value
    sent for a repeated key, in request order. ``path_params`` is filled by the
    router once the request has been matched.
    """

    method: HTTPMethod
    path: str
    headers: Union[Dict[str, str], MultiValueHeaders] = field(default_factory=dict)
    body: Optional[Union[bytes, str, BinaryIO]] = None
    query_params: Optional[QueryParams] = None
    path_params: Optional[Dict[str, str]] = None

    def __post_init__(self):
        if not isinstance(self.headers, MultiValueHeaders):
            self.headers = MultiValueHeaders(self.headers)
        if isinstance(self.method, str):
            self.method = HTTPMethod(self.method.upper())

    def get_content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    def first_query_values(self) -> List[Tuple[str, str]]:
        """Return ``(key, first_value)`` for every query key, in request order."""
        pairs = []
        for key, value in (self.query_params or {}).items():
            if isinstance(value, (list, tuple)):
                if not value:
                    continue
                value = value[0]
            pairs.append((key, value))
        return pairs

    def body_stream(self) -> BinaryIO:
        """Return the payload as a readable binary stream."""
        if self.body is None:
            return io.BytesIO(b"")
        if isinstance(self.body, str):
            return io.BytesIO(self.body.encode("utf-8"))
        if isinstance(self.body, (bytes, bytearray)):
            return io.BytesIO(bytes(self.body))
        return self.body


@dataclass
class Response:
    """Represents an HTTP response produced by a :class:`ResponseWriter`."""

    status_code: int
    body: Optional[Union[str, bytes]] = None
    headers: Optional[Union[Dict[str, str], MultiValueHeaders]] = None
    content_type: Optional[str] = None

    def __post_init__(self):
        if self.headers is None:
            self.headers = MultiValueHeaders()
        elif not isinstance(self.headers, MultiValueHeaders):
            self.headers = MultiValueHeaders(self.headers)

        if self.content_type:
            self.headers["Content-Type"] = self.content_type
        else:
            self.content_type = self.headers.get("Content-Type")

        if self.status_code != HTTPStatus.NO_CONTENT:
            self.headers["Content-Length"] = str(len(self.body_bytes()))

    def body_bytes(self) -> bytes:
        if self.body is None:
            return b""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    def json(self) -> Any:
        return json.loads(self.body_bytes())


class ResponseWriter:
    """Collects what a handler writes: status, headers and body chunks.

    The status defaults to 200 on the first ``write`` and can only be set once,
    mirroring a streaming HTTP response.
    """

    def __init__(self):
        self.headers = MultiValueHeaders()
        self.status_code: Optional[int] = None
        self._chunks: List[bytes] = []

    @property
    def wrote_header(self) -> bool:
        return self.status_code is not None

    def write_header(self, status_code: int) -> None:
        if self.status_code is not None:
            logger.warning(
                f"Ignoring status {status_code}: status {self.status_code} already written"
            )
            return
        self.status_code = int(status_code)

    def write(self, data: Union[str, bytes]) -> int:
        if self.status_code is None:
            self.write_header(HTTPStatus.OK)
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._chunks.append(data)
        return len(data)

    def write_json(self, data: Any, status_code: int = HTTPStatus.OK) -> None:
        """Write ``data`` as a JSON document with the given status."""
        self.headers["Content-Type"] = "application/json"
        self.write_header(status_code)
        self.write(json.dumps(data))

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def to_response(self) -> Response:
        status = self.status_code if self.status_code is not None else HTTPStatus.OK
        return Response(int(status), self.body, self.headers.copy())


@dataclass
class RequestContext:
    """Per-request context handed to handler capabilities."""

    request: Request
    span: Any = None
    route: Optional[str] = None
