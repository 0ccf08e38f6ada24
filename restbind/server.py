"""
ASGI adapter for restbind applications.

The adapter translates an ASGI HTTP scope into a :class:`~restbind.models.Request`,
runs it through :meth:`RestApplication.execute` and streams the written
response back. Any ASGI server (Uvicorn, Hypercorn, ...) can serve it.
"""

import json
import logging
import urllib.parse
from typing import Any, Dict, List

from .application import RestApplication
from .models import HTTPMethod, Request, Response

# Set up logger for this module
logger = logging.getLogger(__name__)


class ASGIAdapter:
    """
    ASGI adapter that converts between the ASGI protocol and restbind Request/Response objects.

    Binding and dispatch stay synchronous; only body reading and sending are awaited.
    """

    def __init__(self, app: RestApplication):
        self.app = app

    async def __call__(self, scope: Dict[str, Any], receive, send):
        """ASGI application entry point."""
        if scope["type"] != "http":
            # Only handle HTTP requests
            await send({
                "type": "http.response.start",
                "status": 404,
                "headers": [[b"content-type", b"text/plain"]],
            })
            await send({
                "type": "http.response.body",
                "body": b"Not Found",
            })
            return

        request = await self._asgi_to_request(scope, receive)

        try:
            response = self.app.execute(request)
        except Exception as e:
            logger.error(f"Unhandled exception in ASGI adapter: {e}", exc_info=True)
            response = Response(
                status_code=500,
                body=json.dumps({"error": "Internal Server Error"}),
                content_type="application/json",
            )

        await self._response_to_asgi(response, send)

    async def _asgi_to_request(self, scope: Dict[str, Any], receive) -> Request:
        """Convert an ASGI scope and body messages into a Request."""
        method = HTTPMethod(scope["method"].upper())
        path = scope["path"]
        query_string = scope.get("query_string", b"").decode("latin-1")

        headers: List[tuple] = []
        for header_name, header_value in scope.get("headers", []):
            headers.append((header_name.decode("latin-1"), header_value.decode("latin-1")))

        # Repeated keys keep every value in request order; binding reads the first
        query_params: Dict[str, List[str]] = {}
        if query_string:
            query_params = urllib.parse.parse_qs(query_string, keep_blank_values=True)

        body = b""
        more_body = True
        while more_body:
            message = await receive()
            body += message.get("body", b"")
            more_body = message.get("more_body", False)

        return Request(
            method=method,
            path=path,
            headers=headers,
            query_params=query_params,
            body=body,
        )

    async def _response_to_asgi(self, response: Response, send):
        """Send a Response as ASGI start and body messages."""
        body = response.body_bytes()

        headers = []
        for name, value in response.headers.items_all():
            if name.lower() == "content-length":
                continue
            headers.append([name.encode("latin-1"), str(value).encode("latin-1")])
        # Always set Content-Length to match the actual body
        headers.append([b"content-length", str(len(body)).encode("latin-1")])

        await send({
            "type": "http.response.start",
            "status": response.status_code,
            "headers": headers,
        })
        await send({
            "type": "http.response.body",
            "body": body,
        })


def create_asgi_app(app: RestApplication) -> ASGIAdapter:
    """
    Create an ASGI application from a restbind application.

    Args:
        app: The application to wrap

    Returns:
        An ASGI-compatible application
    """
    return ASGIAdapter(app)
