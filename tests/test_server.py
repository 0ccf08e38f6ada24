"""
Tests for the ASGI adapter.
"""

import json
from typing import Any, Dict, List, Optional

import pytest
from pydantic import BaseModel, Field

from restbind import JSONBodyDecoder, JSONResponseEncoder, RestApplication, create_asgi_app

pytestmark = pytest.mark.anyio


class EchoQuery(BaseModel):
    Tag: str = ""


class Echo(JSONBodyDecoder, JSONResponseEncoder, BaseModel):
    Query: EchoQuery = Field(default_factory=EchoQuery)
    Body: Optional[Dict[str, Any]] = None
    Response: Optional[Dict[str, Any]] = None

    def handle(self, ctx, writer):
        self.Response = {
            "tag": self.Query.Tag,
            "body": self.Body,
            "content_type": ctx.request.get_content_type(),
        }

    def handle_error(self, ctx, writer, error):
        writer.write_json({"error": str(error)}, 500)


def create_app() -> RestApplication:
    app = RestApplication()
    app.post("/echo")(Echo)
    return app


async def call(scope: Dict[str, Any], chunks: List[bytes]):
    asgi_app = create_asgi_app(create_app())
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]
    sent = []

    async def receive():
        return messages.pop(0)

    async def send(message):
        sent.append(message)

    await asgi_app(scope, receive, send)
    return sent


def http_scope(method="POST", path="/echo", query_string=b"", headers=None):
    return {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query_string,
        "headers": headers or [],
    }


class TestASGIAdapter:
    """Test translation between ASGI messages and the application."""

    async def test_request_round_trip(self):
        sent = await call(
            http_scope(
                query_string=b"tag=a&tag=b",
                headers=[[b"content-type", b"application/json"]],
            ),
            [b'{"x": ', b"1}"],
        )

        start, body = sent
        assert start["type"] == "http.response.start"
        assert start["status"] == 200
        assert json.loads(body["body"]) == {
            "tag": "a",
            "body": {"x": 1},
            "content_type": "application/json",
        }

        headers = dict((k.lower(), v) for k, v in start["headers"])
        assert headers[b"content-type"] == b"application/json"
        assert headers[b"content-length"] == str(len(body["body"])).encode()

    async def test_blank_query_value_kept(self):
        sent = await call(http_scope(query_string=b"tag="), [b""])
        assert json.loads(sent[1]["body"])["tag"] == ""

    async def test_binding_error(self):
        sent = await call(http_scope(), [b"{oops"])
        assert sent[0]["status"] == 400
        assert list(json.loads(sent[1]["body"])) == ["request.body"]

    async def test_unknown_route(self):
        sent = await call(http_scope(path="/missing"), [b""])
        assert sent[0]["status"] == 404

    async def test_non_http_scope(self):
        sent = await call({"type": "websocket", "path": "/echo"}, [b""])
        assert sent[0]["status"] == 404
        assert sent[1]["body"] == b"Not Found"
