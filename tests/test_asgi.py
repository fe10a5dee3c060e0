"""
ASGI adapter: body parsing, size limits, static assets, lifespan, and the
in-process TestClient.
"""

import httpx
import pytest
from typing import Annotated, Any

from heron import (
    AppConfig,
    BodyParserConfig,
    Body,
    Header,
    Query,
    Req,
    StaticAsset,
    controller,
    create_app,
    get,
    module,
    post,
    route,
)
from heron.asgi import ASGIAdapter, parse_query
from heron.request import Request
from heron.testing import TestClient


@controller("/echo")
class EchoController:

    @post("/")
    async def echo(self, body: Annotated[Any, Body()]):
        if isinstance(body, bytes):
            return {"bytes": body.decode()}
        return {"body": body}

    @get("/query")
    async def query(self, q: Annotated[dict, Query()]):
        return q

    @get("/client")
    async def client(self, req: Annotated[Request, Req()], agent: Annotated[str, Header("user-agent")] = None):
        return {"client": req.client, "agent": agent}

    @get("/auth")
    async def auth(self, authorization: Annotated[str, Header("authorization")] = None):
        return {"authorization": authorization}

    @get("/")
    async def index(self):
        return {"hello": "world"}


@module(controllers=[EchoController])
class EchoModule:
    pass


def make_client(**config):
    return TestClient(create_app(EchoModule, AppConfig(**config)))


# ============================================================================
# Body Parsing
# ============================================================================

class TestBodyParsing:

    @pytest.mark.asyncio
    async def test_json_body(self):
        response = await make_client().post("/echo", json={"name": "heron", "tags": [1, 2]})
        assert response.status_code == 200
        assert response.json() == {"body": {"name": "heron", "tags": [1, 2]}}
        assert response.content_type == "application/json"

    @pytest.mark.asyncio
    async def test_invalid_json_is_400(self):
        response = await make_client().post(
            "/echo", body=b"{not json", headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"statusCode": 400, "message": "Invalid JSON body"}

    @pytest.mark.asyncio
    async def test_urlencoded_form(self):
        response = await make_client().post("/echo", data={"name": "heron", "kind": "bird"})
        assert response.json() == {"body": {"name": "heron", "kind": "bird"}}

    @pytest.mark.asyncio
    async def test_other_content_types_stay_bytes(self):
        response = await make_client().post(
            "/echo", body=b"plain text", headers={"Content-Type": "text/plain"},
        )
        assert response.json() == {"bytes": "plain text"}

    @pytest.mark.asyncio
    async def test_json_parsing_can_be_disabled(self):
        client = make_client(body_parser=BodyParserConfig(json=False))
        response = await client.post("/echo", json={"a": 1})
        assert response.json() == {"bytes": '{"a": 1}'}

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self):
        response = await make_client().post("/echo")
        assert response.json() == {"body": None}

    @pytest.mark.asyncio
    async def test_body_too_large(self):
        client = make_client(body_parser=BodyParserConfig(max_body_size=16))
        response = await client.post("/echo", json={"payload": "x" * 64})
        assert response.status_code == 413
        assert response.json()["message"] == "Request body exceeds 16 bytes"

    @pytest.mark.asyncio
    async def test_streamed_body_over_limit(self):
        adapter = ASGIAdapter(create_app(EchoModule, AppConfig(body_parser=BodyParserConfig(max_body_size=8))))
        chunks = [
            {"type": "http.request", "body": b"12345", "more_body": True},
            {"type": "http.request", "body": b"67890", "more_body": False},
        ]
        sent = []

        async def receive():
            return chunks.pop(0)

        async def send(message):
            sent.append(message)

        scope = {"type": "http", "method": "POST", "path": "/echo", "headers": [], "query_string": b""}
        await adapter(scope, receive, send)
        assert sent[0]["status"] == 413


# ============================================================================
# Query Strings and Headers
# ============================================================================

class TestQueryAndHeaders:

    def test_parse_query(self):
        assert parse_query(b"a=1&b=2&b=3&empty=") == {"a": "1", "b": ["2", "3"], "empty": ""}
        assert parse_query("") == {}

    @pytest.mark.asyncio
    async def test_query_params(self):
        response = await make_client().get("/echo/query?tag=a&tag=b", params={"page": 2})
        assert response.json() == {"tag": ["a", "b"], "page": "2"}

    @pytest.mark.asyncio
    async def test_client_address_and_headers(self):
        client = TestClient(create_app(EchoModule), default_headers={"User-Agent": "tests"}, client=("10.1.2.3", 4000))
        response = await client.get("/echo/client")
        assert response.json() == {"client": "10.1.2.3", "agent": "tests"}

    @pytest.mark.asyncio
    async def test_bearer_token_sent_on_every_request(self):
        client = make_client()
        client.set_bearer_token("abc123")
        assert (await client.get("/echo/auth")).json() == {"authorization": "Bearer abc123"}
        assert (await client.get("/echo/auth")).json() == {"authorization": "Bearer abc123"}

    @pytest.mark.asyncio
    async def test_head_has_empty_body(self):
        @controller("/h")
        class HeadController:
            @route(["GET", "HEAD"], "/")
            async def index(self):
                return {"big": "body"}

        @module(controllers=[HeadController])
        class HeadModule:
            pass

        client = TestClient(create_app(HeadModule))
        response = await client.head("/h")
        assert response.status_code == 200
        assert response.body == b""
        assert response.header("content-length") == "14"

    @pytest.mark.asyncio
    async def test_head_served_by_get_route(self):
        client = make_client()
        response = await client.head("/echo")
        assert response.status_code == 200
        assert response.body == b""
        assert response.header("content-length") == str(len(b'{"hello":"world"}'))

        missing = await client.head("/nowhere")
        assert missing.status_code == 404


# ============================================================================
# Static Assets
# ============================================================================

class TestStaticAssets:

    @pytest.fixture
    def public_dir(self, tmp_path):
        public = tmp_path / "public"
        public.mkdir()
        (public / "index.html").write_text("<h1>home</h1>")
        (public / "notes.txt").write_text("hello static")
        (tmp_path / "secret.txt").write_text("do not serve")
        return public

    @pytest.mark.asyncio
    async def test_serves_file(self, public_dir):
        client = make_client(static_assets=[StaticAsset(path="/static", directory=str(public_dir))])
        response = await client.get("/static/notes.txt")
        assert response.status_code == 200
        assert response.text == "hello static"
        assert response.content_type == "text/plain"

    @pytest.mark.asyncio
    async def test_index_fallback(self, public_dir):
        client = make_client(static_assets=[StaticAsset(path="/static", directory=str(public_dir))])
        response = await client.get("/static")
        assert response.text == "<h1>home</h1>"

    @pytest.mark.asyncio
    async def test_missing_file_falls_through_to_routes(self, public_dir):
        client = make_client(static_assets=[StaticAsset(path="/static", directory=str(public_dir))])
        response = await client.get("/static/missing.txt")
        assert response.status_code == 404
        assert (await client.get("/echo")).json() == {"hello": "world"}

    @pytest.mark.asyncio
    async def test_traversal_refused(self, public_dir):
        client = make_client(static_assets=[StaticAsset(path="/static", directory=str(public_dir))])
        response = await client.get("/static/../secret.txt")
        assert response.status_code == 404
        assert b"do not serve" not in response.body


# ============================================================================
# Protocol
# ============================================================================

class TestProtocol:

    @pytest.mark.asyncio
    async def test_lifespan(self):
        adapter = ASGIAdapter(create_app(EchoModule))
        messages = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent = []

        async def receive():
            return messages.pop(0)

        async def send(message):
            sent.append(message["type"])

        await adapter({"type": "lifespan"}, receive, send)
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    @pytest.mark.asyncio
    async def test_websocket_refused(self):
        adapter = ASGIAdapter(create_app(EchoModule))
        sent = []

        async def receive():
            return {"type": "websocket.connect"}

        async def send(message):
            sent.append(message)

        await adapter({"type": "websocket", "path": "/"}, receive, send)
        assert sent == [{"type": "websocket.close", "code": 1003}]

    @pytest.mark.asyncio
    async def test_httpx_asgi_transport(self):
        adapter = ASGIAdapter(create_app(EchoModule))
        transport = httpx.ASGITransport(app=adapter)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            created = await client.post("/echo", json={"x": 1})
            assert created.status_code == 200
            assert created.json() == {"body": {"x": 1}}

            missing = await client.get("/nope")
            assert missing.status_code == 404
            assert missing.headers["content-type"].startswith("application/json")
