"""Tests for reqflow.agents.generation module (httpx.MockTransport)."""

import asyncio
import json

import httpx
import pytest

from reqflow.agents.generation import GenerationClient
from reqflow.agents.stream import GenerationError, ParseError
from reqflow.lib.config import GenerationConfig

BASE_URL = "http://generation.test/api"


def make_client(handler) -> GenerationClient:
    config = GenerationConfig(base_url=BASE_URL)
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return GenerationClient(config, client=http)


def text_response(text: str) -> httpx.Response:
    return httpx.Response(200, json={"content": [{"text": text}]})


def sse(*events) -> bytes:
    return "".join(f"data: {e}\n\n" for e in events).encode()


class TestComplete:

    def test_sends_prompt_and_returns_text(self):
        captured = {}

        def handler(request):
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return text_response("hello")

        client = make_client(handler)
        assert asyncio.run(client.complete("Say hello", max_tokens=50)) == "hello"
        assert captured["path"] == "/api/chat"
        assert captured["body"]["max_tokens"] == 50
        assert captured["body"]["messages"] == [{"role": "user", "content": "Say hello"}]

    def test_default_max_tokens(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return text_response("ok")

        asyncio.run(make_client(handler).complete("x"))
        assert captured["body"]["max_tokens"] == 4000

    def test_http_error_status(self):
        client = make_client(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(GenerationError) as exc_info:
            asyncio.run(client.complete("x"))
        assert "500" in str(exc_info.value)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GenerationError):
            asyncio.run(make_client(handler).complete("x"))

    def test_unexpected_shape(self):
        client = make_client(lambda request: httpx.Response(200, json={"nope": []}))
        with pytest.raises(GenerationError):
            asyncio.run(client.complete("x"))


class TestCompleteJson:

    def test_parses_and_validates(self):
        answer = '```json\n{"owner": "Sarah Chen", "complexity": "simple", "priority": "High"}\n```'
        client = make_client(lambda request: text_response(answer))
        data = asyncio.run(client.complete_json("route", schema_name="routing"))
        assert data["owner"] == "Sarah Chen"

    def test_schema_failure_is_parse_error(self):
        client = make_client(lambda request: text_response('{"owner": "Sarah Chen", "priority": "Urgent"}'))
        with pytest.raises(ParseError):
            asyncio.run(client.complete_json("route", schema_name="routing"))

    def test_non_json_is_parse_error(self):
        client = make_client(lambda request: text_response("Sure! Here is the routing."))
        with pytest.raises(ParseError):
            asyncio.run(client.complete_json("route"))


class TestStreamJson:

    def test_streams_document(self):
        body = sse('{"delta": "{\\"content\\": \\"## BRD"}', '{"delta": "\\"}"}', "[DONE]")
        seen = []

        def handler(request):
            assert request.url.path == "/api/chat/stream"
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        data = asyncio.run(make_client(handler).stream_json("doc", schema_name="document", on_progress=seen.append))
        assert data == {"content": "## BRD"}
        assert seen[-1] == '{"content": "## BRD"}'

    def test_error_event(self):
        body = sse('{"error": true, "message": "rate limited"}')
        client = make_client(lambda request: httpx.Response(200, content=body))
        with pytest.raises(GenerationError) as exc_info:
            asyncio.run(client.stream_json("doc"))
        assert "rate limited" in str(exc_info.value)

    def test_error_status(self):
        client = make_client(lambda request: httpx.Response(503, content=b"unavailable"))
        with pytest.raises(GenerationError):
            asyncio.run(client.stream_json("doc"))

    def test_empty_content_fails_schema(self):
        body = sse('{"delta": "{\\"content\\": \\"\\"}"}', "[DONE]")
        client = make_client(lambda request: httpx.Response(200, content=body))
        with pytest.raises(ParseError):
            asyncio.run(client.stream_json("doc", schema_name="document"))
