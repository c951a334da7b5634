import json
import socket
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from fake_ollama.server import Config, create_app

STREAM_BODY = (
    'data: {"choices":[{"delta":{"content":"Hello"}}]}\n'
    "\n"
    'data: {"choices":[{"delta":{"content":" World"}}]}\n'
    "\n"
    "data: [DONE]\n"
)


@asynccontextmanager
async def _upstream(handler):
    app = web.Application()
    app.router.add_post("/v1/chat/completions", handler)
    async with TestServer(app) as server:
        yield f"http://{server.host}:{server.port}"


@asynccontextmanager
async def _proxy(config):
    async with TestClient(TestServer(create_app(config))) as client:
        yield client


def _recording_handler(received, *, text="", status=200):
    async def handler(request):
        received.append(
            {"headers": dict(request.headers), "json": await request.json()}
        )
        return web.Response(text=text, status=status)

    return handler


def _config(url):
    return Config(url=url, api_key="placeholder", enabled_models=["llama2", "mistral"])


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.asyncio
async def test_chat_streaming_integration():
    received = []
    async with _upstream(_recording_handler(received, text=STREAM_BODY)) as url:
        async with _proxy(_config(url)) as client:
            res = await client.post(
                "/api/chat",
                json={
                    "model": "llama2",
                    "messages": [{"role": "user", "content": "Hey there!"}],
                    "stream": True,
                },
            )
            assert res.status == 200
            assert res.headers["Content-Type"] == "application/x-ndjson"
            text = await res.text()

    responses = [json.loads(line) for line in text.splitlines() if line]
    assert len(responses) == 3
    assert responses[0]["message"]["content"] == "Hello"
    assert responses[1]["message"]["content"] == " World"
    assert responses[2]["done"] is True


@pytest.mark.asyncio
async def test_upstream_receives_auth_and_body():
    received = []
    async with _upstream(_recording_handler(received, text=STREAM_BODY)) as url:
        async with _proxy(_config(url)) as client:
            res = await client.post(
                "/v1/chat/completions",
                json={
                    "model": "llama2",
                    "messages": [{"role": "user", "content": "Hey there!"}],
                    "stream": True,
                    "temperature": 0.1,
                },
            )
            await res.read()

    assert len(received) == 1
    assert received[0]["headers"]["Authorization"] == "Bearer placeholder"
    assert received[0]["json"] == {
        "model": "llama2",
        "messages": [{"role": "user", "content": "Hey there!"}],
        "stream": True,
        "temperature": 0.7,
    }


@pytest.mark.asyncio
async def test_chat_without_streaming():
    completion = json.dumps(
        {
            "choices": [{"message": {"role": "assistant", "content": "Hello World"}}],
            "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
        }
    )
    async with _upstream(_recording_handler([], text=completion)) as url:
        async with _proxy(_config(url)) as client:
            res = await client.post(
                "/api/chat",
                json={
                    "model": "mistral",
                    "messages": [{"role": "user", "content": "Hey there!"}],
                    "stream": False,
                },
            )
            assert res.status == 200
            body = await res.json()

    assert body["model"] == "mistral"
    assert body["message"] == {"role": "assistant", "content": "Hello World"}
    assert body["done"] is True
    assert body["prompt_eval_count"] == 3
    assert body["eval_count"] == 2
    assert body["total_duration"] == 500000
    assert body["load_duration"] == 1234567


@pytest.mark.asyncio
async def test_generate_wraps_prompt_as_user_message():
    received = []
    async with _upstream(_recording_handler(received, text=STREAM_BODY)) as url:
        async with _proxy(_config(url)) as client:
            res = await client.post(
                "/api/generate",
                json={"model": "llama2", "prompt": "Why is the sky blue?", "stream": True},
            )
            text = await res.text()

    assert received[0]["json"]["messages"] == [
        {"role": "user", "content": "Why is the sky blue?"}
    ]
    contents = [json.loads(line)["message"]["content"] for line in text.splitlines() if line]
    assert contents == ["Hello", " World", ""]


@pytest.mark.asyncio
async def test_upstream_error_is_passed_through():
    handler = _recording_handler([], text="bad key", status=401)
    async with _upstream(handler) as url:
        async with _proxy(_config(url)) as client:
            res = await client.post(
                "/api/chat",
                json={"model": "llama2", "messages": [], "stream": False},
            )
            assert res.status == 401
            assert await res.text() == "bad key"


@pytest.mark.asyncio
async def test_unreachable_upstream_gives_500():
    config = _config(f"http://127.0.0.1:{_free_port()}")
    async with _proxy(config) as client:
        res = await client.post(
            "/api/chat",
            json={"model": "llama2", "messages": [], "stream": True},
        )
        assert res.status == 500
        assert (await res.text()).startswith("Error forwarding request: ")


@pytest.mark.asyncio
async def test_root():
    async with _proxy(_config("http://127.0.0.1:1")) as client:
        res = await client.get("/")
        assert res.status == 200
        assert await res.text() == "Ollama is running"


@pytest.mark.asyncio
async def test_tags_lists_enabled_models():
    async with _proxy(_config("http://127.0.0.1:1")) as client:
        res = await client.get("/api/tags")
        assert res.status == 200
        body = await res.json()
    assert [model["name"] for model in body["models"]] == ["llama2", "mistral"]
    assert body["models"][0]["details"]["parameter_size"] == "405B"


@pytest.mark.asyncio
async def test_missing_stream_field_is_rejected():
    async with _proxy(_config("http://127.0.0.1:1")) as client:
        res = await client.post(
            "/api/chat", json={"model": "llama2", "messages": []}
        )
        assert res.status == 422


@pytest.mark.asyncio
async def test_malformed_json_is_rejected():
    async with _proxy(_config("http://127.0.0.1:1")) as client:
        res = await client.post(
            "/api/generate",
            data="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert res.status == 400


@pytest.mark.asyncio
async def test_wrong_content_type_is_rejected():
    async with _proxy(_config("http://127.0.0.1:1")) as client:
        res = await client.post("/api/chat", data="hello")
        assert res.status == 415