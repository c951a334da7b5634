"""HTTP server that answers like Ollama and forwards chats upstream."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import partial
from typing import Any, AsyncIterator

import aiohttp
from aiohttp import web

from fake_ollama.protocol import (
    Message,
    tags_response,
    translate_completion,
    translate_stream_line,
    upstream_request,
)

_COMPLETIONS_PATH = "/v1/chat/completions"
_compact_dumps = partial(json.dumps, separators=(",", ":"), ensure_ascii=False)


@dataclass
class Config:
    """Settings of the proxy."""

    url: str
    api_key: str
    enabled_models: list[str] = field(default_factory=list)


_CONFIG_KEY = web.AppKey("config", Config)
_SESSION_KEY = web.AppKey("session", aiohttp.ClientSession)


def _log_request(request: web.Request, payload: dict[str, Any]) -> None:
    header_lines = "\n".join(f"  {name}: {value}" for name, value in request.headers.items())
    print(f"---\nRequest Headers:\n{header_lines}")
    print(f"Request Body:\n{json.dumps(payload, indent=2, ensure_ascii=False)}\n---")


async def _read_json(request: web.Request) -> Any:
    if request.content_type != "application/json":
        raise web.HTTPUnsupportedMediaType(
            text="Expected request with `Content-Type: application/json`"
        )
    try:
        return await request.json()
    except ValueError as exc:
        raise web.HTTPBadRequest(text=f"Failed to parse the request body as JSON: {exc}") from exc


def _invalid(reason: str) -> web.HTTPUnprocessableEntity:
    return web.HTTPUnprocessableEntity(
        text=f"Failed to deserialize the JSON body into the target type: {reason}"
    )


def _require(payload: Any, name: str, kind: type) -> Any:
    if not isinstance(payload, dict) or name not in payload:
        raise _invalid(f"missing field `{name}`")
    value = payload[name]
    if kind is bool:
        valid = isinstance(value, bool)
    else:
        valid = isinstance(value, kind) and not isinstance(value, bool)
    if not valid:
        raise _invalid(f"invalid type for field `{name}`")
    return value


def _parse_chat(payload: Any) -> dict[str, Any]:
    model = _require(payload, "model", str)
    raw_messages = _require(payload, "messages", list)
    messages = [
        Message(_require(item, "role", str), _require(item, "content", str))
        for item in raw_messages
    ]
    stream = _require(payload, "stream", bool)
    temperature = payload.get("temperature")
    if temperature is not None and (
        isinstance(temperature, bool) or not isinstance(temperature, (int, float))
    ):
        raise _invalid("invalid type for field `temperature`")
    return {
        "model": model,
        "messages": [{"role": m.role, "content": m.content} for m in messages],
        "stream": stream,
        "temperature": temperature,
        "_messages": messages,
    }


def _parse_generate(payload: Any) -> dict[str, Any]:
    return {
        "model": _require(payload, "model", str),
        "prompt": _require(payload, "prompt", str),
        "stream": _require(payload, "stream", bool),
    }


async def _stream_reply(
    upstream: aiohttp.ClientResponse, model: str, request: web.Request
) -> web.StreamResponse:
    response = web.StreamResponse(
        status=200, headers={"Content-Type": "application/x-ndjson"}
    )
    await response.prepare(request)
    try:
        async for chunk in upstream.content.iter_any():
            for line in chunk.split(b"\n"):
                translated = translate_stream_line(line, model)
                if translated:
                    await response.write(translated.encode("utf-8"))
    except aiohttp.ClientError:
        pass
    await response.write_eof()
    return response


async def forward_to_api(
    session: aiohttp.ClientSession,
    config: Config,
    messages: list[Message],
    model: str,
    stream: bool,
    request: web.Request,
) -> web.StreamResponse:
    """Send a chat to the upstream server and answer in Ollama's format."""
    remote_url = f"{config.url}{_COMPLETIONS_PATH}"
    body = upstream_request(model, messages, stream)
    try:
        upstream = await session.post(
            remote_url,
            json=body,
            headers={"Authorization": f"Bearer {config.api_key}"},
        )
    except aiohttp.ClientError as exc:
        return web.Response(status=500, text=f"Error forwarding request: {exc}")

    async with upstream:
        if not 200 <= upstream.status < 300:
            try:
                error_body = await upstream.read()
            except aiohttp.ClientError:
                error_body = b""
            return web.Response(status=upstream.status, body=error_body)

        if stream:
            return await _stream_reply(upstream, model, request)

        try:
            raw = await upstream.read()
        except aiohttp.ClientError:
            raw = b""
        reply = translate_completion(raw, model)
        return web.json_response(reply.to_dict(), dumps=_compact_dumps)


def create_app(config: Config) -> web.Application:
    """Build the web application serving the Ollama endpoints."""
    app = web.Application()
    app[_CONFIG_KEY] = config

    async def client_session(app: web.Application) -> AsyncIterator[None]:
        timeout = aiohttp.ClientTimeout(total=None)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            app[_SESSION_KEY] = session
            yield

    app.cleanup_ctx.append(client_session)

    async def root(request: web.Request) -> web.Response:
        return web.Response(text="Ollama is running")

    async def chat(request: web.Request) -> web.StreamResponse:
        parsed = _parse_chat(await _read_json(request))
        messages = parsed.pop("_messages")
        _log_request(request, parsed)
        return await forward_to_api(
            request.app[_SESSION_KEY],
            request.app[_CONFIG_KEY],
            messages,
            parsed["model"],
            parsed["stream"],
            request,
        )

    async def generate(request: web.Request) -> web.StreamResponse:
        parsed = _parse_generate(await _read_json(request))
        _log_request(request, parsed)
        return await forward_to_api(
            request.app[_SESSION_KEY],
            request.app[_CONFIG_KEY],
            [Message("user", parsed["prompt"])],
            parsed["model"],
            parsed["stream"],
            request,
        )

    async def tags(request: web.Request) -> web.Response:
        print("Received /api/tags request")
        body = tags_response(request.app[_CONFIG_KEY].enabled_models)
        return web.json_response(body, dumps=_compact_dumps)

    app.router.add_get("/", root)
    app.router.add_post("/api/chat", chat)
    app.router.add_post(_COMPLETIONS_PATH, chat)
    app.router.add_post("/api/generate", generate)
    app.router.add_get("/api/tags", tags)
    return app


def run(config: Config, host: str = "127.0.0.1", port: int = 11434) -> None:
    """Serve the application until interrupted."""
    web.run_app(create_app(config), host=host, port=port, print=None)