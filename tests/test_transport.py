"""Tests for header building, error extraction and the aiohttp transport."""

from __future__ import annotations

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from epa.api import ProviderRequest
from epa.api_types import (
    HttpError,
    InvalidConfigError,
    NetworkError,
    RequestTimeoutError,
)
from epa.transport import (
    ERROR_MESSAGE_MAX_CHARS,
    HttpResponse,
    HttpTransport,
    authorization_header_value,
    build_headers,
    extract_error_message,
    is_valid_url,
    parse_headers_json,
    raise_for_status,
)


# ---------------------------------------------------------------------------
# Header helpers
# ---------------------------------------------------------------------------


def test_parse_headers_json_accepts_string_map():
    assert parse_headers_json('{"X-Team": "demo"}') == {"X-Team": "demo"}


@pytest.mark.parametrize("raw", ["", "   ", "not json", "[1, 2]", '{"X-Num": 1}'])
def test_parse_headers_json_rejects_invalid_input(raw):
    assert parse_headers_json(raw) == {}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("sk-123", "Bearer sk-123"),
        ("  sk-123  ", "Bearer sk-123"),
        ("Bearer sk-123", "Bearer sk-123"),
        ("bearer sk-123", "Bearer sk-123"),
        ("Authorization: Bearer sk-123", "Bearer sk-123"),
        ('"sk-123"', "Bearer sk-123"),
        ("Bearer ", ""),
        ("Authorization: Bearer", ""),
        ('"Bearer "', ""),
        ('""', ""),
        ("", ""),
    ],
)
def test_authorization_header_value(raw, expected):
    assert authorization_header_value(raw) == expected


def test_build_headers_skips_bare_bearer_credential():
    headers = build_headers("Bearer ", "")
    assert "Authorization" not in headers
    assert headers["Content-Type"] == "application/json"


def test_build_headers_synthesizes_bearer():
    headers = build_headers("sk-1", "")
    assert headers["Authorization"] == "Bearer sk-1"
    assert headers["Content-Type"] == "application/json"


def test_build_headers_keeps_custom_authorization():
    headers = build_headers("sk-1", '{"authorization": "Token abc"}')
    assert headers["authorization"] == "Token abc"
    assert "Authorization" not in headers


def test_build_headers_vendor_headers_override_custom():
    headers = build_headers(
        "sk-1",
        '{"x-goog-api-key": "from-user", "X-Extra": "1"}',
        extra_headers={"x-goog-api-key": "vendor"},
    )
    assert headers["x-goog-api-key"] == "vendor"
    assert headers["X-Extra"] == "1"


def test_build_headers_without_bearer_or_custom():
    headers = build_headers(
        "sk-1",
        '{"X-Extra": "1"}',
        include_bearer_auth=False,
        include_custom_headers=False,
    )
    assert headers == {"Content-Type": "application/json"}


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://api.example.com/v1", True),
        ("http://127.0.0.1:8080", True),
        ("", False),
        ("   ", False),
        ("ftp://example.com", False),
        ("example.com/path", False),
    ],
)
def test_is_valid_url(url, expected):
    assert is_valid_url(url) is expected


# ---------------------------------------------------------------------------
# Error extraction
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "body, expected",
    [
        (b'{"message": "quota exceeded"}', "quota exceeded"),
        (b'{"error": {"message": "model not found"}}', "model not found"),
        (b'{"error": {"code": "1211"}}', "1211"),
        (b'{"error_msg": "bad voice"}', "bad voice"),
        (b"plain failure", "plain failure"),
        (b"", None),
    ],
)
def test_extract_error_message(body, expected):
    assert extract_error_message(body) == expected


def test_extract_error_message_truncates_raw_text():
    message = extract_error_message(b"x" * 1000)
    assert message == "x" * ERROR_MESSAGE_MAX_CHARS


def test_raise_for_status():
    raise_for_status(HttpResponse(status=204, body=b""))
    with pytest.raises(HttpError) as exc_info:
        raise_for_status(HttpResponse(status=404, body=b'{"message": "no such model"}'))
    assert exc_info.value.code == 404
    assert exc_info.value.detail == "no such model"


# ---------------------------------------------------------------------------
# HttpTransport against a real server
# ---------------------------------------------------------------------------


@pytest.fixture
def no_proxy(monkeypatch):
    for name in ("HTTPS_PROXY", "https_proxy", "HTTP_PROXY", "http_proxy"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
async def server(no_proxy):
    async def echo(request: web.Request) -> web.Response:
        body = await request.json()
        return web.json_response(
            {"received": body, "auth": request.headers.get("Authorization", "")}
        )

    async def fail(request: web.Request) -> web.Response:
        return web.json_response({"message": "upstream busy"}, status=503)

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.json_response({})

    async def audio(request: web.Request) -> web.Response:
        return web.Response(body=b"ID3audio", content_type="audio/mpeg")

    app = web.Application()
    app.router.add_post("/echo", echo)
    app.router.add_post("/fail", fail)
    app.router.add_post("/slow", slow)
    app.router.add_post("/audio", audio)

    test_server = TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest.fixture
async def transport(no_proxy):
    http_transport = HttpTransport()
    yield http_transport
    await http_transport.close()


async def test_send_posts_json_and_returns_body(server, transport):
    request = ProviderRequest(
        url=str(server.make_url("/echo")),
        headers=build_headers("sk-1", ""),
        payload={"task": "grammar_check", "text": "hi"},
    )

    response = await transport.send(request, timeout=5)

    assert response.ok
    assert response.content_type.startswith("application/json")
    assert b'"task": "grammar_check"' in response.body
    assert b'"auth": "Bearer sk-1"' in response.body


async def test_send_returns_non_2xx_without_raising(server, transport):
    request = ProviderRequest(
        url=str(server.make_url("/fail")), headers={}, payload={}
    )

    response = await transport.send(request, timeout=5)

    assert response.status == 503
    with pytest.raises(HttpError) as exc_info:
        raise_for_status(response)
    assert str(exc_info.value) == "HTTP 503: upstream busy"


async def test_send_keeps_audio_content_type(server, transport):
    request = ProviderRequest(
        url=str(server.make_url("/audio")), headers={}, payload={}
    )

    response = await transport.send(request)

    assert response.body == b"ID3audio"
    assert response.content_type == "audio/mpeg"


async def test_send_times_out(server, transport):
    request = ProviderRequest(
        url=str(server.make_url("/slow")), headers={}, payload={}
    )

    with pytest.raises(RequestTimeoutError):
        await transport.send(request, timeout=0.05)


async def test_send_maps_connection_errors(transport):
    request = ProviderRequest(url="http://127.0.0.1:1/", headers={}, payload={})

    with pytest.raises(NetworkError):
        await transport.send(request, timeout=5)


async def test_send_rejects_invalid_url(transport):
    request = ProviderRequest(url="  ", headers={}, payload={})

    with pytest.raises(InvalidConfigError):
        await transport.send(request)


async def test_close_keeps_external_session(server, no_proxy):
    import aiohttp

    async with aiohttp.ClientSession() as session:
        shared = HttpTransport(session=session)
        request = ProviderRequest(
            url=str(server.make_url("/echo")), headers={}, payload={"a": 1}
        )
        await shared.send(request, timeout=5)
        await shared.close()
        assert not session.closed
