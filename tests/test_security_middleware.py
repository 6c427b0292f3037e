from __future__ import annotations

import json

import pytest

from skyup.security_middleware import (
    RequestSizeLimitConfig,
    RequestSizeLimitMiddleware,
    SecurityHeadersConfig,
    SecurityHeadersMiddleware,
    load_request_size_limit_config_from_env,
    load_security_headers_config_from_env,
    security_headers,
)


def _headers_config(**overrides) -> SecurityHeadersConfig:
    values = dict(
        enabled=True,
        enable_hsts=False,
        hsts_max_age=60,
        hsts_include_subdomains=True,
        referrer_policy="no-referrer",
        frame_options="DENY",
        permissions_policy="geolocation=()",
        content_security_policy=None,
    )
    values.update(overrides)
    return SecurityHeadersConfig(**values)


async def _run(middleware, scope, body: bytes = b""):
    messages = []

    async def receive():
        return {"type": "http.request", "body": body}

    async def send(message):
        messages.append(message)

    await middleware(scope, receive, send)
    return messages


async def _echo_app(scope, receive, send):
    await receive()
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"ok"})


def test_load_security_headers_config_from_env(monkeypatch):
    monkeypatch.setenv("SECURITY_HEADERS_ENABLED", "false")
    monkeypatch.setenv("SECURITY_HEADERS_REFERRER_POLICY", "strict-origin")
    config = load_security_headers_config_from_env()

    assert config.enabled is False
    assert config.referrer_policy == "strict-origin"


def test_load_request_size_limit_config_from_env(monkeypatch):
    monkeypatch.setenv("REQUEST_SIZE_LIMIT_ENABLED", "true")
    monkeypatch.setenv("MAX_REQUEST_BODY_BYTES", "123")
    monkeypatch.delenv("MAX_UPLOAD_BODY_BYTES", raising=False)
    config = load_request_size_limit_config_from_env(999, upload_paths=("/resume",), default_upload_bytes=5000)

    assert config.enabled is True
    assert config.max_body_bytes == 123
    assert config.max_upload_bytes == 5000


def test_upload_paths_get_the_larger_limit():
    config = RequestSizeLimitConfig(
        enabled=True, max_body_bytes=100, upload_paths=("/resume",), max_upload_bytes=5000
    )

    assert config.limit_for("/resume") == 5000
    assert config.limit_for("/add-users") == 100


def test_security_headers_include_hsts_only_when_enabled():
    plain = dict(security_headers(_headers_config()))
    hardened = dict(security_headers(_headers_config(enable_hsts=True, content_security_policy="default-src 'none'")))

    assert plain[b"x-content-type-options"] == b"nosniff"
    assert b"strict-transport-security" not in plain
    assert hardened[b"strict-transport-security"] == b"max-age=60; includeSubDomains"
    assert hardened[b"content-security-policy"] == b"default-src 'none'"


@pytest.mark.asyncio
async def test_security_headers_middleware_injects_headers():
    middleware = SecurityHeadersMiddleware(_echo_app, _headers_config(enable_hsts=True))

    messages = await _run(middleware, {"type": "http", "method": "GET"})

    headers = dict(messages[0]["headers"])
    assert headers[b"x-content-type-options"] == b"nosniff"
    assert headers[b"x-frame-options"] == b"DENY"
    assert b"strict-transport-security" in headers


@pytest.mark.asyncio
async def test_security_headers_middleware_keeps_existing_header():
    async def app(scope, receive, send):
        await send({
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"X-Frame-Options", b"SAMEORIGIN")],
        })
        await send({"type": "http.response.body", "body": b""})

    messages = await _run(SecurityHeadersMiddleware(app, _headers_config()), {"type": "http", "method": "GET"})

    frame_values = [v for k, v in messages[0]["headers"] if k.lower() == b"x-frame-options"]
    assert frame_values == [b"SAMEORIGIN"]


@pytest.mark.asyncio
async def test_request_size_limit_rejects_streamed_body():
    middleware = RequestSizeLimitMiddleware(_echo_app, RequestSizeLimitConfig(enabled=True, max_body_bytes=4))

    messages = await _run(middleware, {"type": "http", "method": "POST", "path": "/add-contact", "headers": []}, b"12345")

    assert messages[0]["status"] == 413
    payload = json.loads(messages[1]["body"].decode())
    assert payload["code"] == "REQUEST_TOO_LARGE"
    assert payload["details"]["max_body_bytes"] == 4


@pytest.mark.asyncio
async def test_request_size_limit_rejects_declared_content_length():
    called = []

    async def app(scope, receive, send):
        called.append(True)

    middleware = RequestSizeLimitMiddleware(app, RequestSizeLimitConfig(enabled=True, max_body_bytes=4))
    scope = {"type": "http", "method": "POST", "path": "/receipt", "headers": [(b"content-length", b"100")]}

    messages = await _run(middleware, scope)

    assert called == []
    assert messages[0]["status"] == 413


@pytest.mark.asyncio
async def test_request_size_limit_allows_larger_uploads():
    config = RequestSizeLimitConfig(enabled=True, max_body_bytes=4, upload_paths=("/resume",), max_upload_bytes=64)
    middleware = RequestSizeLimitMiddleware(_echo_app, config)

    messages = await _run(middleware, {"type": "http", "method": "POST", "path": "/resume", "headers": []}, b"x" * 32)

    assert messages[0]["status"] == 200
