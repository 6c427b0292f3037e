"""
Security middlewares for the SkyUp API.

- SecurityHeadersMiddleware: adds hardening headers the app did not set itself
- RequestSizeLimitMiddleware: caps request bodies, with a larger cap for upload paths
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from skyup.asgi import normalize_headers, send_json
from skyup.envvars import get_bool, get_int, get_str


@dataclass(frozen=True)
class SecurityHeadersConfig:
    enabled: bool
    enable_hsts: bool
    hsts_max_age: int
    hsts_include_subdomains: bool
    referrer_policy: str
    frame_options: str
    permissions_policy: str
    content_security_policy: Optional[str]


@dataclass(frozen=True)
class RequestSizeLimitConfig:
    enabled: bool
    max_body_bytes: int
    upload_paths: Tuple[str, ...] = ()
    max_upload_bytes: int = 0

    def limit_for(self, path: str) -> int:
        if self.upload_paths and path.startswith(self.upload_paths):
            return max(self.max_upload_bytes, self.max_body_bytes)
        return self.max_body_bytes


def load_security_headers_config_from_env() -> SecurityHeadersConfig:
    return SecurityHeadersConfig(
        enabled=get_bool("SECURITY_HEADERS_ENABLED", True),
        enable_hsts=get_bool("SECURITY_HEADERS_ENABLE_HSTS", False),
        hsts_max_age=get_int("SECURITY_HEADERS_HSTS_MAX_AGE", 31536000),
        hsts_include_subdomains=get_bool("SECURITY_HEADERS_HSTS_INCLUDE_SUBDOMAINS", True),
        referrer_policy=get_str("SECURITY_HEADERS_REFERRER_POLICY", "no-referrer"),
        frame_options=get_str("SECURITY_HEADERS_X_FRAME_OPTIONS", "DENY"),
        permissions_policy=get_str(
            "SECURITY_HEADERS_PERMISSIONS_POLICY",
            "geolocation=(), microphone=(), camera=()",
        ),
        content_security_policy=get_str("SECURITY_HEADERS_CSP", None),
    )


def load_request_size_limit_config_from_env(
    default_max_bytes: int,
    upload_paths: Tuple[str, ...] = (),
    default_upload_bytes: int = 0,
) -> RequestSizeLimitConfig:
    return RequestSizeLimitConfig(
        enabled=get_bool("REQUEST_SIZE_LIMIT_ENABLED", True),
        max_body_bytes=get_int("MAX_REQUEST_BODY_BYTES", default_max_bytes),
        upload_paths=upload_paths,
        max_upload_bytes=get_int("MAX_UPLOAD_BODY_BYTES", default_upload_bytes),
    )


def security_headers(config: SecurityHeadersConfig) -> list[tuple[bytes, bytes]]:
    """Encoded header pairs for ``config``, names lower-cased."""
    pairs = [
        ("x-content-type-options", "nosniff"),
        ("x-frame-options", config.frame_options),
        ("referrer-policy", config.referrer_policy),
        ("permissions-policy", config.permissions_policy),
    ]
    if config.content_security_policy:
        pairs.append(("content-security-policy", config.content_security_policy))
    if config.enable_hsts:
        hsts = f"max-age={config.hsts_max_age}"
        if config.hsts_include_subdomains:
            hsts += "; includeSubDomains"
        pairs.append(("strict-transport-security", hsts))
    return [(name.encode("latin1"), value.encode("latin1")) for name, value in pairs if value]


class SecurityHeadersMiddleware:
    def __init__(self, app, config: SecurityHeadersConfig):
        self.app = app
        self.config = config
        self._headers = security_headers(config)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not self.config.enabled:
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                present = set(normalize_headers(headers))
                headers.extend(
                    (name, value) for name, value in self._headers if name.decode("latin1") not in present
                )
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)


class _BodyTooLarge(Exception):
    pass


class RequestSizeLimitMiddleware:
    """Rejects bodies over the path's limit, by ``Content-Length`` or while streaming."""

    def __init__(self, app, config: RequestSizeLimitConfig):
        self.app = app
        self.config = config

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not self.config.enabled or scope.get("method") == "OPTIONS":
            await self.app(scope, receive, send)
            return

        limit = self.config.limit_for(scope.get("path", ""))
        if limit <= 0:
            await self.app(scope, receive, send)
            return

        declared = normalize_headers(scope.get("headers", [])).get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            await self._reject(send, limit)
            return

        received = 0
        response_started = False

        async def counting_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body") or b"")
                if received > limit:
                    raise _BodyTooLarge()
            return message

        async def tracking_send(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, counting_receive, tracking_send)
        except _BodyTooLarge:
            if response_started:
                raise
            await self._reject(send, limit)

    @staticmethod
    async def _reject(send, limit: int) -> None:
        await send_json(
            send,
            413,
            {
                "ok": False,
                "code": "REQUEST_TOO_LARGE",
                "message": "Request body too large",
                "details": {"max_body_bytes": limit},
            },
        )
