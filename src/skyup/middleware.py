"""Middleware stack for the SkyUp API."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from skyup.config import Settings, settings
from skyup.rate_limiter import InMemoryRateLimiter, RateLimitMiddleware, load_rate_limit_config_from_env
from skyup.security_middleware import (
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
    load_request_size_limit_config_from_env,
    load_security_headers_config_from_env,
)

UPLOAD_PATHS = ("/resume",)
# Room for multipart boundaries and the other form fields.
MULTIPART_OVERHEAD_BYTES = 1024 * 1024


def configure_middleware(app: FastAPI, config: Settings = settings) -> InMemoryRateLimiter:
    """Install the middleware stack; the last one added sees requests first.

    Request order: CORS, trusted hosts, security headers, rate limit, size limit.
    The limiter is also kept on ``app.state.rate_limiter``.
    """
    rate_limit_config = load_rate_limit_config_from_env()
    limiter = InMemoryRateLimiter(max_entries=rate_limit_config.max_cache_entries)
    app.state.rate_limiter = limiter

    app.add_middleware(
        RequestSizeLimitMiddleware,
        config=load_request_size_limit_config_from_env(
            config.max_request_body_bytes,
            upload_paths=UPLOAD_PATHS,
            default_upload_bytes=config.resume_max_bytes + MULTIPART_OVERHEAD_BYTES,
        ),
    )
    app.add_middleware(RateLimitMiddleware, limiter=limiter, config=rate_limit_config)
    app.add_middleware(SecurityHeadersMiddleware, config=load_security_headers_config_from_env())

    if config.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=config.trusted_hosts)

    # Preflight requests are answered here, before rate limiting.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allowed_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=config.cors_allowed_methods,
        allow_headers=config.cors_allowed_headers,
    )
    return limiter
