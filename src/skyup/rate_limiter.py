"""
Per-client rate limiting for the SkyUp API.

Each request is counted against every ``ScopedRule`` whose path prefix and
method match it, using fixed windows held in process memory:

- ``global_ip``: every request from a client.
- ``auth_ip``: ``/api/auth`` calls, so the shared admin password cannot be
  brute forced.
- ``submission_ip``: public form posts (applications, contacts, resumes),
  to keep spam out of the admin lists.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from skyup.asgi import normalize_headers, send_json
from skyup.envvars import get_bool, get_int, get_list

logger = logging.getLogger("skyup.rate_limit")

SUBMISSION_PATHS = ("/add-users", "/add-contact", "/resume")


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class ScopedRule:
    name: str
    rule: RateLimitRule
    path_prefixes: Tuple[str, ...] = ()
    methods: Tuple[str, ...] = ()

    def applies(self, method: str, path: str) -> bool:
        if self.methods and method not in self.methods:
            return False
        if self.path_prefixes and not path.startswith(self.path_prefixes):
            return False
        return True


@dataclass(frozen=True)
class RateLimitConfig:
    enabled: bool
    rules: Tuple[ScopedRule, ...]
    max_cache_entries: int
    trusted_proxy_count: int
    trusted_proxy_ips: Tuple[str, ...]

    def rule(self, name: str) -> Optional[RateLimitRule]:
        for scoped in self.rules:
            if scoped.name == name:
                return scoped.rule
        return None


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_epoch: int
    limit: int


def _env_rule(prefix: str, default_limit: int, default_window: int) -> RateLimitRule:
    return RateLimitRule(
        limit=get_int(f"{prefix}_PER_IP", default_limit),
        window_seconds=get_int(f"{prefix}_WINDOW_SECONDS", default_window),
    )


def load_rate_limit_config_from_env() -> RateLimitConfig:
    rules = (
        ScopedRule("global_ip", _env_rule("RATE_LIMIT_GLOBAL", 120, 60)),
        ScopedRule("auth_ip", _env_rule("RATE_LIMIT_AUTH", 10, 60), path_prefixes=("/api/auth",)),
        ScopedRule(
            "submission_ip",
            _env_rule("RATE_LIMIT_SUBMIT", 20, 3600),
            path_prefixes=SUBMISSION_PATHS,
            methods=("POST",),
        ),
    )
    return RateLimitConfig(
        enabled=get_bool("RATE_LIMIT_ENABLED", True),
        rules=rules,
        max_cache_entries=get_int("RATE_LIMIT_MAX_CACHE_ENTRIES", 10000),
        trusted_proxy_count=get_int("RATE_LIMIT_TRUSTED_PROXY_COUNT", 0),
        trusted_proxy_ips=get_list("RATE_LIMIT_TRUSTED_PROXY_IPS"),
    )


class InMemoryRateLimiter:
    """Fixed-window counters.

    Once the table is over ``max_entries``, ended windows are swept, at most
    once per rule window so a full table does not make every request scan it.
    """

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.time):
        self._lock = asyncio.Lock()
        self._windows: Dict[str, Tuple[int, int]] = {}
        self._max_entries = max_entries
        self._clock = clock
        self._last_sweep = 0.0

    async def allow(self, key: str, rule: RateLimitRule) -> RateLimitResult:
        now = self._clock()
        window_end = (int(now) // rule.window_seconds + 1) * rule.window_seconds

        async with self._lock:
            end, count = self._windows.get(key, (window_end, 0))
            if end <= now:
                end, count = window_end, 0
            count += 1
            self._windows[key] = (end, count)
            if (
                len(self._windows) > self._max_entries
                and now - self._last_sweep > rule.window_seconds
            ):
                self._evict_expired(now)
                self._last_sweep = now

        return RateLimitResult(
            allowed=count <= rule.limit,
            remaining=max(0, rule.limit - count),
            reset_epoch=end,
            limit=rule.limit,
        )

    def _evict_expired(self, now: float) -> None:
        for key in [key for key, (end, _) in self._windows.items() if end <= now]:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)


def forwarded_client(forwarded_for: str, trusted_proxy_count: int) -> Optional[str]:
    """Pick the client from ``X-Forwarded-For``.

    With ``n`` trusted proxies the client is the n-th address from the right;
    anything further left was supplied by the client and can be forged.
    """
    ips = [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]
    if not ips:
        return None
    if trusted_proxy_count > 0:
        return ips[max(0, len(ips) - trusted_proxy_count)]
    return ips[0]


def client_ip(scope, headers: Dict[str, str], config: RateLimitConfig) -> str:
    client = scope.get("client")
    peer = client[0] if client else ""

    trusted = config.trusted_proxy_count > 0 or (bool(peer) and peer in config.trusted_proxy_ips)
    if trusted:
        forwarded_for = headers.get("x-forwarded-for")
        if forwarded_for:
            forwarded = forwarded_client(forwarded_for, config.trusted_proxy_count)
            if forwarded:
                return forwarded
        real_ip = headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    return peer or "unknown"


class RateLimitMiddleware:
    def __init__(self, app, limiter: InMemoryRateLimiter, config: RateLimitConfig):
        self.app = app
        self.limiter = limiter
        self.config = config

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not self.config.enabled or scope["method"] == "OPTIONS":
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        path = scope.get("path", "")
        client = client_ip(scope, normalize_headers(scope.get("headers", [])), self.config)

        for scoped in self.config.rules:
            if not scoped.applies(method, path):
                continue
            result = await self.limiter.allow(f"{scoped.name}:{client}", scoped.rule)
            if not result.allowed:
                logger.warning("Rate limit %s hit by %s on %s", scoped.name, client, path)
                await self._send_429(send, result, scoped.name)
                return

        await self.app(scope, receive, send)

    @staticmethod
    async def _send_429(send, result: RateLimitResult, limit_type: str) -> None:
        retry_after = max(0, result.reset_epoch - int(time.time()))
        await send_json(
            send,
            429,
            {
                "ok": False,
                "code": "RATE_LIMIT_EXCEEDED",
                "message": "Too many requests",
                "details": {
                    "limit_type": limit_type,
                    "limit": result.limit,
                    "reset_epoch": result.reset_epoch,
                    "retry_after_seconds": retry_after,
                },
            },
            headers=[
                ("retry-after", str(retry_after)),
                ("x-ratelimit-limit", str(result.limit)),
                ("x-ratelimit-remaining", str(result.remaining)),
                ("x-ratelimit-reset", str(result.reset_epoch)),
            ],
        )
