"""Small helpers shared by the raw ASGI middlewares."""

from __future__ import annotations

import json
from typing import Any, Iterable


def normalize_headers(headers: Iterable) -> dict[str, str]:
    """Lower-cased header names to values; later duplicates win."""
    normalized = {}
    for name, value in headers:
        if isinstance(name, bytes):
            name = name.decode("latin1")
        if isinstance(value, bytes):
            value = value.decode("latin1")
        normalized[str(name).lower()] = str(value)
    return normalized


async def send_json(send, status: int, payload: dict[str, Any], headers: Iterable[tuple[str, str]] = ()) -> None:
    """Send a complete JSON response without going through the app."""
    body = json.dumps(payload).encode("utf-8")
    raw_headers = [
        (b"content-type", b"application/json"),
        (b"content-length", str(len(body)).encode("latin1")),
    ]
    raw_headers.extend((name.encode("latin1"), value.encode("latin1")) for name, value in headers)
    await send({"type": "http.response.start", "status": status, "headers": raw_headers})
    await send({"type": "http.response.body", "body": body})
