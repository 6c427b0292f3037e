"""Typed readers for plain environment variables used by the middleware configs."""

from __future__ import annotations

import os
from typing import Optional


def get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def get_str(env_name: str, default: Optional[str]) -> Optional[str]:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value


def get_list(env_name: str) -> tuple[str, ...]:
    return tuple(
        item.strip()
        for item in os.environ.get(env_name, "").split(",")
        if item.strip()
    )
