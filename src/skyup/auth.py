"""
Authentication for the SkyUp REST API.

Protected endpoints depend on ``require_principal``, which reads an
``Authorization: Bearer <token>`` header and verifies the admin token.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header

from skyup.tokens import Principal, verify_token


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an Authorization header, if it uses the Bearer scheme."""
    if not authorization:
        return None
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


def require_principal(authorization: Optional[str] = Header(None)) -> Principal:
    """Verify the bearer token for protected endpoints."""
    return verify_token(bearer_token(authorization))
