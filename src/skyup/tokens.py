"""
Admin access tokens.

A token is ``base64url(claims_json) + "." + base64url(hmac_sha256(secret, claims_b64))``.
Claims are ``email``, ``role``, ``sub``, ``iat`` and ``exp`` (epoch seconds).
There is no revocation list: rotating ``SKYUP_TOKEN_SECRET`` invalidates
every outstanding token at once.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from skyup.config import Settings, settings, skyup_clock
from skyup.errors import invalid_credentials, invalid_token, missing_token, server_misconfigured

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class AdminIdentity:
    email: str
    role: str
    subject_id: str


@dataclass(frozen=True)
class Principal:
    """Identity recovered from a verified token."""

    email: str
    role: str
    subject_id: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class AccessToken:
    token: str
    principal: Principal

    @property
    def expires_in(self) -> int:
        return self.principal.expires_at - self.principal.issued_at


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("ascii"))


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class AdminDirectory:
    """The single configured admin identity.

    Replace with a user-store backed directory to support more than one
    account; callers only rely on ``authenticate``.
    """

    def __init__(self, email: str, password: str, subject_id: str):
        self._email = _normalize_email(email)
        self._password = password
        self._subject_id = subject_id

    @classmethod
    def from_settings(cls, config: Settings) -> "AdminDirectory":
        return cls(config.admin_email, config.admin_password_value, config.admin_subject_id)

    @property
    def configured(self) -> bool:
        return bool(self._email and self._password)

    def authenticate(self, email: Optional[str], password: Optional[str]) -> Optional[AdminIdentity]:
        # Both comparisons always run so timing does not reveal which field was wrong.
        email_ok = secrets.compare_digest(
            _normalize_email(email).encode("utf-8"), self._email.encode("utf-8")
        )
        password_ok = secrets.compare_digest(
            (password or "").encode("utf-8"), self._password.encode("utf-8")
        )
        if not (email_ok and password_ok):
            return None
        return AdminIdentity(email=self._email, role=ADMIN_ROLE, subject_id=self._subject_id)


class TokenService:
    """Issues and verifies admin bearer tokens."""

    def __init__(
        self,
        secret: str,
        directory: AdminDirectory,
        ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = skyup_clock,
    ):
        self._secret = secret
        self._directory = directory
        self._ttl = ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "TokenService":
        return cls(
            secret=config.token_secret_value,
            directory=AdminDirectory.from_settings(config),
            ttl=timedelta(seconds=config.token_ttl_seconds),
        )

    def _require_secret(self) -> None:
        if not self._secret:
            logger.error(
                "SECURITY VIOLATION: token_secret not configured. Set SKYUP_TOKEN_SECRET."
            )
            raise server_misconfigured("Server misconfigured: authentication not properly initialized")

    def _signature(self, payload_b64: str) -> bytes:
        return hmac.new(
            self._secret.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256
        ).digest()

    def sign(self, identity: AdminIdentity, ttl: Optional[timedelta] = None) -> AccessToken:
        self._require_secret()
        issued_at = int(self._clock().timestamp())
        lifetime = self._ttl if ttl is None else ttl
        expires_at = issued_at + int(lifetime.total_seconds())
        claims = {
            "email": identity.email,
            "role": identity.role,
            "sub": identity.subject_id,
            "iat": issued_at,
            "exp": expires_at,
        }
        payload_b64 = _b64url_encode(
            json.dumps(claims, separators=(",", ":"), sort_keys=True).encode("utf-8")
        )
        token = f"{payload_b64}.{_b64url_encode(self._signature(payload_b64))}"
        principal = Principal(
            email=identity.email,
            role=identity.role,
            subject_id=identity.subject_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        return AccessToken(token=token, principal=principal)

    def issue_token(
        self,
        email: Optional[str],
        password: Optional[str],
        ttl: Optional[timedelta] = None,
    ) -> AccessToken:
        if not self._directory.configured:
            logger.error(
                "SECURITY VIOLATION: admin credentials not configured. "
                "Set SKYUP_ADMIN_EMAIL and SKYUP_ADMIN_PASSWORD."
            )
            raise server_misconfigured("Server misconfigured: admin login not available")
        self._require_secret()

        identity = self._directory.authenticate(email, password)
        if identity is None:
            logger.warning("Admin login rejected")
            raise invalid_credentials()

        access = self.sign(identity, ttl=ttl)
        logger.info("Admin login succeeded for %s", identity.email)
        return access

    def verify_token(self, token: Optional[str]) -> Principal:
        if not token:
            raise missing_token()
        self._require_secret()

        if not token.isascii():
            raise invalid_token()
        parts = token.split(".")
        if len(parts) != 2 or not all(parts):
            raise invalid_token()
        payload_b64, signature_b64 = parts

        try:
            provided = _b64url_decode(signature_b64)
        except (binascii.Error, ValueError):
            raise invalid_token() from None
        if not hmac.compare_digest(self._signature(payload_b64), provided):
            raise invalid_token()

        try:
            claims: Any = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
        except (binascii.Error, ValueError):
            raise invalid_token() from None
        if not isinstance(claims, dict):
            raise invalid_token()

        email = claims.get("email")
        role = claims.get("role")
        subject_id = claims.get("sub")
        issued_at = claims.get("iat")
        expires_at = claims.get("exp")
        if not isinstance(email, str) or not isinstance(subject_id, str):
            raise invalid_token()
        if role != ADMIN_ROLE:
            raise invalid_token()
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise invalid_token()

        if int(self._clock().timestamp()) >= expires_at:
            raise invalid_token("Token expired")

        return Principal(
            email=email,
            role=role,
            subject_id=subject_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )


def issue_token(email: Optional[str], password: Optional[str]) -> AccessToken:
    """Authenticate the admin and issue a token using current settings."""
    return TokenService.from_settings(settings).issue_token(email, password)


def verify_token(token: Optional[str]) -> Principal:
    """Verify a bearer token using current settings."""
    return TokenService.from_settings(settings).verify_token(token)
