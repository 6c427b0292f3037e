"""SkyUp error types and helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(eq=False)
class SkyupError(Exception):
    status_code: int
    code: str
    message: str
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


def invalid_credentials() -> SkyupError:
    # Same error for unknown email and bad password.
    return SkyupError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid email or password")


def missing_token() -> SkyupError:
    return SkyupError(status_code=401, code="MISSING_TOKEN", message="Access token required")


def invalid_token(reason: str = "Invalid or expired token") -> SkyupError:
    return SkyupError(status_code=403, code="INVALID_TOKEN", message=reason)


def server_misconfigured(message: str) -> SkyupError:
    return SkyupError(status_code=503, code="SERVER_MISCONFIGURED", message=message)


def corrupt_sequence_state(invoice_number: Any) -> SkyupError:
    return SkyupError(
        status_code=500,
        code="CORRUPT_SEQUENCE_STATE",
        message="Stored invoice number cannot be parsed; refusing to allocate a new one",
        details={"invoice_number": invoice_number},
    )


def invoice_collision() -> SkyupError:
    return SkyupError(
        status_code=409,
        code="INVOICE_NUMBER_COLLISION",
        message="Could not allocate a unique invoice number",
    )


def persistence_failure(operation: str) -> SkyupError:
    return SkyupError(
        status_code=500,
        code="PERSISTENCE_FAILURE",
        message="Failed",
        details={"operation": operation},
    )


def file_too_large(max_bytes: int, size_bytes: int) -> SkyupError:
    return SkyupError(
        status_code=413,
        code="FILE_TOO_LARGE",
        message="File exceeds maximum size",
        details={"max_bytes": max_bytes, "size_bytes": size_bytes},
    )


def upload_failed(reason: str) -> SkyupError:
    return SkyupError(
        status_code=500,
        code="UPLOAD_FAILED",
        message="Upload failed",
        details={"error": reason},
    )
