"""
Resume relay to Cloudinary.

Uploaded resumes are not stored locally. They are checked for type and size,
then streamed to Cloudinary under ``settings.resume_folder`` and the hosted
URL is returned to the website, which later submits it with the application.
"""

from __future__ import annotations

import io
import logging
import re
from typing import Any, Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from skyup.config import Settings, settings
from skyup.errors import SkyupError, file_too_large, server_misconfigured, upload_failed
from skyup.models import ResumeUploadResponse
from skyup.utils import epoch_millis

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def safe_filename(originalname: str) -> str:
    return _WHITESPACE.sub("-", originalname)


def build_public_id(originalname: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = epoch_millis()
    return f"{now_ms}-{safe_filename(originalname)}"


def configure_cloudinary(config: Settings = settings) -> None:
    if not (config.cloudinary_cloud_name and config.cloudinary_api_key):
        logger.error(
            "Cloudinary not configured. Set SKYUP_CLOUDINARY_CLOUD_NAME, "
            "SKYUP_CLOUDINARY_API_KEY and SKYUP_CLOUDINARY_API_SECRET."
        )
        raise server_misconfigured("Server misconfigured: resume storage not available")
    cloudinary.config(
        cloud_name=config.cloudinary_cloud_name,
        api_key=config.cloudinary_api_key,
        api_secret=config.cloudinary_api_secret.get_secret_value(),
        secure=True,
    )


def validate_resume(originalname: Optional[str], content_type: Optional[str], size: int) -> None:
    if not originalname:
        raise SkyupError(status_code=400, code="NO_FILE", message="No file uploaded")
    if content_type not in settings.resume_allowed_types:
        raise SkyupError(
            status_code=400,
            code="FILE_TYPE_NOT_ALLOWED",
            message="File type not allowed",
            details={"content_type": content_type, "allowed": list(settings.resume_allowed_types)},
        )
    if size > settings.resume_max_bytes:
        raise file_too_large(settings.resume_max_bytes, size)
    if size == 0:
        raise SkyupError(status_code=400, code="NO_FILE", message="No file uploaded")


def upload_resume(content: bytes, originalname: str, content_type: Optional[str]) -> ResumeUploadResponse:
    """Validate and relay a resume; blocking, call from a worker thread."""
    validate_resume(originalname, content_type, len(content))
    configure_cloudinary(settings)

    public_id = build_public_id(originalname)
    try:
        result: dict[str, Any] = cloudinary.uploader.upload(
            io.BytesIO(content),
            folder=settings.resume_folder,
            resource_type="auto",
            public_id=public_id,
        )
    except (CloudinaryError, OSError) as exc:
        logger.error("Resume upload error: %s", exc)
        raise upload_failed(str(exc)) from exc

    logger.info("Resume relayed as %s (%d bytes)", result.get("public_id"), len(content))
    return ResumeUploadResponse(
        url=result["secure_url"],
        public_id=result["public_id"],
        resource_type=result.get("resource_type"),
        bytes=result.get("bytes"),
        format=result.get("format"),
        originalname=originalname,
    )
