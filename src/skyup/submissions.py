"""Job application and contact form storage."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from skyup.config import settings
from skyup.errors import persistence_failure
from skyup.models import (
    ContactRecord,
    ContactRequest,
    JobApplicationRecord,
    JobApplicationRequest,
)
from skyup.utils import isoformat_utc, utc_now

logger = logging.getLogger(__name__)

JOB_APPLICATION_COLUMNS = (
    "uuid",
    "job_title",
    "first_name",
    "last_name",
    "email",
    "mobile",
    "street_address",
    "city",
    "state",
    "zipcode",
    "country",
    "linkedin",
    "portfolio",
    "resume_url",
    "resume_public_id",
    "created_at",
)

CONTACT_COLUMNS = ("uuid", "name", "email", "mobile", "subject", "message", "created_at")


def _insert(db, table: str, columns: tuple[str, ...], record: dict[str, Any], operation: str) -> None:
    column_sql = ", ".join(columns)
    value_sql = ", ".join(f":{column}" for column in columns)
    try:
        db.execute(text(f"INSERT INTO {table} ({column_sql}) VALUES ({value_sql})"), record)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to store %s row", table)
        raise persistence_failure(operation) from None


def _select_newest(db, table: str, limit: int, offset: int, operation: str) -> tuple[list[dict[str, Any]], int]:
    """One page of rows, newest first, and the table total."""
    limit = min(limit, settings.list_max_limit)
    try:
        rows = db.execute(
            text(
                f"""
                SELECT * FROM {table}
                ORDER BY created_at DESC
                LIMIT :limit OFFSET :offset
                """
            ),
            {"limit": limit, "offset": offset},
        ).mappings().all()
        total = db.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
    except SQLAlchemyError:
        logger.exception("Failed to read %s", table)
        raise persistence_failure(operation) from None
    return [dict(row) for row in rows], int(total)


def create_job_application(db, request: JobApplicationRequest) -> JobApplicationRecord:
    record = request.model_dump(by_alias=False)
    record["uuid"] = str(uuid.uuid4())
    record["created_at"] = isoformat_utc(utc_now())
    _insert(db, "job_applications", JOB_APPLICATION_COLUMNS, record, "create_job_application")
    logger.info("Job application stored for %r", request.job_title)
    return JobApplicationRecord.model_validate(record)


def list_job_applications(db, limit: int, offset: int = 0) -> tuple[list[JobApplicationRecord], int]:
    rows, total = _select_newest(db, "job_applications", limit, offset, "list_job_applications")
    return [JobApplicationRecord.model_validate(row) for row in rows], total


def create_contact(db, request: ContactRequest) -> ContactRecord:
    record = request.model_dump()
    record["uuid"] = str(uuid.uuid4())
    record["created_at"] = isoformat_utc(utc_now())
    _insert(db, "contacts", CONTACT_COLUMNS, record, "create_contact")
    logger.info("Contact message stored")
    return ContactRecord.model_validate(record)


def list_contacts(db, limit: int, offset: int = 0) -> tuple[list[ContactRecord], int]:
    rows, total = _select_newest(db, "contacts", limit, offset, "list_contacts")
    return [ContactRecord.model_validate(row) for row in rows], total
