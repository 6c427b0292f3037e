"""Receipt persistence and invoice number allocation."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from skyup.config import settings
from skyup.errors import SkyupError, invoice_collision, persistence_failure
from skyup.invoices import financial_year_label, format_invoice_number, last_serial, next_invoice_number
from skyup.models import ReceiptCreateRequest, ReceiptRecord
from skyup.tokens import Principal
from skyup.utils import isoformat_utc, normalize_datetime, utc_now

logger = logging.getLogger(__name__)

# One retry covers a concurrent first-time seed of the sequence row.
ALLOCATION_ATTEMPTS = 2


def _invoice_zone() -> ZoneInfo:
    return ZoneInfo(settings.invoice_timezone)


def _receipt_row_to_model(row: dict[str, Any]) -> ReceiptRecord:
    return ReceiptRecord.model_validate(dict(row))


def latest_receipt(db) -> Optional[dict[str, Any]]:
    """Most recently created receipt row, or None."""
    query = text(
        """
        SELECT * FROM receipts
        ORDER BY created_at DESC, serial DESC
        LIMIT 1
        """
    )
    row = db.execute(query).mappings().first()
    return dict(row) if row else None


def last_invoice_serial(db) -> int:
    try:
        row = latest_receipt(db)
    except SQLAlchemyError:
        logger.exception("Failed to read latest receipt")
        raise persistence_failure("last_invoice_serial") from None
    return last_serial(row)


def preview_next_invoice_number(db, now: Optional[datetime] = None) -> str:
    """Invoice number the next receipt would get, without reserving it."""
    now = normalize_datetime(now) if now else utc_now()
    try:
        row = latest_receipt(db)
    except SQLAlchemyError:
        logger.exception("Failed to read latest receipt")
        raise persistence_failure("preview_next_invoice_number") from None
    return next_invoice_number(row, now.astimezone(_invoice_zone()), prefix=settings.invoice_prefix)


def _allocate_serial(db, now: datetime) -> int:
    """Increment the sequence row in the caller's transaction and return the new serial.

    The row is seeded from the latest stored receipt the first time, so an
    existing receipts table keeps its numbering.
    """
    name = settings.invoice_sequence_name
    params = {"name": name, "updated_at": isoformat_utc(now)}

    result = db.execute(
        text(
            """
            UPDATE invoice_sequences
            SET last_serial = last_serial + 1, updated_at = :updated_at
            WHERE name = :name
            """
        ),
        params,
    )
    if result.rowcount == 0:
        serial = last_serial(latest_receipt(db)) + 1
        db.execute(
            text(
                """
                INSERT INTO invoice_sequences (name, last_serial, updated_at)
                VALUES (:name, :last_serial, :updated_at)
                """
            ),
            {**params, "last_serial": serial},
        )
        logger.info("Seeded invoice sequence %s at serial %d", name, serial)
        return serial

    row = db.execute(
        text("SELECT last_serial FROM invoice_sequences WHERE name = :name"),
        {"name": name},
    ).first()
    return int(row[0])


def _insert_receipt(db, record: dict[str, Any]) -> None:
    insert_query = text(
        """
        INSERT INTO receipts (
            uuid,
            invoice_number,
            serial,
            financial_year,
            client_name,
            client_email,
            client_phone,
            client_address,
            client_gstin,
            description,
            amount,
            cgst,
            sgst,
            igst,
            total,
            payment_mode,
            created_by,
            created_at
        ) VALUES (
            :uuid,
            :invoice_number,
            :serial,
            :financial_year,
            :client_name,
            :client_email,
            :client_phone,
            :client_address,
            :client_gstin,
            :description,
            :amount,
            :cgst,
            :sgst,
            :igst,
            :total,
            :payment_mode,
            :created_by,
            :created_at
        )
        """
    )
    db.execute(insert_query, record)


def create_receipt(
    db,
    request: ReceiptCreateRequest,
    principal: Principal,
    now: Optional[datetime] = None,
) -> ReceiptRecord:
    """Allocate the next invoice number and store the receipt atomically."""
    now = normalize_datetime(now) if now else utc_now()
    fy_label = financial_year_label(now.astimezone(_invoice_zone()))

    for attempt in range(1, ALLOCATION_ATTEMPTS + 1):
        try:
            serial = _allocate_serial(db, now)
            record = {
                "uuid": str(uuid.uuid4()),
                "invoice_number": format_invoice_number(settings.invoice_prefix, serial, fy_label),
                "serial": serial,
                "financial_year": fy_label,
                "client_name": request.client_name,
                "client_email": request.client_email,
                "client_phone": request.client_phone,
                "client_address": request.client_address,
                "client_gstin": request.client_gstin,
                "description": request.description,
                "amount": request.amount,
                "cgst": request.cgst,
                "sgst": request.sgst,
                "igst": request.igst,
                "total": request.computed_total(),
                "payment_mode": request.payment_mode,
                "created_by": principal.email,
                "created_at": isoformat_utc(now),
            }
            _insert_receipt(db, record)
            db.commit()
        except IntegrityError:
            db.rollback()
            if attempt < ALLOCATION_ATTEMPTS:
                logger.warning("Invoice allocation collided; retrying")
                continue
            logger.exception("Invoice allocation collided repeatedly")
            raise invoice_collision() from None
        except SkyupError:
            db.rollback()
            raise
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to store receipt")
            raise persistence_failure("create_receipt") from None

        logger.info("Receipt %s created by %s", record["invoice_number"], principal.email)
        return _receipt_row_to_model(record)


def list_receipts(db, limit: int, offset: int = 0) -> tuple[list[ReceiptRecord], int]:
    limit = min(limit, settings.list_max_limit)
    try:
        rows = db.execute(
            text(
                """
                SELECT * FROM receipts
                ORDER BY created_at DESC, serial DESC
                LIMIT :limit OFFSET :offset
                """
            ),
            {"limit": limit, "offset": offset},
        ).mappings().all()
        count = db.execute(text("SELECT COUNT(*) AS count FROM receipts")).mappings().first()["count"]
    except SQLAlchemyError:
        logger.exception("Failed to list receipts")
        raise persistence_failure("list_receipts") from None
    return [_receipt_row_to_model(dict(row)) for row in rows], int(count)
