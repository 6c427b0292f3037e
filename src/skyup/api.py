"""SkyUp API routes."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from starlette.concurrency import run_in_threadpool

from skyup.auth import require_principal
from skyup.config import settings
from skyup.db import get_db_session
from skyup.errors import SkyupError
from skyup.models import (
    ContactListResponse,
    ContactRequest,
    JobApplicationListResponse,
    JobApplicationRequest,
    LastInvoiceResponse,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    ReceiptCreateRequest,
    ReceiptCreateResponse,
    ReceiptListResponse,
    ResumeUploadResponse,
    SubmissionResponse,
    UserInfo,
    VerifyResponse,
)
from skyup.receipts import create_receipt, last_invoice_serial, list_receipts, preview_next_invoice_number
from skyup.resumes import upload_resume
from skyup.submissions import (
    create_contact,
    create_job_application,
    list_contacts,
    list_job_applications,
)
from skyup.tokens import Principal, issue_token

logger = logging.getLogger(__name__)

router = APIRouter()
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


def _user(principal: Principal) -> UserInfo:
    return UserInfo(email=principal.email, role=principal.role)


# Auth


@auth_router.post("/login", response_model=LoginResponse)
def auth_login(request: LoginRequest):
    access = issue_token(request.email, request.password)
    return LoginResponse(
        token=access.token,
        expires_in=access.expires_in,
        user=_user(access.principal),
    )


@auth_router.get("/verify", response_model=VerifyResponse)
def auth_verify(principal: Principal = Depends(require_principal)):
    return VerifyResponse(user=_user(principal))


@auth_router.post("/logout", response_model=LogoutResponse)
def auth_logout(principal: Principal = Depends(require_principal)):
    # Tokens are stateless; the client discards its copy.
    logger.info("Admin %s logged out", principal.email)
    return LogoutResponse(user=_user(principal))


# Receipts


@router.post("/receipt", response_model=ReceiptCreateResponse, status_code=status.HTTP_201_CREATED)
def receipt_create(
    request: ReceiptCreateRequest,
    principal: Principal = Depends(require_principal),
    db=Depends(get_db_session),
):
    record = create_receipt(db, request, principal)
    return ReceiptCreateResponse(invoice_no=record.invoice_number, receipt=record)


@router.get("/receipts", response_model=ReceiptListResponse)
def receipts_list(
    limit: int = Query(default=settings.list_default_limit, ge=1, le=settings.list_max_limit),
    offset: int = Query(default=0, ge=0),
    _principal: Principal = Depends(require_principal),
    db=Depends(get_db_session),
):
    receipts, count = list_receipts(db, limit=limit, offset=offset)
    return ReceiptListResponse(count=count, limit=limit, offset=offset, receipts=receipts)


@router.get("/api/last-invoice", response_model=LastInvoiceResponse)
def last_invoice(
    _principal: Principal = Depends(require_principal),
    db=Depends(get_db_session),
):
    return LastInvoiceResponse(
        last_serial=last_invoice_serial(db),
        next_invoice_no=preview_next_invoice_number(db),
    )


# Resume relay


@router.post("/resume", response_model=ResumeUploadResponse)
async def resume_upload(file: Optional[UploadFile] = File(None)):
    if file is None:
        raise SkyupError(status_code=400, code="NO_FILE", message="No file uploaded")
    try:
        # One byte past the limit is enough to reject oversized files.
        content = await file.read(settings.resume_max_bytes + 1)
        return await run_in_threadpool(upload_resume, content, file.filename, file.content_type)
    finally:
        await file.close()


# Submissions


@router.post("/add-users", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
def job_application_create(request: JobApplicationRequest, db=Depends(get_db_session)):
    create_job_application(db, request)
    return SubmissionResponse(message="Applied successfully")


@router.get("/users", response_model=JobApplicationListResponse)
def job_applications_list(
    limit: int = Query(default=settings.list_default_limit, ge=1, le=settings.list_max_limit),
    offset: int = Query(default=0, ge=0),
    _principal: Principal = Depends(require_principal),
    db=Depends(get_db_session),
):
    applications, count = list_job_applications(db, limit=limit, offset=offset)
    return JobApplicationListResponse(count=count, limit=limit, offset=offset, applications=applications)


@router.post("/add-contact", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
def contact_create(request: ContactRequest, db=Depends(get_db_session)):
    create_contact(db, request)
    return SubmissionResponse(message="Submitted successfully")


@router.get("/contacts", response_model=ContactListResponse)
def contacts_list(
    limit: int = Query(default=settings.list_default_limit, ge=1, le=settings.list_max_limit),
    offset: int = Query(default=0, ge=0),
    _principal: Principal = Depends(require_principal),
    db=Depends(get_db_session),
):
    contacts, count = list_contacts(db, limit=limit, offset=offset)
    return ContactListResponse(count=count, limit=limit, offset=offset, contacts=contacts)


@router.get("/health")
def health():
    return {"ok": True, "service": settings.service_name}
