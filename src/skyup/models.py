"""Pydantic models for the SkyUp backend."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# Auth


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=1024)


class UserInfo(BaseModel):
    email: str
    role: str


class LoginResponse(BaseModel):
    ok: bool = Field(default=True)
    token: str
    token_type: str = Field(default="Bearer")
    expires_in: int
    user: UserInfo


class VerifyResponse(BaseModel):
    ok: bool = Field(default=True)
    valid: bool = Field(default=True)
    user: UserInfo


class LogoutResponse(BaseModel):
    ok: bool = Field(default=True)
    message: str = Field(default="Logged out")
    user: UserInfo


# Receipts


class ReceiptCreateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_name: str = Field(..., min_length=1, max_length=300)
    client_email: Optional[str] = Field(default=None, max_length=320)
    client_phone: Optional[str] = Field(default=None, max_length=40)
    client_address: Optional[str] = Field(default=None, max_length=2000)
    client_gstin: Optional[str] = Field(default=None, max_length=20)
    description: Optional[str] = Field(default=None, max_length=5000)
    amount: float = Field(..., ge=0)
    cgst: float = Field(default=0, ge=0)
    sgst: float = Field(default=0, ge=0)
    igst: float = Field(default=0, ge=0)
    total: Optional[float] = Field(default=None, ge=0)
    payment_mode: Optional[str] = Field(default=None, max_length=100)

    @field_validator(
        "client_email",
        "client_phone",
        "client_address",
        "client_gstin",
        "description",
        "payment_mode",
        mode="before",
    )
    @classmethod
    def blank_optional_fields(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def computed_total(self) -> float:
        if self.total is not None:
            return self.total
        return round(self.amount + self.cgst + self.sgst + self.igst, 2)


class ReceiptRecord(BaseModel):
    uuid: str
    invoice_number: str
    serial: int
    financial_year: str
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    client_gstin: Optional[str] = None
    description: Optional[str] = None
    amount: float
    cgst: float = 0
    sgst: float = 0
    igst: float = 0
    total: float
    payment_mode: Optional[str] = None
    created_by: str
    created_at: datetime


class ReceiptCreateResponse(BaseModel):
    ok: bool = Field(default=True)
    message: str = Field(default="Receipt created")
    invoice_no: str
    receipt: ReceiptRecord


class ReceiptListResponse(BaseModel):
    ok: bool = Field(default=True)
    count: int
    limit: int
    offset: int
    receipts: list[ReceiptRecord]


class LastInvoiceResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_serial: int = Field(..., ge=0, alias="lastSerial")
    next_invoice_no: str = Field(..., alias="nextInvoiceNo")


# Submissions


class JobApplicationRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    job_title: Optional[str] = Field(default=None, max_length=300, alias="jobTitle")
    first_name: str = Field(..., min_length=1, max_length=200)
    last_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    mobile: Optional[int] = Field(default=None, ge=0)
    street_address: Optional[str] = Field(default=None, max_length=500)
    city: Optional[str] = Field(default=None, max_length=200)
    state: Optional[str] = Field(default=None, max_length=200)
    zipcode: Optional[int] = Field(default=None, ge=0)
    country: Optional[str] = Field(default=None, max_length=200)
    linkedin: Optional[str] = Field(default=None, max_length=2048)
    portfolio: Optional[str] = Field(default=None, max_length=2048)
    resume_url: Optional[str] = Field(default=None, max_length=2048, alias="resumeUrl")
    resume_public_id: Optional[str] = Field(default=None, max_length=500, alias="resumePublicId")

    @field_validator(
        "job_title",
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
        mode="before",
    )
    @classmethod
    def blank_optional_fields(cls, v: Any) -> Any:
        return _blank_to_none(v)


class JobApplicationRecord(JobApplicationRequest):
    uuid: str
    created_at: datetime


class JobApplicationListResponse(BaseModel):
    ok: bool = Field(default=True)
    count: int
    limit: int
    offset: int
    applications: list[JobApplicationRecord]


class ContactRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=300)
    email: str = Field(..., min_length=3, max_length=320)
    mobile: Optional[int] = Field(default=None, ge=0)
    subject: Optional[str] = Field(default=None, max_length=500)
    message: str = Field(..., min_length=1, max_length=10000)

    @field_validator("mobile", "subject", mode="before")
    @classmethod
    def blank_optional_fields(cls, v: Any) -> Any:
        return _blank_to_none(v)


class ContactRecord(ContactRequest):
    uuid: str
    created_at: datetime


class ContactListResponse(BaseModel):
    ok: bool = Field(default=True)
    count: int
    limit: int
    offset: int
    contacts: list[ContactRecord]


class SubmissionResponse(BaseModel):
    ok: bool = Field(default=True)
    message: str


class ResumeUploadResponse(BaseModel):
    ok: bool = Field(default=True)
    message: str = Field(default="Uploaded successfully")
    url: str
    public_id: str
    resource_type: Optional[str] = None
    bytes: Optional[int] = None
    format: Optional[str] = None
    originalname: str


# Errors


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ok: bool = Field(default=False)
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
