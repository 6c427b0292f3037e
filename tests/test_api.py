from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import cloudinary.uploader
import pytest

from skyup.config import settings
from skyup.invoices import financial_year_label

PDF = b"%PDF-1.4 resume"


def _current_fy() -> str:
    return financial_year_label(datetime.now(ZoneInfo("Asia/Kolkata")))


def _receipt_payload(client_name: str = "Acme Traders"):
    return {
        "client_name": client_name,
        "client_email": "billing@acme.test",
        "description": "SEO retainer",
        "amount": 5000,
        "cgst": 450,
        "sgst": 450,
        "payment_mode": "UPI",
    }


def _application_payload(first_name: str = "Asha"):
    return {
        "jobTitle": "Frontend Developer",
        "first_name": first_name,
        "last_name": "Rao",
        "email": "asha@example.test",
        "mobile": "9876543210",
        "street_address": "12 MG Road",
        "city": "Pune",
        "state": "MH",
        "zipcode": "411001",
        "country": "India",
        "linkedin": "https://linkedin.com/in/asha",
        "resumeUrl": "https://res.cloudinary.com/skyup/raw/upload/asha.pdf",
    }


@pytest.fixture()
def fake_upload(monkeypatch):
    calls = []

    def upload(file, **options):
        calls.append(options)
        return {
            "secure_url": f"https://res.cloudinary.com/skyup-test/raw/upload/{options['public_id']}",
            "public_id": f"{options['folder']}/{options['public_id']}",
            "resource_type": "raw",
            "bytes": len(file.read()),
            "format": "pdf",
        }

    monkeypatch.setattr(cloudinary.uploader, "upload", upload)
    monkeypatch.setattr(settings, "cloudinary_cloud_name", "skyup-test")
    monkeypatch.setattr(settings, "cloudinary_api_key", "123456")
    return calls


def test_health(api_client):
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_login_returns_token(api_client):
    response = api_client.post(
        "/api/auth/login",
        json={"email": "admin@skyup.test", "password": "correct-horse"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["token_type"] == "Bearer"
    assert body["expires_in"] == 86400
    assert body["user"] == {"email": "admin@skyup.test", "role": "admin"}


def test_login_rejects_bad_credentials(api_client):
    wrong_password = api_client.post(
        "/api/auth/login",
        json={"email": "admin@skyup.test", "password": "nope"},
    )
    unknown_email = api_client.post(
        "/api/auth/login",
        json={"email": "who@skyup.test", "password": "correct-horse"},
    )

    assert wrong_password.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["code"] == "INVALID_CREDENTIALS"


def test_login_requires_both_fields(api_client):
    response = api_client.post("/api/auth/login", json={"email": "admin@skyup.test"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_verify_and_logout(api_client, admin_headers):
    verify = api_client.get("/api/auth/verify", headers=admin_headers)
    assert verify.status_code == 200
    assert verify.json()["valid"] is True
    assert verify.json()["user"]["email"] == "admin@skyup.test"

    logout = api_client.post("/api/auth/logout", headers=admin_headers)
    assert logout.status_code == 200
    assert logout.json()["ok"] is True


def test_protected_routes_require_token(api_client):
    for method, path in [
        ("get", "/api/auth/verify"),
        ("get", "/api/last-invoice"),
        ("get", "/receipts"),
        ("get", "/users"),
        ("get", "/contacts"),
    ]:
        response = getattr(api_client, method)(path)
        assert response.status_code == 401, path
        assert response.json()["code"] == "MISSING_TOKEN"

    response = api_client.post("/receipt", json=_receipt_payload())
    assert response.status_code == 401


def test_invalid_token_is_403(api_client):
    response = api_client.get("/api/last-invoice", headers={"Authorization": "Bearer forged.token"})
    assert response.status_code == 403
    assert response.json() == {
        "ok": False,
        "code": "INVALID_TOKEN",
        "message": "Invalid or expired token",
    }


def test_non_ascii_token_is_403(api_client):
    headers = {"Authorization": "Bearer éé.abcd".encode("latin-1")}

    response = api_client.get("/api/auth/verify", headers=headers)

    assert response.status_code == 403
    assert response.json()["code"] == "INVALID_TOKEN"


def test_receipts_are_numbered_sequentially(api_client, admin_headers):
    fy = _current_fy()

    before = api_client.get("/api/last-invoice", headers=admin_headers)
    assert before.status_code == 200
    assert before.json() == {"lastSerial": 0, "nextInvoiceNo": f"SDS/001/{fy}"}

    first = api_client.post("/receipt", json=_receipt_payload(), headers=admin_headers)
    second = api_client.post("/receipt", json=_receipt_payload("Beta Corp"), headers=admin_headers)

    assert first.status_code == 201
    assert first.json()["invoice_no"] == f"SDS/001/{fy}"
    assert first.json()["receipt"]["total"] == 5900
    assert first.json()["receipt"]["created_by"] == "admin@skyup.test"
    assert second.json()["invoice_no"] == f"SDS/002/{fy}"

    after = api_client.get("/api/last-invoice", headers=admin_headers)
    assert after.json() == {"lastSerial": 2, "nextInvoiceNo": f"SDS/003/{fy}"}

    listing = api_client.get("/receipts", headers=admin_headers)
    assert listing.status_code == 200
    assert listing.json()["count"] == 2
    assert [r["client_name"] for r in listing.json()["receipts"]] == ["Beta Corp", "Acme Traders"]


def test_receipt_validation_errors(api_client, admin_headers):
    missing_name = api_client.post("/receipt", json={"amount": 10}, headers=admin_headers)
    negative = api_client.post(
        "/receipt", json={"client_name": "Acme", "amount": -1}, headers=admin_headers
    )

    assert missing_name.status_code == 400
    assert missing_name.json()["code"] == "VALIDATION_ERROR"
    assert negative.status_code == 400

    last = api_client.get("/api/last-invoice", headers=admin_headers)
    assert last.json()["lastSerial"] == 0


def test_list_limit_is_bounded(api_client, admin_headers):
    assert api_client.get("/receipts?limit=0", headers=admin_headers).status_code == 400
    too_many = api_client.get(f"/receipts?limit={settings.list_max_limit + 1}", headers=admin_headers)
    assert too_many.status_code == 400


def test_job_applications(api_client, admin_headers):
    created = api_client.post("/add-users", json=_application_payload())
    assert created.status_code == 201
    assert created.json() == {"ok": True, "message": "Applied successfully"}

    listing = api_client.get("/users", headers=admin_headers)
    assert listing.status_code == 200
    body = listing.json()
    assert body["count"] == 1
    application = body["applications"][0]
    assert application["jobTitle"] == "Frontend Developer"
    assert application["mobile"] == 9876543210
    assert application["resumeUrl"].endswith("asha.pdf")


def test_listing_count_is_table_total(api_client, admin_headers):
    for name in ("Asha", "Bina", "Chitra"):
        assert api_client.post("/add-users", json=_application_payload(name)).status_code == 201
        contact = {"name": name, "email": "x@example.test", "message": "Hello"}
        assert api_client.post("/add-contact", json=contact).status_code == 201

    applications = api_client.get("/users?limit=2", headers=admin_headers).json()
    contacts = api_client.get("/contacts?limit=1&offset=1", headers=admin_headers).json()

    assert (applications["count"], applications["limit"], applications["offset"]) == (3, 2, 0)
    assert len(applications["applications"]) == 2
    assert (contacts["count"], contacts["limit"], contacts["offset"]) == (3, 1, 1)
    assert len(contacts["contacts"]) == 1


def test_job_application_validation(api_client):
    payload = _application_payload()
    payload["mobile"] = "not-a-number"
    response = api_client.post("/add-users", json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_contacts(api_client, admin_headers):
    created = api_client.post(
        "/add-contact",
        json={
            "name": "Ravi",
            "email": "ravi@example.test",
            "mobile": "9123456780",
            "subject": "SEO",
            "message": "Please call me back.",
        },
    )
    assert created.status_code == 201
    assert created.json()["message"] == "Submitted successfully"

    listing = api_client.get("/contacts", headers=admin_headers)
    assert listing.json()["count"] == 1
    assert listing.json()["contacts"][0]["subject"] == "SEO"


def test_resume_upload(api_client, fake_upload):
    response = api_client.post(
        "/resume",
        files={"file": ("Asha Rao.pdf", PDF, "application/pdf")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Uploaded successfully"
    assert body["originalname"] == "Asha Rao.pdf"
    assert body["public_id"].endswith("-Asha-Rao.pdf")
    assert fake_upload[0]["folder"] == settings.resume_folder


def test_resume_upload_without_file(api_client, fake_upload):
    response = api_client.post(
        "/resume",
        files={"attachment": ("resume.pdf", PDF, "application/pdf")},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "NO_FILE"
    assert fake_upload == []


def test_resume_upload_rejects_wrong_type(api_client, fake_upload):
    response = api_client.post(
        "/resume",
        files={"file": ("resume.docx", b"PK...", "application/vnd.openxmlformats-officedocument.wordprocessingml.document")},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "FILE_TYPE_NOT_ALLOWED"


def test_resume_upload_rejects_oversized_file(api_client, fake_upload, monkeypatch):
    monkeypatch.setattr(settings, "resume_max_bytes", 8)

    response = api_client.post(
        "/resume",
        files={"file": ("resume.pdf", PDF, "application/pdf")},
    )

    assert response.status_code == 413
    assert response.json()["code"] == "FILE_TOO_LARGE"
    assert fake_upload == []


def test_unknown_route_uses_error_envelope(api_client):
    response = api_client.get("/nope")
    assert response.status_code == 404
    assert response.json()["ok"] is False
    assert response.json()["code"] == "HTTP_404"


def test_security_headers_present(api_client):
    response = api_client.get("/health")
    assert response.headers["x-content-type-options"] == "nosniff"
