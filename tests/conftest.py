from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.append(str(SRC))

os.environ.setdefault("SKYUP_ADMIN_EMAIL", "admin@skyup.test")
os.environ.setdefault("SKYUP_ADMIN_PASSWORD", "correct-horse")
os.environ.setdefault("SKYUP_TOKEN_SECRET", "test-secret")
os.environ.setdefault("SKYUP_CLOUDINARY_CLOUD_NAME", "skyup-test")
os.environ.setdefault("SKYUP_CLOUDINARY_API_KEY", "123456")
os.environ.setdefault("SKYUP_CLOUDINARY_API_SECRET", "cloud-secret")

from pydantic import SecretStr

from skyup.config import settings
from skyup.db import DB, apply_schema, build_engine

ADMIN_EMAIL = "admin@skyup.test"
ADMIN_PASSWORD = "correct-horse"


@pytest.fixture(autouse=True)
def admin_settings(monkeypatch):
    monkeypatch.setattr(settings, "admin_email", ADMIN_EMAIL)
    monkeypatch.setattr(settings, "admin_password", SecretStr(ADMIN_PASSWORD))
    monkeypatch.setattr(settings, "token_secret", SecretStr("test-secret"))
    monkeypatch.setattr(settings, "token_ttl_seconds", 86400)
    monkeypatch.setattr(settings, "invoice_prefix", "SDS")
    monkeypatch.setattr(settings, "invoice_timezone", "Asia/Kolkata")


@pytest.fixture()
def db_session(tmp_path, monkeypatch):
    db_path = tmp_path / "skyup.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{db_path}")

    engine = build_engine(settings.database_url)
    apply_schema(engine)
    Session = sessionmaker(bind=engine)
    db = Session()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture()
def api_client(tmp_path, monkeypatch):
    db_path = tmp_path / "skyup_api.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{db_path}")
    monkeypatch.setattr(settings, "auto_migrate_on_startup", True)

    DB.engine = None
    DB.SessionLocal = None

    from fastapi.testclient import TestClient
    from skyup.main import create_app

    app = create_app()
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def admin_headers(api_client):
    response = api_client.post(
        "/api/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
