"""
Shared pytest fixtures.
"""
import os

# Settings are read at import time; configure them before the app is imported.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("ENVIRONMENT", "production")

import io
import struct
import zlib
from typing import Dict, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers, UploadFile

from appliance_vault.database import Base, get_db
from appliance_vault.main import app
from appliance_vault.core.errors import AuthError
from appliance_vault.models.user import User, Account  # noqa: F401
from appliance_vault.models.appliance import Appliance, ApplianceReceipt  # noqa: F401
from appliance_vault.services.identity import FederatedIdentity, get_identity_verifier

API = "/api/v1"


def make_png(payload: bytes = b"") -> bytes:
    """Minimal valid PNG (1x1) followed by optional padding in a tEXt chunk."""
    def chunk(kind: bytes, data: bytes) -> bytes:
        return (
            struct.pack(">I", len(data))
            + kind
            + data
            + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)
        )

    header = b"\x89PNG\r\n\x1a\n"
    ihdr = chunk(b"IHDR", struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0))
    idat = chunk(b"IDAT", zlib.compress(b"\x00\xff\x00\x00"))
    text = chunk(b"tEXt", b"Comment\x00" + payload) if payload else b""
    return header + ihdr + text + idat + chunk(b"IEND", b"")


PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"


def make_upload(data: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class FakeVerifier:
    """Stands in for the Google verifier."""

    def __init__(self):
        self.identities: Dict[str, FederatedIdentity] = {}

    def verify(self, credential: str) -> FederatedIdentity:
        if credential not in self.identities:
            raise AuthError("invalid", "Invalid Google token")
        return self.identities[credential]


@pytest.fixture
def test_db() -> Generator[Session, None, None]:
    """Create in-memory SQLite database for testing"""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def fake_verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def client(test_db, fake_verifier) -> Generator[TestClient, None, None]:
    def _get_db():
        yield test_db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_identity_verifier] = lambda: fake_verifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def signup(client: TestClient, username: str = "a@b.com", password: str = "secret1") -> str:
    response = client.post(
        f"{API}/user/signup",
        json={"username": username, "firstName": "Ada", "lastName": "Lovelace", "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()["token"]


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_token(client) -> str:
    return signup(client)


@pytest.fixture
def product_png() -> bytes:
    return make_png(b"product image " * 20)


def add_appliance(client: TestClient, token: str, name: str = "Fridge", **overrides):
    """Post a valid add-appliance form; overrides replace form fields or files."""
    data = {
        "name": name,
        "companyName": "Acme",
        "modelNumber": "FR-100",
        "purchaseDate": "2024-03-15",
    }
    files = {
        "productImage": ("fridge.png", make_png(b"fridge " * 50), "image/png"),
        "originalReceipt": ("receipt.pdf", PDF_BYTES, "application/pdf"),
    }
    for key, value in overrides.items():
        target = files if key in ("productImage", "originalReceipt", "insuranceReceipt") else data
        if value is None:
            target.pop(key, None)
        else:
            target[key] = value
    return client.post(f"{API}/appliance/add", data=data, files=files, headers=bearer(token))
