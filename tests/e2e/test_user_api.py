"""
End-to-end tests for the /user endpoints.
"""
import asyncio
import time
from unittest.mock import patch

import httpx
import pytest

from appliance_vault.config import settings
from appliance_vault.core import security
from appliance_vault.core.rate_limit import limiter
from appliance_vault.main import app
from appliance_vault.models.user import Account, User
from appliance_vault.services.identity import FederatedIdentity, get_identity_verifier
from conftest import API, PDF_BYTES, bearer, signup


@pytest.mark.e2e
class TestSignupSignin:
    """Tests for signup and signin"""

    def test_signup_returns_token(self, client, test_db):
        response = client.post(
            f"{API}/user/signup",
            json={"username": "a@b.com", "firstName": "A", "lastName": "B", "password": "secret1"},
        )

        assert response.status_code == 201
        token = response.json()["token"]
        user = test_db.query(User).filter_by(username="a@b.com").one()
        assert security.decode_access_token(token) == str(user.id)
        assert test_db.query(Account).filter_by(user_id=user.id).count() == 1
        assert user.hashed_password != "secret1"

    def test_duplicate_signup_conflicts(self, client):
        signup(client, "a@b.com")

        response = client.post(
            f"{API}/user/signup",
            json={"username": "a@b.com", "firstName": "A", "lastName": "B", "password": "secret1"},
        )

        assert response.status_code == 409

    def test_username_is_case_normalized(self, client, test_db):
        signup(client, "Mixed@Case.COM")

        assert test_db.query(User).filter_by(username="mixed@case.com").count() == 1
        response = client.post(
            f"{API}/user/signup",
            json={"username": "mixed@case.com", "firstName": "A", "lastName": "B", "password": "secret1"},
        )
        assert response.status_code == 409

    def test_signup_requires_email_username(self, client):
        response = client.post(
            f"{API}/user/signup",
            json={"username": "not-an-email", "firstName": "A", "lastName": "B", "password": "secret1"},
        )

        assert response.status_code == 400
        assert any(e["field"] == "username" for e in response.json()["errors"])

    def test_signin(self, client):
        signup(client, "a@b.com", "secret1")

        ok = client.post(f"{API}/user/signin", json={"username": "A@B.com", "password": "secret1"})
        wrong = client.post(f"{API}/user/signin", json={"username": "a@b.com", "password": "nope123"})
        unknown = client.post(f"{API}/user/signin", json={"username": "x@b.com", "password": "secret1"})

        assert ok.status_code == 200
        assert ok.json()["token"]
        assert wrong.status_code == 401
        assert unknown.status_code == 401

    def test_password_over_bcrypt_limit_is_rejected(self, client, test_db):
        for password in ("p" * 80, "ł" * 40):
            response = client.post(
                f"{API}/user/signup",
                json={"username": "a@b.com", "firstName": "A", "lastName": "B", "password": password},
            )

            assert response.status_code == 400
            assert [e["field"] for e in response.json()["errors"]] == ["password"]
        assert test_db.query(User).count() == 0

    def test_password_at_bcrypt_limit_is_accepted(self, client):
        signup(client, "a@b.com", "p" * 72)

        response = client.post(f"{API}/user/signin", json={"username": "a@b.com", "password": "p" * 72})
        assert response.status_code == 200

    def test_signin_is_rate_limited(self, client):
        limiter.reset()
        limiter.enabled = True
        try:
            responses = [
                client.post(f"{API}/user/signin", json={"username": "a@b.com", "password": "secret1"})
                for _ in range(6)
            ]
        finally:
            limiter.enabled = False
            limiter.reset()

        assert [r.status_code for r in responses[:5]] == [401] * 5
        assert responses[5].status_code == 429
        assert responses[5].json() == {"message": "Rate limit exceeded. Please try again later."}


@pytest.mark.e2e
class TestGoogleLogin:
    """Tests for federated login"""

    def test_first_login_provisions_user(self, client, test_db, fake_verifier):
        fake_verifier.identities["good"] = FederatedIdentity("g@example.com", "Grace", "Hopper")

        response = client.post(f"{API}/user/google", json={"credential": "good"})

        assert response.status_code == 200
        body = response.json()
        user = test_db.query(User).filter_by(username="g@example.com").one()
        assert security.decode_access_token(body["token"]) == str(user.id)
        assert user.first_name == "Grace"
        assert test_db.query(Account).filter_by(user_id=user.id).count() == 1
        # Placeholder password cannot be guessed
        assert not security.verify_password("", user.hashed_password)

    def test_second_login_reuses_user(self, client, test_db, fake_verifier):
        fake_verifier.identities["good"] = FederatedIdentity("g@example.com", "Grace", "Hopper")

        client.post(f"{API}/user/google", json={"credential": "good"})
        client.post(f"{API}/user/google", json={"credential": "good"})

        assert test_db.query(User).filter_by(username="g@example.com").count() == 1

    def test_links_to_existing_password_user(self, client, test_db, fake_verifier):
        signup(client, "g@example.com")
        fake_verifier.identities["good"] = FederatedIdentity("g@example.com", "Grace", "Hopper")

        response = client.post(f"{API}/user/google", json={"credential": "good"})

        assert response.status_code == 200
        assert test_db.query(User).count() == 1

    def test_invalid_credential(self, client):
        response = client.post(f"{API}/user/google", json={"credential": "forged"})
        assert response.status_code == 401

    def test_missing_credential(self, client):
        response = client.post(f"{API}/user/google", json={})
        assert response.status_code == 400

    def test_missing_client_id_is_a_generic_server_error(self, client, monkeypatch):
        app.dependency_overrides.pop(get_identity_verifier)
        monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "")
        get_identity_verifier.cache_clear()
        try:
            response = client.post(f"{API}/user/google", json={"credential": "good"})
        finally:
            get_identity_verifier.cache_clear()

        assert response.status_code == 500
        assert response.json() == {"message": "Internal server error"}

    def test_server_error_detail_only_in_development(self, client, monkeypatch):
        app.dependency_overrides.pop(get_identity_verifier)
        monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "")
        monkeypatch.setattr(settings, "ENVIRONMENT", "development")
        get_identity_verifier.cache_clear()
        try:
            response = client.post(f"{API}/user/google", json={"credential": "good"})
        finally:
            get_identity_verifier.cache_clear()

        assert response.status_code == 500
        assert response.json() == {
            "message": "Internal server error",
            "error": "Google Client ID not configured",
        }


@pytest.mark.e2e
class TestProfile:
    """Tests for GET/PUT /user/"""

    def test_requires_bearer(self, client):
        assert client.get(f"{API}/user/").status_code == 401
        assert client.get(f"{API}/user/", headers=bearer("garbage")).status_code == 401

    def test_read_profile(self, client, user_token):
        response = client.get(f"{API}/user/", headers=bearer(user_token))

        assert response.status_code == 200
        assert response.json()["user"] == {"firstName": "Ada", "lastName": "Lovelace", "username": "a@b.com"}

    def test_partial_update_and_password_change(self, client, user_token):
        response = client.put(
            f"{API}/user/", json={"lastName": "Byron", "password": "newpass1"}, headers=bearer(user_token)
        )

        assert response.status_code == 200
        assert response.json()["user"]["firstName"] == "Ada"
        assert response.json()["user"]["lastName"] == "Byron"
        old = client.post(f"{API}/user/signin", json={"username": "a@b.com", "password": "secret1"})
        new = client.post(f"{API}/user/signin", json={"username": "a@b.com", "password": "newpass1"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_password_update_over_bcrypt_limit_is_rejected(self, client, user_token):
        response = client.put(f"{API}/user/", json={"password": "p" * 73}, headers=bearer(user_token))

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "password"
        still = client.post(f"{API}/user/signin", json={"username": "a@b.com", "password": "secret1"})
        assert still.status_code == 200

    def test_token_for_deleted_user_is_rejected(self, client):
        token = security.create_access_token(subject=9999)
        assert client.get(f"{API}/user/", headers=bearer(token)).status_code == 401


@pytest.mark.e2e
class TestUploadCheck:
    """Tests for POST /user/upload"""

    def test_accepts_by_extension(self, client):
        response = client.post(
            f"{API}/user/upload",
            files={"file": ("scan.pdf", PDF_BYTES, "application/octet-stream")},
        )

        assert response.status_code == 200
        assert response.json()["file"]["contentType"] == "application/pdf"
        assert response.json()["file"]["fileSize"] == len(PDF_BYTES)

    def test_rejects_other_types(self, client):
        response = client.post(
            f"{API}/user/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["rule"] == "content_type"

    def test_requires_file(self, client):
        response = client.post(f"{API}/user/upload", data={"other": "x"})
        assert response.status_code == 400


@pytest.mark.e2e
@pytest.mark.asyncio
class TestConcurrency:
    """Slow password hashing must not stall other requests"""

    async def test_health_answers_while_signup_hashes(self, client):
        def slow_hash(password):
            time.sleep(0.5)
            return "not-a-real-hash"

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            with patch("appliance_vault.core.security.get_password_hash", side_effect=slow_hash):
                pending = asyncio.create_task(
                    ac.post(
                        f"{API}/user/signup",
                        json={"username": "a@b.com", "firstName": "A", "lastName": "B", "password": "secret1"},
                    )
                )
                await asyncio.sleep(0.05)
                started = time.perf_counter()
                health = await ac.get("/health")
                elapsed = time.perf_counter() - started
                created = await pending

        assert health.status_code == 200
        assert elapsed < 0.3
        assert created.status_code == 201


@pytest.mark.e2e
def test_popup_opener_policy_header(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.headers["Cross-Origin-Opener-Policy"] == "same-origin-allow-popups"
