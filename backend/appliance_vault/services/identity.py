"""
Federated identity verification (Google Sign-In ID tokens).

The verifier is constructed with its expected audience and handed to the
routes through a FastAPI dependency, so tests can substitute their own.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from appliance_vault.config import settings
from appliance_vault.core.errors import AppError, AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FederatedIdentity:
    email: str
    given_name: str
    family_name: str


def identity_from_payload(payload: Dict[str, Any]) -> FederatedIdentity:
    """Build an identity from a verified ID token payload."""
    email = payload.get("email")
    if not email:
        raise AuthError("invalid", "Invalid Google ID token")

    name_parts = (payload.get("name") or "").split(" ")
    given_name = payload.get("given_name") or name_parts[0]
    family_name = payload.get("family_name")
    if family_name is None:
        family_name = name_parts[1] if len(name_parts) > 1 else ""

    return FederatedIdentity(
        email=email.strip().lower(),
        given_name=given_name,
        family_name=family_name,
    )


class GoogleIdentityVerifier:
    """Verifies Google ID tokens against a fixed audience (the OAuth client id)."""

    def __init__(
        self,
        audience: str,
        verify_token: Optional[Callable[..., Dict[str, Any]]] = None,
    ):
        self.audience = audience
        self._verify_token = verify_token or id_token.verify_oauth2_token
        self._request = google_requests.Request()

    def verify(self, credential: str) -> FederatedIdentity:
        try:
            payload = self._verify_token(credential, self._request, self.audience)
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.warning(f"Error verifying Google token: {e}")
            raise AuthError("invalid", "Invalid Google token")

        if not payload:
            raise AuthError("invalid", "Invalid Google ID token")
        return identity_from_payload(payload)


@lru_cache
def get_identity_verifier() -> GoogleIdentityVerifier:
    """Dependency returning a verifier configured from settings."""
    if not settings.GOOGLE_CLIENT_ID:
        raise AppError("Google Client ID not configured")
    return GoogleIdentityVerifier(audience=settings.GOOGLE_CLIENT_ID)
