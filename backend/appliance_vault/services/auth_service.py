"""
Authentication Service.

User lookup, signup, password signin, federated provisioning and token
issuance. Every issuance path mints the same local token with the lifetime
from settings.ACCESS_TOKEN_EXPIRE_MINUTES.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appliance_vault.core import security
from appliance_vault.core.errors import ConflictError
from appliance_vault.models.user import User, Account
from appliance_vault.services.identity import FederatedIdentity

logger = logging.getLogger(__name__)


class AuthService:
    def authenticate_user(
        self, db: Session, username: str, password: str
    ) -> Optional[User]:
        """Authenticate a user by username and password."""
        user = self.get_user_by_username(db, username)
        if not user:
            return None
        if not security.verify_password(password, user.hashed_password):
            return None
        return user

    def get_user_by_username(self, db: Session, username: str) -> Optional[User]:
        """Get a user by (normalized) username."""
        return db.query(User).filter(User.username == username.strip().lower()).first()

    def get_user_by_id(self, db: Session, user_id: Any) -> Optional[User]:
        """Get a user by id; non-numeric ids match nobody."""
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            return None
        return db.query(User).filter(User.id == user_id).first()

    def _create_with_account(
        self, db: Session, username: str, first_name: str, last_name: str, hashed_password: str
    ) -> User:
        """Insert a user and its account in one transaction."""
        user = User(
            username=username.strip().lower(),
            first_name=first_name,
            last_name=last_name,
            hashed_password=hashed_password,
        )
        user.account = Account()
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Email already taken")
        db.refresh(user)
        return user

    def create_user(
        self, db: Session, username: str, first_name: str, last_name: str, password: str
    ) -> User:
        """Create a new user with a password."""
        if self.get_user_by_username(db, username):
            raise ConflictError("Email already taken")

        user = self._create_with_account(
            db,
            username=username,
            first_name=first_name,
            last_name=last_name,
            hashed_password=security.get_password_hash(password),
        )
        logger.info(f"Created user {user.id}")
        return user

    def get_or_create_federated_user(self, db: Session, identity: FederatedIdentity) -> User:
        """Return the user for a verified identity, provisioning one if needed."""
        user = self.get_user_by_username(db, identity.email)
        if user:
            return user

        try:
            user = self._create_with_account(
                db,
                username=identity.email,
                first_name=identity.given_name,
                last_name=identity.family_name,
                hashed_password=security.generate_unusable_password(),
            )
        except ConflictError:
            # Another request provisioned the same identity first
            user = self.get_user_by_username(db, identity.email)
            if user is None:
                raise
            return user

        logger.info(f"Provisioned federated user {user.id}")
        return user

    def update_profile(self, db: Session, user: User, changes: Dict[str, Any]) -> User:
        """Apply a partial profile update; a new password is re-hashed."""
        if changes.get("password"):
            user.hashed_password = security.get_password_hash(changes["password"])
        for field in ("first_name", "last_name"):
            if changes.get(field) is not None:
                setattr(user, field, changes[field].strip())
        db.commit()
        db.refresh(user)
        return user

    def create_user_token(self, user: User) -> str:
        """Create access token for user."""
        return security.create_access_token(subject=user.id)


auth_service = AuthService()
