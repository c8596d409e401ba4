"""
User and Account database models.
"""

from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from appliance_vault.database import Base


class User(Base):
    """User model. The username is a lower-cased email address."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(254), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(50), nullable=False, default="")
    hashed_password = Column(String, nullable=False)

    # Relationships
    account = relationship(
        "Account", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    appliances = relationship("Appliance", back_populates="owner")


class Account(Base):
    """Companion record created together with every user."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    user = relationship("User", back_populates="account")
