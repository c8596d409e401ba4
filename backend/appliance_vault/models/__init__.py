"""
Database models for Appliance Vault.

All SQLAlchemy models are imported here so metadata knows every table.
"""

from appliance_vault.models.user import User, Account
from appliance_vault.models.appliance import Appliance, ApplianceReceipt

__all__ = [
    "User",
    "Account",
    "Appliance",
    "ApplianceReceipt",
]
