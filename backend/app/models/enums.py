"""
User roles enumeration.

Defines the role types for the order management system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Back-office staff (status changes, payments, ledger)
        CUSTOMER: Shopper with an account (default role)
    """
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
