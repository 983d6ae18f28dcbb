"""
Ledger enumerations.
"""

import enum


class TransactionType(str, enum.Enum):
    """Ledger entry type. The amount is always stored unsigned; the type carries the sign."""
    SALE = "SALE"  # Money coming in
    EXPENSE = "EXPENSE"  # Money going out


# Prefix used in transaction numbers, e.g. SAL-RW2501-0000001
TRANSACTION_NUMBER_PREFIX = {
    TransactionType.SALE: "SAL",
    TransactionType.EXPENSE: "EXP",
}


class ExpenseCategory(str, enum.Enum):
    """Expense category enumeration."""
    INVENTORY = "INVENTORY"
    SHIPPING = "SHIPPING"
    MARKETING = "MARKETING"
    SALARIES = "SALARIES"
    RENT = "RENT"
    UTILITIES = "UTILITIES"
    EQUIPMENT = "EQUIPMENT"
    MAINTENANCE = "MAINTENANCE"
    SUPPLIES = "SUPPLIES"
    INSURANCE = "INSURANCE"
    TAXES = "TAXES"
    OTHER = "OTHER"
