"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the finance domain models used by ``finance_import``.
"""

from .finance import (
    Base,
    FiAsset,
    FiAssetSnapshot,
    FiCategory,
    FiExpense,
    FiImportAudit,
    FiTag,
    fi_expense_tags,
)

__all__ = [
    "Base",
    "FiAsset",
    "FiAssetSnapshot",
    "FiCategory",
    "FiExpense",
    "FiImportAudit",
    "FiTag",
    "fi_expense_tags",
]
