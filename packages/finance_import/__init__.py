"""Public interface for the ``finance_import`` package.

This module exposes the package's API functions, request types and report
models as the stable import surface. There is no runtime logic here, only
symbol re-exports.
"""

from .api import (
    balance_import_template,
    bulk_balance_import_template,
    expense_import_template,
    import_balances,
    import_balances_bulk,
    import_capital_one,
    import_expenses,
    import_splitwise,
    splitwise_group_members,
    splitwise_groups,
    splitwise_status,
)
from .errors import SplitwiseNotConfiguredError, StructuralImportError
from .importers.balances import BalanceImportRequest, BulkBalanceImportRequest
from .importers.capital_one import CapitalOneImportRequest
from .importers.expenses import ExpenseImportRequest
from .importers.splitwise import SplitwiseImportRequest
from .models import DuplicateStrategy, RowStatus
from .reports import (
    CapitalOneImportReport,
    ImportRunReport,
    RowResult,
    SplitwiseImportReport,
)

__all__ = [
    # API
    "balance_import_template",
    "bulk_balance_import_template",
    "expense_import_template",
    "import_balances",
    "import_balances_bulk",
    "import_capital_one",
    "import_expenses",
    "import_splitwise",
    "splitwise_group_members",
    "splitwise_groups",
    "splitwise_status",
    # Requests
    "BalanceImportRequest",
    "BulkBalanceImportRequest",
    "CapitalOneImportRequest",
    "ExpenseImportRequest",
    "SplitwiseImportRequest",
    # Reports / types
    "CapitalOneImportReport",
    "DuplicateStrategy",
    "ImportRunReport",
    "RowResult",
    "RowStatus",
    "SplitwiseImportReport",
    # Errors
    "SplitwiseNotConfiguredError",
    "StructuralImportError",
]
