from .expenses import SessionExpenseLedger, create_expense, list_expenses
from .ledger import ExpenseLedger, LedgerError

__all__ = [
    "create_expense",
    "list_expenses",
    "ExpenseLedger",
    "LedgerError",
    "SessionExpenseLedger",
]
