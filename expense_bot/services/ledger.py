from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from ..schemas.expense import ExpenseRead


class LedgerError(Exception):
    """Raised when the expense ledger cannot complete a read or write."""


class ExpenseLedger(Protocol):
    """Read/write access to persisted expenses.

    Both operations either succeed completely or raise ``LedgerError``; there are
    no partial results.
    """

    async def create(
        self,
        user_id: str,
        amount: Decimal,
        category: str,
        description: str,
    ) -> ExpenseRead: ...

    async def query(self, user_id: str, start: datetime, end: datetime) -> list[ExpenseRead]:
        """Return the user's expenses with ``start <= timestamp <= end``, newest first."""
        ...
