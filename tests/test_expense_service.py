from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import unittest
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from expense_bot.schemas.expense import ExpenseCategory, ExpenseCreate
from expense_bot.services import expenses
from expense_bot.services.ledger import LedgerError


class DummySession:
    def __init__(self) -> None:
        self.add = MagicMock()
        self.commit: AsyncMock = AsyncMock()
        self.refresh: AsyncMock = AsyncMock(side_effect=self._assign_defaults)
        self.execute: AsyncMock = AsyncMock()

    @staticmethod
    async def _assign_defaults(instance) -> None:
        instance.id = uuid4()
        instance.timestamp = datetime(2026, 10, 18, 5, 0, tzinfo=timezone.utc)


class ExpenseServiceTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.session = DummySession()

    async def test_create_expense_persists_row(self) -> None:
        payload = ExpenseCreate(
            user_id="u1",
            amount=Decimal("12.50"),
            category=ExpenseCategory.TRANSPORT,
            description="  bus  ",
        )

        expense = await expenses.create_expense(self.session, payload)

        self.session.add.assert_called_once_with(expense)
        self.session.commit.assert_awaited_once()
        self.session.refresh.assert_awaited_once_with(expense)
        self.assertEqual(expense.category, "🚗 Transport")
        self.assertEqual(expense.description, "bus")

    async def test_session_ledger_create_returns_read_model(self) -> None:
        ledger = expenses.SessionExpenseLedger(self.session)

        expense = await ledger.create("u1", Decimal("3"), "🎬 Entertainment", "")

        self.assertEqual(expense.category, ExpenseCategory.ENTERTAINMENT)
        self.assertEqual(expense.amount, Decimal("3"))

    async def test_session_ledger_rejects_unknown_category(self) -> None:
        ledger = expenses.SessionExpenseLedger(self.session)

        with self.assertLogs("expense_bot.services.expenses", level="ERROR"):
            with self.assertRaises(LedgerError):
                await ledger.create("u1", Decimal("3"), "Groceries", "")
        self.session.add.assert_not_called()

    async def test_session_ledger_wraps_database_errors(self) -> None:
        self.session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
        ledger = expenses.SessionExpenseLedger(self.session)
        now = datetime.now(timezone.utc)

        with self.assertLogs("expense_bot.services.expenses", level="ERROR"):
            with self.assertRaises(LedgerError):
                await ledger.query("u1", now, now)

    async def test_list_expenses_returns_scalars(self) -> None:
        rows = [MagicMock(), MagicMock()]
        result = MagicMock()
        result.scalars.return_value.all.return_value = rows
        self.session.execute.return_value = result

        found = await expenses.list_expenses(self.session, user_id="u1")

        self.assertEqual(found, rows)
        self.session.execute.assert_awaited_once()


class ExpenseCreateTests(unittest.TestCase):
    def _payload(self, amount: str, description: str = "") -> ExpenseCreate:
        return ExpenseCreate(
            user_id="u1",
            amount=Decimal(amount),
            category=ExpenseCategory.FOOD,
            description=description,
        )

    def test_amount_must_fit_numeric_column(self) -> None:
        for amount in ["0.00001", "1E+15", "123456789012345", "1000000000000"]:
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    self._payload(amount)

    def test_amount_at_column_limits_is_accepted(self) -> None:
        self.assertEqual(self._payload("999999999999.9999").amount, Decimal("999999999999.9999"))
        self.assertEqual(self._payload("0.0001").amount, Decimal("0.0001"))

    def test_description_length_is_unbounded(self) -> None:
        self.assertEqual(len(self._payload("5", "y" * 4096).description), 4096)
