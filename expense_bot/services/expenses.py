from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.expense import Expense
from ..schemas.expense import ExpenseCreate, ExpenseRead
from .ledger import LedgerError

logger = logging.getLogger(__name__)


async def create_expense(session: AsyncSession, payload: ExpenseCreate) -> Expense:
    """Persist a new expense."""
    expense = Expense(
        user_id=payload.user_id,
        amount=payload.amount,
        category=payload.category.value,
        description=payload.description.strip(),
    )
    session.add(expense)
    await session.commit()
    await session.refresh(expense)
    return expense


async def list_expenses(
    session: AsyncSession,
    *,
    user_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
) -> Sequence[Expense]:
    """Expenses for one user inside the inclusive range, most recent first."""
    stmt: Select[tuple[Expense]] = (
        select(Expense)
        .where(Expense.user_id == user_id)
        .order_by(Expense.timestamp.desc(), Expense.created_at.desc())
    )
    if start is not None:
        stmt = stmt.where(Expense.timestamp >= start)
    if end is not None:
        stmt = stmt.where(Expense.timestamp <= end)
    result = await session.execute(stmt)
    return result.scalars().all()


class SessionExpenseLedger:
    """Ledger backed directly by a database session (used inside the API process)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        user_id: str,
        amount: Decimal,
        category: str,
        description: str,
    ) -> ExpenseRead:
        try:
            payload = ExpenseCreate(
                user_id=user_id, amount=amount, category=category, description=description
            )
            expense = await create_expense(self.session, payload)
        except (SQLAlchemyError, ValidationError) as exc:
            logger.exception("Failed to store expense for user %s", user_id)
            raise LedgerError("Could not store expense") from exc
        return ExpenseRead.model_validate(expense)

    async def query(self, user_id: str, start: datetime, end: datetime) -> list[ExpenseRead]:
        try:
            expenses = await list_expenses(self.session, user_id=user_id, start=start, end=end)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load expenses for user %s", user_id)
            raise LedgerError("Could not load expenses") from exc
        return [ExpenseRead.model_validate(expense) for expense in expenses]
