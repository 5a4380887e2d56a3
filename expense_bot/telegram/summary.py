from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import tzinfo
from decimal import Decimal

from ..schemas.expense import ExpenseRead
from ..services.ledger import ExpenseLedger
from .helpers import format_amount_for_display, format_local_timestamp, strip_category_emoji
from .messages import NO_DESCRIPTION, SummaryCard, SummaryLine
from .periods import Period, PeriodResolver

PAGE_SIZE = 5


@dataclass(frozen=True)
class SummaryPage:
    expenses: tuple[ExpenseRead, ...]
    page_index: int
    total_pages: int
    period_total: Decimal
    period: Period


def paginate(
    expenses: Sequence[ExpenseRead],
    period: Period,
    page_size: int = PAGE_SIZE,
) -> list[SummaryPage]:
    """Split an already ordered expense list into pages that share the period total."""
    if page_size < 1:
        raise ValueError("page_size must be positive")
    if not expenses:
        return []
    period_total = sum((expense.amount for expense in expenses), Decimal("0"))
    total_pages = math.ceil(len(expenses) / page_size)
    return [
        SummaryPage(
            expenses=tuple(expenses[offset : offset + page_size]),
            page_index=offset // page_size + 1,
            total_pages=total_pages,
            period_total=period_total,
            period=period,
        )
        for offset in range(0, len(expenses), page_size)
    ]


class SummaryAggregator:
    def __init__(self, ledger: ExpenseLedger, resolver: PeriodResolver) -> None:
        self.ledger = ledger
        self.resolver = resolver

    async def summarize(self, user_id: str, period_token: str) -> list[SummaryPage]:
        period = self.resolver.resolve(period_token)
        expenses = await self.ledger.query(user_id, period.start, period.end)
        return paginate(expenses, period)


def build_summary_card(page: SummaryPage, zone: tzinfo, currency_symbol: str = "฿") -> SummaryCard:
    title = f"{page.period.label} Expenses"
    if page.total_pages > 1:
        title = f"{title} (Page {page.page_index}/{page.total_pages})"
    lines = tuple(
        SummaryLine(
            category=strip_category_emoji(expense.category.value),
            amount=format_amount_for_display(expense.amount),
            description=expense.description or NO_DESCRIPTION,
            timestamp=format_local_timestamp(expense.timestamp, zone),
        )
        for expense in page.expenses
    )
    return SummaryCard(
        title=title,
        period_total=page.period_total,
        total_text=f"{format_amount_for_display(page.period_total)} {currency_symbol}",
        lines=lines,
    )


def no_expenses_text(period: Period) -> str:
    return (
        f"📊 No expenses recorded for {period.phrase}.\n\n"
        'Type "add" to add your first expense!'
    )
