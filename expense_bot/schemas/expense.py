from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExpenseCategory(str, Enum):
    FOOD = "🍔 Food"
    TRANSPORT = "🚗 Transport"
    SHOPPING = "🛒 Shopping"
    ENTERTAINMENT = "🎬 Entertainment"
    HEALTH = "💊 Health"
    EDUCATION = "📚 Education"
    BILLS = "🏠 Bills"
    CLOTHING = "👕 Clothing"
    OTHERS = "🎁 Others"


CATEGORY_LABELS: tuple[str, ...] = tuple(category.value for category in ExpenseCategory)

# Bounds of the Numeric(16, 4) amount column.
AMOUNT_DECIMAL_PLACES = 4
MAX_AMOUNT = Decimal(10) ** 12


class ExpenseCreate(BaseModel):
    """Payload for recording a new expense."""

    user_id: str = Field(min_length=1, max_length=64)
    amount: Decimal = Field(gt=0, lt=MAX_AMOUNT, max_digits=16, decimal_places=AMOUNT_DECIMAL_PLACES)
    category: ExpenseCategory
    description: str = ""

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, value: Decimal) -> Decimal:
        if not value.is_finite():
            raise ValueError("Amount must be a finite number")
        return value


class ExpenseRead(BaseModel):
    """API response shape for expenses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    amount: Decimal
    category: ExpenseCategory
    description: str
    timestamp: datetime


class PeriodRead(BaseModel):
    kind: str
    start: datetime
    end: datetime


class SummaryPageRead(BaseModel):
    page_index: int
    total_pages: int
    period_total: Decimal
    expenses: list[ExpenseRead]


class ExpenseSummaryRead(BaseModel):
    """Paginated summary of a user's expenses for one period."""

    period: PeriodRead
    total: Decimal
    count: int
    pages: list[SummaryPageRead]
