from .expense import (
    CATEGORY_LABELS,
    ExpenseCategory,
    ExpenseCreate,
    ExpenseRead,
    ExpenseSummaryRead,
    PeriodRead,
    SummaryPageRead,
)

__all__ = [
    "CATEGORY_LABELS",
    "ExpenseCategory",
    "ExpenseCreate",
    "ExpenseRead",
    "ExpenseSummaryRead",
    "PeriodRead",
    "SummaryPageRead",
]
