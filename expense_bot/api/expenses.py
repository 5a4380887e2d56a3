from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from .dependencies import ResolverDep, SessionDep
from ..schemas.expense import (
    ExpenseCreate,
    ExpenseRead,
    ExpenseSummaryRead,
    PeriodRead,
    SummaryPageRead,
)
from ..services import LedgerError, SessionExpenseLedger, create_expense, list_expenses
from ..telegram.periods import InvalidPeriodError
from ..telegram.summary import SummaryAggregator

router = APIRouter()


@router.post("", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
async def create_expense_endpoint(payload: ExpenseCreate, session: SessionDep) -> ExpenseRead:
    expense = await create_expense(session, payload)
    return ExpenseRead.model_validate(expense)


@router.get("", response_model=list[ExpenseRead])
async def list_expenses_endpoint(
    session: SessionDep,
    user_id: Annotated[str, Query(min_length=1, max_length=64)],
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
) -> list[ExpenseRead]:
    if start is not None and end is not None and end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    expenses = await list_expenses(session, user_id=user_id, start=start, end=end)
    return [ExpenseRead.model_validate(expense) for expense in expenses]


@router.get("/summary", response_model=ExpenseSummaryRead)
async def expense_summary_endpoint(
    session: SessionDep,
    resolver: ResolverDep,
    user_id: Annotated[str, Query(min_length=1, max_length=64)],
    period: Annotated[str, Query()] = "today",
) -> ExpenseSummaryRead:
    try:
        resolved = resolver.resolve(period)
    except InvalidPeriodError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    aggregator = SummaryAggregator(SessionExpenseLedger(session), resolver)
    try:
        pages = await aggregator.summarize(user_id, resolved.kind.value)
    except LedgerError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return ExpenseSummaryRead(
        period=PeriodRead(kind=resolved.kind.value, start=resolved.start, end=resolved.end),
        total=pages[0].period_total if pages else 0,
        count=sum(len(page.expenses) for page in pages),
        pages=[
            SummaryPageRead(
                page_index=page.page_index,
                total_pages=page.total_pages,
                period_total=page.period_total,
                expenses=list(page.expenses),
            )
            for page in pages
        ],
    )
