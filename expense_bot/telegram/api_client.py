from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

from ..schemas.expense import ExpenseRead
from ..services.ledger import LedgerError

logger = logging.getLogger(__name__)


class ExpenseApiClient:
    """HTTP client that forwards Telegram entries to the FastAPI expense ledger."""

    def __init__(self, api_base_url: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.client = httpx.AsyncClient(
            base_url=api_base_url,
            timeout=httpx.Timeout(timeout=60.0, connect=10.0),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def create(
        self,
        user_id: str,
        amount: Decimal,
        category: str,
        description: str,
    ) -> ExpenseRead:
        payload: dict[str, Any] = {
            "user_id": user_id,
            "amount": str(amount),
            "category": category,
            "description": description,
        }
        try:
            response = await self.client.post("/api/expenses", json=payload)
            response.raise_for_status()
            return ExpenseRead.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            logger.exception("Expense API rejected create: %s", exc.response.text)
            raise LedgerError("Could not store expense") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Failed to create expense for user %s", user_id)
            raise LedgerError("Could not store expense") from exc

    async def query(self, user_id: str, start: datetime, end: datetime) -> list[ExpenseRead]:
        params = {
            "user_id": user_id,
            "start": start.isoformat(),
            "end": end.isoformat(),
        }
        try:
            response = await self.client.get("/api/expenses", params=params)
            response.raise_for_status()
            return [ExpenseRead.model_validate(item) for item in response.json()]
        except httpx.HTTPStatusError as exc:
            logger.exception("Expense API rejected query: %s", exc.response.text)
            raise LedgerError("Could not load expenses") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Failed to list expenses for user %s", user_id)
            raise LedgerError("Could not load expenses") from exc
