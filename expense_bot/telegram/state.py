"""Per-user conversation state for the add-expense flow.

``ConversationStateStore`` is the only way handlers read or write state. It
delegates persistence to a ``ConversationStorage`` backend and hands out one
``asyncio.Lock`` per user so that the read/modify/write cycle of concurrent
updates from the same user is serialised.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.conversation_state import ConversationStateRecord

logger = logging.getLogger(__name__)


class ConversationStep(str, Enum):
    IDLE = "idle"
    AWAITING_AMOUNT = "awaiting_amount"
    AWAITING_CATEGORY = "awaiting_category"
    AWAITING_DESCRIPTION = "awaiting_description"


@dataclass(frozen=True)
class ConversationState:
    step: ConversationStep = ConversationStep.IDLE
    pending_amount: Decimal | None = None
    pending_category: str | None = None

    def __post_init__(self) -> None:
        needs_amount = self.step in {
            ConversationStep.AWAITING_CATEGORY,
            ConversationStep.AWAITING_DESCRIPTION,
        }
        needs_category = self.step is ConversationStep.AWAITING_DESCRIPTION
        if needs_amount != (self.pending_amount is not None):
            raise ValueError(f"pending_amount is invalid for step {self.step.value}")
        if needs_category != (self.pending_category is not None):
            raise ValueError(f"pending_category is invalid for step {self.step.value}")

    @property
    def is_idle(self) -> bool:
        return self.step is ConversationStep.IDLE

    @classmethod
    def idle(cls) -> "ConversationState":
        return cls()

    @classmethod
    def awaiting_amount(cls) -> "ConversationState":
        return cls(step=ConversationStep.AWAITING_AMOUNT)

    def with_amount(self, amount: Decimal) -> "ConversationState":
        return ConversationState(step=ConversationStep.AWAITING_CATEGORY, pending_amount=amount)

    def with_category(self, category: str) -> "ConversationState":
        return ConversationState(
            step=ConversationStep.AWAITING_DESCRIPTION,
            pending_amount=self.pending_amount,
            pending_category=category,
        )


class ConversationStorage(Protocol):
    async def load(self, user_id: str) -> ConversationState | None: ...

    async def save(self, user_id: str, state: ConversationState) -> None: ...


class InMemoryConversationStorage:
    """Process-local storage; every user is back to idle after a restart."""

    def __init__(self) -> None:
        self._states: dict[str, ConversationState] = {}

    async def load(self, user_id: str) -> ConversationState | None:
        return self._states.get(user_id)

    async def save(self, user_id: str, state: ConversationState) -> None:
        if state.is_idle:
            self._states.pop(user_id, None)
        else:
            self._states[user_id] = state

    def __len__(self) -> int:
        return len(self._states)


class DatabaseConversationStorage:
    """Stores one ``conversation_states`` row per user with an unfinished flow."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def load(self, user_id: str) -> ConversationState | None:
        async with self.session_factory() as session:
            record = await self._get_record(session, user_id)
            if record is None:
                return None
            return ConversationState(
                step=ConversationStep(record.step),
                pending_amount=record.pending_amount,
                pending_category=record.pending_category,
            )

    async def save(self, user_id: str, state: ConversationState) -> None:
        async with self.session_factory() as session:
            record = await self._get_record(session, user_id)
            if state.is_idle:
                if record is not None:
                    await session.delete(record)
            elif record is None:
                session.add(
                    ConversationStateRecord(
                        user_id=user_id,
                        step=state.step.value,
                        pending_amount=state.pending_amount,
                        pending_category=state.pending_category,
                    )
                )
            else:
                record.step = state.step.value
                record.pending_amount = state.pending_amount
                record.pending_category = state.pending_category
            await session.commit()

    @staticmethod
    async def _get_record(session: AsyncSession, user_id: str) -> ConversationStateRecord | None:
        result = await session.execute(
            select(ConversationStateRecord).where(ConversationStateRecord.user_id == user_id)
        )
        return result.scalars().first()


class ConversationStateStore:
    def __init__(self, storage: ConversationStorage | None = None) -> None:
        self.storage = storage if storage is not None else InMemoryConversationStorage()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = {}

    async def get(self, user_id: str) -> ConversationState:
        state = await self.storage.load(user_id)
        return state if state is not None else ConversationState.idle()

    async def set(self, user_id: str, state: ConversationState) -> None:
        await self.storage.save(user_id, state)

    async def reset(self, user_id: str) -> None:
        await self.set(user_id, ConversationState.idle())

    @contextlib.asynccontextmanager
    async def lock(self, user_id: str) -> AsyncIterator[None]:
        """Critical section for one user's get/handle/set sequence."""
        user_lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_holders[user_id] = self._lock_holders.get(user_id, 0) + 1
        try:
            async with user_lock:
                yield
        finally:
            # Drop the lock once no task holds or waits on it.
            self._lock_holders[user_id] -= 1
            if not self._lock_holders[user_id]:
                del self._lock_holders[user_id]
                del self._locks[user_id]
