from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class ConversationStateRecord(Base):
    """Persisted entry-flow progress for one user."""

    __tablename__ = "conversation_states"

    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    step: Mapped[str] = mapped_column(String(32), nullable=False)
    pending_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(16, 4), nullable=True)
    pending_category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
