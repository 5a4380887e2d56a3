from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..schemas.expense import CATEGORY_LABELS
from ..services.ledger import ExpenseLedger, LedgerError
from .helpers import format_amount_for_display, parse_amount_token
from .messages import (
    AMOUNT_PROMPT,
    CATEGORY_PROMPT,
    CREATE_FAILED_TEXT,
    DESCRIPTION_PROMPT,
    INVALID_AMOUNT_TEXT,
    NO_DESCRIPTION,
    OutboundMessage,
    QuickReplyMessage,
    TextMessage,
)
from .state import ConversationState, ConversationStep

logger = logging.getLogger(__name__)

SKIP_KEYWORD = "skip"


@dataclass
class FlowResult:
    state: ConversationState
    messages: list[OutboundMessage] = field(default_factory=list)


def category_chooser() -> QuickReplyMessage:
    return QuickReplyMessage(text=CATEGORY_PROMPT, options=CATEGORY_LABELS)


class ExpenseEntryFlow:
    """Collects amount, category and description, then writes the expense."""

    def __init__(self, ledger: ExpenseLedger, *, currency_symbol: str = "฿") -> None:
        self.ledger = ledger
        self.currency_symbol = currency_symbol

    def start(self) -> FlowResult:
        return FlowResult(ConversationState.awaiting_amount(), [TextMessage(AMOUNT_PROMPT)])

    async def handle(self, user_id: str, state: ConversationState, text: str) -> FlowResult:
        if state.step is ConversationStep.AWAITING_AMOUNT:
            return self._handle_amount(state, text)
        if state.step is ConversationStep.AWAITING_CATEGORY:
            return self._handle_category(state, text)
        if state.step is ConversationStep.AWAITING_DESCRIPTION:
            return await self._handle_description(user_id, state, text)
        raise ValueError("Entry flow received text while idle")

    def _handle_amount(self, state: ConversationState, text: str) -> FlowResult:
        try:
            amount = parse_amount_token(text)
        except ValueError:
            return FlowResult(state, [TextMessage(INVALID_AMOUNT_TEXT)])
        return FlowResult(state.with_amount(amount), [category_chooser()])

    def _handle_category(self, state: ConversationState, text: str) -> FlowResult:
        category = text.strip()
        if category not in CATEGORY_LABELS:
            return FlowResult(state, [category_chooser()])
        return FlowResult(state.with_category(category), [TextMessage(DESCRIPTION_PROMPT)])

    async def _handle_description(
        self, user_id: str, state: ConversationState, text: str
    ) -> FlowResult:
        description = text.strip()
        if description.lower() == SKIP_KEYWORD:
            description = ""
        try:
            await self.ledger.create(
                user_id, state.pending_amount, state.pending_category, description
            )
        except LedgerError:
            logger.exception("Dropping expense entry for user %s after ledger failure", user_id)
            return FlowResult(ConversationState.idle(), [TextMessage(CREATE_FAILED_TEXT)])

        confirmation = (
            "✅ Expense added successfully!\n\n"
            f"💰 Amount:  {format_amount_for_display(state.pending_amount)} {self.currency_symbol}\n"
            f"📁 Category: {state.pending_category}\n"
            f"📝 Description: {description or NO_DESCRIPTION}\n\n"
            'Type "add" to add another expense or "today" to see today\'s summary.'
        )
        return FlowResult(ConversationState.idle(), [TextMessage(confirmation)])
