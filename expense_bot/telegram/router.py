from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum

from ..services.ledger import LedgerError
from .dispatcher import MessageDispatcher, ReplyHandle, SingleUseReply
from .entry_flow import ExpenseEntryFlow
from .helpers import normalise_command
from .messages import (
    MENU_TEXT,
    QUERY_FAILED_TEXT,
    UNKNOWN_COMMAND_TEXT,
    OutboundMessage,
    TextMessage,
)
from .periods import PERIOD_TOKENS
from .state import ConversationState, ConversationStateStore
from .summary import SummaryAggregator, build_summary_card, no_expenses_text

logger = logging.getLogger(__name__)

MENU_COMMANDS = frozenset({"menu", "help", "start"})
ADD_COMMANDS = frozenset({"add", "add expense"})


class CommandKind(str, Enum):
    MENU = "menu"
    ADD = "add"
    PERIOD = "period"
    TEXT = "text"


def classify(text: str) -> tuple[CommandKind, str]:
    token = normalise_command(text)
    if token in MENU_COMMANDS:
        return CommandKind.MENU, token
    if token in ADD_COMMANDS:
        return CommandKind.ADD, token
    if token in PERIOD_TOKENS:
        return CommandKind.PERIOD, token
    return CommandKind.TEXT, token


@dataclass(frozen=True)
class InboundEvent:
    reply_handle: ReplyHandle
    user_id: str
    text: str


@dataclass(frozen=True)
class EventOutcome:
    user_id: str
    ok: bool
    error: BaseException | None = None


class EventRouter:
    def __init__(
        self,
        store: ConversationStateStore,
        entry_flow: ExpenseEntryFlow,
        aggregator: SummaryAggregator,
        dispatcher: MessageDispatcher,
        *,
        zone: tzinfo,
        currency_symbol: str = "฿",
    ) -> None:
        self.store = store
        self.entry_flow = entry_flow
        self.aggregator = aggregator
        self.dispatcher = dispatcher
        self.zone = zone
        self.currency_symbol = currency_symbol

    async def process_batch(self, events: Sequence[InboundEvent]) -> list[EventOutcome]:
        """Handle every event concurrently and report a per-event outcome."""
        results = await asyncio.gather(
            *(self.handle_event(event) for event in events), return_exceptions=True
        )
        outcomes: list[EventOutcome] = []
        for event, result in zip(events, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to handle event for user %s",
                    event.user_id,
                    exc_info=(type(result), result, result.__traceback__),
                )
                outcomes.append(EventOutcome(event.user_id, ok=False, error=result))
            else:
                outcomes.append(EventOutcome(event.user_id, ok=True))
        return outcomes

    async def handle_event(self, event: InboundEvent) -> None:
        async with self.store.lock(event.user_id):
            state = await self.store.get(event.user_id)
            new_state, messages = await self._route(event, state)
            if new_state != state:
                await self.store.set(event.user_id, new_state)
            await self.dispatcher.deliver(messages, SingleUseReply(event.reply_handle), event.user_id)

    async def _route(
        self, event: InboundEvent, state: ConversationState
    ) -> tuple[ConversationState, list[OutboundMessage]]:
        kind, token = classify(event.text)
        if kind is CommandKind.MENU:
            return ConversationState.idle(), [TextMessage(MENU_TEXT)]
        if kind is CommandKind.ADD:
            result = self.entry_flow.start()
            return result.state, result.messages
        if kind is CommandKind.PERIOD:
            return ConversationState.idle(), await self._summary_messages(event.user_id, token)
        if not state.is_idle:
            result = await self.entry_flow.handle(event.user_id, state, event.text)
            return result.state, result.messages
        return state, [TextMessage(UNKNOWN_COMMAND_TEXT)]

    async def _summary_messages(self, user_id: str, token: str) -> list[OutboundMessage]:
        try:
            pages = await self.aggregator.summarize(user_id, token)
        except LedgerError:
            logger.exception("Could not build %s summary for user %s", token, user_id)
            return [TextMessage(QUERY_FAILED_TEXT)]
        if not pages:
            period = self.aggregator.resolver.resolve(token)
            return [TextMessage(no_expenses_text(period))]
        return [build_summary_card(page, self.zone, self.currency_symbol) for page in pages]
