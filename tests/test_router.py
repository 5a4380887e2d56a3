from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from unittest import IsolatedAsyncioTestCase, TestCase
from uuid import uuid4
from zoneinfo import ZoneInfo

from expense_bot.schemas.expense import ExpenseCategory, ExpenseRead
from expense_bot.services.ledger import LedgerError
from expense_bot.telegram.dispatcher import MessageDispatcher
from expense_bot.telegram.entry_flow import ExpenseEntryFlow
from expense_bot.telegram.messages import (
    AMOUNT_PROMPT,
    MENU_TEXT,
    QUERY_FAILED_TEXT,
    UNKNOWN_COMMAND_TEXT,
    QuickReplyMessage,
    SummaryCard,
    TextMessage,
)
from expense_bot.telegram.periods import PeriodResolver
from expense_bot.telegram.router import CommandKind, EventRouter, InboundEvent, classify
from expense_bot.telegram.state import ConversationState, ConversationStateStore, ConversationStep
from expense_bot.telegram.summary import SummaryAggregator

BANGKOK = ZoneInfo("Asia/Bangkok")


class MemoryLedger:
    """Ledger double keeping expenses in a list."""

    def __init__(self) -> None:
        self.expenses: list[ExpenseRead] = []
        self.fail_create = False
        self.fail_query = False
        self.create_gate: asyncio.Event | None = None

    async def create(self, user_id, amount, category, description) -> ExpenseRead:
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.fail_create:
            raise LedgerError("create failed")
        expense = ExpenseRead(
            id=uuid4(),
            user_id=user_id,
            amount=amount,
            category=category,
            description=description,
            timestamp=datetime.now(timezone.utc),
        )
        self.expenses.append(expense)
        return expense

    async def query(self, user_id, start, end) -> list[ExpenseRead]:
        if self.fail_query:
            raise LedgerError("query failed")
        matching = [e for e in self.expenses if e.user_id == user_id and start <= e.timestamp <= end]
        return sorted(matching, key=lambda e: e.timestamp, reverse=True)


class RecordingReply:
    def __init__(self, log: list, label: str = "reply", *, fail: bool = False) -> None:
        self.log = log
        self.label = label
        self.fail = fail

    async def send(self, message) -> None:
        if self.fail:
            raise RuntimeError("reply failed")
        self.log.append((self.label, message))


class RecordingPush:
    def __init__(self, log: list) -> None:
        self.log = log

    async def push(self, user_id, messages) -> None:
        for message in messages:
            self.log.append(("push", message))


class ClassifyTests(TestCase):
    def test_commands_are_case_insensitive_and_trimmed(self) -> None:
        self.assertEqual(classify("  MENU "), (CommandKind.MENU, "menu"))
        self.assertEqual(classify("/start"), (CommandKind.MENU, "start"))
        self.assertEqual(classify("Add Expense"), (CommandKind.ADD, "add expense"))
        self.assertEqual(classify("/add@ExpenseBot"), (CommandKind.ADD, "add"))
        self.assertEqual(classify("Week"), (CommandKind.PERIOD, "week"))
        self.assertEqual(classify("lunch"), (CommandKind.TEXT, "lunch"))


class EventRouterTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.log: list = []
        self.ledger = MemoryLedger()
        self.store = ConversationStateStore()
        self.router = EventRouter(
            store=self.store,
            entry_flow=ExpenseEntryFlow(self.ledger),
            aggregator=SummaryAggregator(self.ledger, PeriodResolver(BANGKOK)),
            dispatcher=MessageDispatcher(RecordingPush(self.log)),
            zone=BANGKOK,
        )

    def event(self, text: str, user_id: str = "u1", **reply_kwargs) -> InboundEvent:
        return InboundEvent(RecordingReply(self.log, **reply_kwargs), user_id, text)

    async def send(self, text: str, user_id: str = "u1") -> list:
        start = len(self.log)
        await self.router.handle_event(self.event(text, user_id))
        return [message for _, message in self.log[start:]]

    async def test_full_entry_flow_records_expense(self) -> None:
        self.assertEqual(await self.send("add"), [TextMessage(AMOUNT_PROMPT)])
        chooser = (await self.send("1,250.50"))[0]
        self.assertIsInstance(chooser, QuickReplyMessage)
        await self.send("🍔 Food")
        confirmation = (await self.send("skip"))[0]

        self.assertIn("Expense added successfully", confirmation.text)
        self.assertEqual(len(self.ledger.expenses), 1)
        expense = self.ledger.expenses[0]
        self.assertEqual(expense.amount, Decimal("1250.50"))
        self.assertEqual(expense.category, ExpenseCategory.FOOD)
        self.assertEqual(expense.description, "")
        self.assertTrue((await self.store.get("u1")).is_idle)

    async def test_failed_create_leaves_user_idle_without_expense(self) -> None:
        self.ledger.fail_create = True
        for text in ["add", "50", "🏠 Bills"]:
            await self.send(text)

        with self.assertLogs("expense_bot.telegram.entry_flow", level="ERROR"):
            replies = await self.send("electricity")

        self.assertIn("Failed to add expense", replies[0].text)
        self.assertEqual(self.ledger.expenses, [])
        self.assertTrue((await self.store.get("u1")).is_idle)

    async def test_period_command_abandons_pending_entry(self) -> None:
        await self.send("add")

        replies = await self.send("month")

        self.assertIn("No expenses recorded for this month.", replies[0].text)
        self.assertTrue((await self.store.get("u1")).is_idle)
        self.assertEqual(await self.send("add"), [TextMessage(AMOUNT_PROMPT)])
        self.assertEqual((await self.store.get("u1")).step, ConversationStep.AWAITING_AMOUNT)

    async def test_add_restarts_flow_at_any_step(self) -> None:
        for text in ["add", "10", "🛒 Shopping"]:
            await self.send(text)

        await self.send("add")

        self.assertEqual(await self.store.get("u1"), ConversationState.awaiting_amount())

    async def test_menu_resets_state(self) -> None:
        await self.send("add")

        replies = await self.send("help")

        self.assertEqual(replies, [TextMessage(MENU_TEXT)])
        self.assertTrue((await self.store.get("u1")).is_idle)

    async def test_free_text_while_idle_gets_hint(self) -> None:
        self.assertEqual(await self.send("hello there"), [TextMessage(UNKNOWN_COMMAND_TEXT)])

    async def test_summary_pages_reply_then_push(self) -> None:
        for index in range(7):
            await self.ledger.create("u1", Decimal(index + 1), "🎁 Others", f"item {index}")

        await self.send("today")

        labels = [label for label, _ in self.log]
        self.assertEqual(labels, ["reply", "push"])
        cards = [message for _, message in self.log]
        self.assertTrue(all(isinstance(card, SummaryCard) for card in cards))
        self.assertEqual(cards[0].title, "Today Expenses (Page 1/2)")
        self.assertEqual(len(cards[0].lines), 5)
        self.assertEqual(len(cards[1].lines), 2)
        self.assertEqual(cards[0].period_total, Decimal("28"))
        self.assertEqual(cards[1].period_total, Decimal("28"))

    async def test_query_failure_reports_error(self) -> None:
        self.ledger.fail_query = True

        with self.assertLogs("expense_bot.telegram.router", level="ERROR"):
            replies = await self.send("week")

        self.assertEqual(replies, [TextMessage(QUERY_FAILED_TEXT)])

    async def test_same_user_events_are_serialised(self) -> None:
        await self.store.set(
            "u1", ConversationState.awaiting_amount().with_amount(Decimal("10")).with_category("🍔 Food")
        )
        self.ledger.create_gate = asyncio.Event()

        first = asyncio.create_task(self.router.handle_event(self.event("lunch")))
        await asyncio.sleep(0)
        second = asyncio.create_task(self.router.handle_event(self.event("add")))
        for _ in range(3):
            await asyncio.sleep(0)
        self.assertEqual(self.log, [])

        self.ledger.create_gate.set()
        await asyncio.gather(first, second)

        self.assertIn("Expense added successfully", self.log[0][1].text)
        self.assertEqual(self.log[1][1], TextMessage(AMOUNT_PROMPT))
        self.assertEqual((await self.store.get("u1")).step, ConversationStep.AWAITING_AMOUNT)

    async def test_batch_failure_does_not_abort_siblings(self) -> None:
        events = [
            self.event("menu", "u1", fail=True),
            self.event("menu", "u2"),
        ]

        with self.assertLogs("expense_bot.telegram.router", level="ERROR"):
            outcomes = await self.router.process_batch(events)

        self.assertEqual([outcome.ok for outcome in outcomes], [False, True])
        self.assertIsInstance(outcomes[0].error, RuntimeError)
        self.assertEqual(self.log, [("reply", TextMessage(MENU_TEXT))])
