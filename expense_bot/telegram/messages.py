from __future__ import annotations

import textwrap
from dataclasses import dataclass
from decimal import Decimal
from typing import Union


@dataclass(frozen=True)
class TextMessage:
    text: str


@dataclass(frozen=True)
class QuickReplyMessage:
    """A prompt answered by picking exactly one of ``options``."""

    text: str
    options: tuple[str, ...]


@dataclass(frozen=True)
class SummaryLine:
    category: str
    amount: str
    description: str
    timestamp: str


@dataclass(frozen=True)
class SummaryCard:
    title: str
    period_total: Decimal
    total_text: str
    lines: tuple[SummaryLine, ...]


OutboundMessage = Union[TextMessage, QuickReplyMessage, SummaryCard]


MENU_TEXT = textwrap.dedent(
    """\
    💰 Expense Manager Bot

    Commands:
    • "add" - Add new expense
    • "today" - Today's expenses
    • "week" - This week's expenses
    • "month" - This month's expenses
    • "menu" - Show this menu

    To add expense, just type "add" and follow the steps!"""
)

UNKNOWN_COMMAND_TEXT = (
    "🤔 I didn't understand that command.\n\n"
    'Type "menu" to see available commands or "add" to add an expense.'
)
AMOUNT_PROMPT = "💵 Enter the expense amount (e.g., 15.50):"
INVALID_AMOUNT_TEXT = "❌ Please enter a valid amount (e.g., 15.50 or 10,000):"
CATEGORY_PROMPT = "Please select:"
DESCRIPTION_PROMPT = '📝 Enter a description for this expense (or type "skip"):'
CREATE_FAILED_TEXT = "❌ Failed to add expense. Please try again."
QUERY_FAILED_TEXT = "❌ Could not load your expenses right now. Please try again later."
NO_DESCRIPTION = "No description"
