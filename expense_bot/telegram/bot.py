from __future__ import annotations

import asyncio
import contextlib
import html
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from telegram import Bot, BotCommand, Message, ReplyKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.ext import AIORateLimiter, Application

from ..config import Settings, get_settings
from ..db import SessionLocal
from ..services.ledger import ExpenseLedger
from .api_client import ExpenseApiClient
from .dispatcher import MessageDispatcher
from .entry_flow import ExpenseEntryFlow
from .messages import OutboundMessage, QuickReplyMessage, SummaryCard, TextMessage
from .periods import PeriodResolver, load_timezone
from .router import EventOutcome, EventRouter, InboundEvent
from .state import ConversationStateStore, DatabaseConversationStorage, InMemoryConversationStorage
from .summary import SummaryAggregator

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message"]
BOT_COMMANDS = [
    BotCommand("start", "Show the command menu"),
    BotCommand("add", "Add a new expense"),
    BotCommand("today", "Today's expenses"),
    BotCommand("week", "This week's expenses"),
    BotCommand("month", "This month's expenses"),
    BotCommand("menu", "Show the command menu"),
]
CARD_SEPARATOR = "──────────────"


def render_message(message: OutboundMessage) -> dict[str, Any]:
    """Keyword arguments for ``send_message``/``reply_text`` for one outbound message."""
    if isinstance(message, TextMessage):
        return {"text": message.text}
    if isinstance(message, QuickReplyMessage):
        keyboard = [[option] for option in message.options]
        return {
            "text": message.text,
            "reply_markup": ReplyKeyboardMarkup(
                keyboard, one_time_keyboard=True, resize_keyboard=True
            ),
        }
    if isinstance(message, SummaryCard):
        return {"text": _render_summary_card(message), "parse_mode": ParseMode.HTML}
    raise TypeError(f"Unsupported outbound message: {type(message).__name__}")


def _render_summary_card(card: SummaryCard) -> str:
    lines = [
        f"<b>{html.escape(card.title)}</b>",
        f"<b>Total For Period:</b> {html.escape(card.total_text)}",
        CARD_SEPARATOR,
    ]
    for item in card.lines:
        lines.append(f"<b>{html.escape(item.category)}</b>  {html.escape(item.amount)}")
        lines.append(f"<i>{html.escape(item.description)}</i>  {html.escape(item.timestamp)}")
    return "\n".join(lines)


class TelegramReplyHandle:
    def __init__(self, message: Message) -> None:
        self.message = message

    async def send(self, message: OutboundMessage) -> None:
        await self.message.reply_text(**render_message(message))


class TelegramPushChannel:
    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def push(self, user_id: str, messages: Sequence[OutboundMessage]) -> None:
        for message in messages:
            await self.bot.send_message(chat_id=user_id, **render_message(message))


def events_from_updates(updates: Iterable[Update]) -> list[InboundEvent]:
    """Text messages become inbound events; every other update kind is ignored."""
    events: list[InboundEvent] = []
    for update in updates:
        message = update.message
        user = update.effective_user
        if message is None or user is None or message.text is None:
            continue
        events.append(
            InboundEvent(
                reply_handle=TelegramReplyHandle(message),
                user_id=str(user.id),
                text=message.text,
            )
        )
    return events


def _create_state_store(settings: Settings) -> ConversationStateStore:
    if settings.conversation_state_backend == "database":
        return ConversationStateStore(DatabaseConversationStorage(SessionLocal))
    return ConversationStateStore(InMemoryConversationStorage())


def build_router(settings: Settings, ledger: ExpenseLedger, bot: Bot) -> EventRouter:
    zone = load_timezone(settings.user_timezone)
    resolver = PeriodResolver(zone)
    return EventRouter(
        store=_create_state_store(settings),
        entry_flow=ExpenseEntryFlow(ledger, currency_symbol=settings.currency_symbol),
        aggregator=SummaryAggregator(ledger, resolver),
        dispatcher=MessageDispatcher(TelegramPushChannel(bot)),
        zone=zone,
        currency_symbol=settings.currency_symbol,
    )


_application: Application | None = None
_api_client: ExpenseApiClient | None = None
_router: EventRouter | None = None
_lock = asyncio.Lock()


def _create_application(token: str) -> Application:
    return Application.builder().token(token).rate_limiter(AIORateLimiter()).build()


async def init_bot() -> None:
    """Initialise the Telegram bot and register the webhook."""
    settings = get_settings()
    if not settings.telegram_bot_token or not settings.telegram_webhook_secret:
        logger.info("Telegram bot or webhook secret not configured; skipping bot initialisation.")
        return
    if not settings.backend_base_url:
        logger.warning("BACKEND_BASE_URL is missing; skipping Telegram webhook setup.")
        return

    base_url = str(settings.backend_base_url)
    webhook_url = base_url.rstrip("/") + f"/api/telegram/webhook/{settings.telegram_webhook_secret}"
    api_base_url = str(settings.internal_backend_base_url or settings.backend_base_url)

    async with _lock:
        global _application, _api_client, _router
        if _application is not None:
            return

        api_client = ExpenseApiClient(api_base_url)
        application = _create_application(settings.telegram_bot_token)

        try:
            await application.initialize()
            await application.start()
            try:
                await application.bot.set_my_commands(BOT_COMMANDS)
            except Exception:
                logger.exception("Failed to set Telegram command list.")
            if settings.telegram_register_webhook_on_start:
                await application.bot.set_webhook(
                    url=webhook_url, drop_pending_updates=False, allowed_updates=ALLOWED_UPDATES
                )
        except Exception:
            logger.exception("Failed to initialise Telegram webhook; bot disabled for this run.")
            with contextlib.suppress(Exception):
                await application.stop()
            with contextlib.suppress(Exception):
                await application.shutdown()
            await api_client.aclose()
            return

        _application = application
        _api_client = api_client
        _router = build_router(settings, api_client, application.bot)
        logger.info("Telegram webhook configured at %s", webhook_url)


async def handle_updates(payload: dict[str, Any] | list[dict[str, Any]]) -> list[EventOutcome]:
    """Process one Telegram update, or a batch of them, forwarded by FastAPI."""
    async with _lock:
        if _application is None or _router is None:
            raise RuntimeError("Telegram bot is not initialised.")
        application = _application
        router = _router
    raw_updates = payload if isinstance(payload, list) else [payload]
    updates = [Update.de_json(item, application.bot) for item in raw_updates]
    outcomes = await router.process_batch(events_from_updates(updates))
    failed = sum(1 for outcome in outcomes if not outcome.ok)
    if failed:
        logger.warning("%d of %d events in webhook batch failed", failed, len(outcomes))
    return outcomes


async def shutdown_bot() -> None:
    """Tear down the Telegram bot and release the ledger client."""
    async with _lock:
        global _application, _api_client, _router
        if _application is None:
            return
        await _application.stop()
        await _application.shutdown()
        if _api_client:
            await _api_client.aclose()
        _application = None
        _api_client = None
        _router = None
