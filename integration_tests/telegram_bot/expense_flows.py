from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

CURRENT_DIR = Path(__file__).resolve().parents[2]
if str(CURRENT_DIR) not in sys.path:
    sys.path.insert(0, str(CURRENT_DIR))

from integration_tests.telegram_bot.common import (  # noqa: E402
    TelegramBotInteractor,
    TestConfig,
    ensure_authorized,
    load_client,
)

logger = logging.getLogger(__name__)


class ExpenseFlowsTester:
    def __init__(self, interactor: TelegramBotInteractor) -> None:
        self.interactor = interactor

    async def run(self) -> None:
        stamp = datetime.now(timezone.utc).strftime("%H%M%S")

        await self.interactor.send_and_expect("/start", "expense manager bot")
        await self.interactor.send_and_expect("menu", "commands:")

        await self.interactor.send_and_expect("add", "enter the expense amount")
        await self.interactor.send_and_expect("not a number", "please enter a valid amount")
        await self.interactor.send_and_expect("1,250.50", "please select")
        await self.interactor.send_and_expect("Food", "please select")
        await self.interactor.send_and_expect("🍔 Food", "enter a description")
        await self.interactor.send_and_expect("skip", "expense added successfully")

        await self.interactor.send_and_expect("add", "enter the expense amount")
        await self.interactor.send_and_expect("42", "please select")
        await self.interactor.send_and_expect("🚗 Transport", "enter a description")
        await self.interactor.send_and_expect(f"integration taxi {stamp}", "expense added successfully")

        await self.interactor.send_and_expect("today", "today expenses")
        await self.interactor.send_and_expect("WEEK", ["week expenses", "no expenses recorded"])

        # A period command in the middle of an entry abandons it.
        await self.interactor.send_and_expect("add", "enter the expense amount")
        await self.interactor.send_and_expect("month", ["month expenses", "no expenses recorded"])
        await self.interactor.send_and_expect("99", "didn't understand")

        await self.interactor.send_and_expect("hello bot", "didn't understand")
        logger.info("Expense bot flow test completed successfully")


async def main_async() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    config = TestConfig.from_env()
    client = load_client(config)
    await client.connect()
    try:
        await ensure_authorized(client, config)
        interactor = TelegramBotInteractor(client, config.bot_username)
        await interactor.initialise()
        await ExpenseFlowsTester(interactor).run()
    finally:
        await client.disconnect()


def main() -> None:
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
