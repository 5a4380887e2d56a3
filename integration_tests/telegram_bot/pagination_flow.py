from __future__ import annotations

import asyncio
import logging
import re
import sys
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

PAGE_TITLE_RE = re.compile(r"Today Expenses \(Page (\d+)/(\d+)\)")
EXPENSES_TO_ADD = 6


class PaginationFlowTester:
    """Adds enough expenses for two pages and checks both pages share one total."""

    def __init__(self, interactor: TelegramBotInteractor) -> None:
        self.interactor = interactor

    async def run(self) -> None:
        for index in range(EXPENSES_TO_ADD):
            await self.interactor.send_and_expect("add", "enter the expense amount")
            await self.interactor.send_and_expect(str(index + 1), "please select")
            await self.interactor.send_and_expect("🎁 Others", "enter a description")
            await self.interactor.send_and_expect(f"page test {index}", "expense added successfully")

        first = await self.interactor.send_and_expect("today", "today expenses")
        match = PAGE_TITLE_RE.search(first.raw_text or "")
        if not match:
            raise AssertionError(f"Expected a paginated summary, got: {first.raw_text!r}")
        total_pages = int(match.group(2))

        pages = await self.interactor.collect_after(
            "today",
            lambda m: bool(m.raw_text and PAGE_TITLE_RE.search(m.raw_text)),
            count=total_pages,
        )
        totals = {
            line
            for page in pages
            for line in (page.raw_text or "").splitlines()
            if line.startswith("Total For Period")
        }
        if len(totals) != 1:
            raise AssertionError(f"Pages disagree on the period total: {totals}")
        logger.info("Pagination flow test completed across %s pages", total_pages)


async def main_async() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    config = TestConfig.from_env()
    client = load_client(config)
    await client.connect()
    try:
        await ensure_authorized(client, config)
        interactor = TelegramBotInteractor(client, config.bot_username)
        await interactor.initialise()
        await PaginationFlowTester(interactor).run()
    finally:
        await client.disconnect()


def main() -> None:
    asyncio.run(main_async())


if __name__ == "__main__":
    main()
