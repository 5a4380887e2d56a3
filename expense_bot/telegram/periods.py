"""Resolution of named periods (today/week/month) into concrete time ranges.

Boundaries are computed in the user's local zone: days start at midnight,
weeks start on Monday and months follow the calendar. Both ends of a range are
inclusive, the end being the last microsecond of the period.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


class PeriodKind(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


PERIOD_TOKENS = frozenset(kind.value for kind in PeriodKind)


class InvalidPeriodError(ValueError):
    """Raised for a period token other than today, week or month."""


@dataclass(frozen=True)
class Period:
    kind: PeriodKind
    start: datetime
    end: datetime

    @property
    def label(self) -> str:
        return self.kind.value.capitalize()

    @property
    def phrase(self) -> str:
        return "today" if self.kind is PeriodKind.TODAY else f"this {self.kind.value}"


def load_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r; period boundaries fall back to UTC.", name)
        return timezone.utc


def _day_start(day, zone: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=zone)


def _day_end(day, zone: tzinfo) -> datetime:
    return datetime.combine(day, time.max, tzinfo=zone)


class PeriodResolver:
    def __init__(self, zone: tzinfo) -> None:
        self.zone = zone

    def now(self) -> datetime:
        return datetime.now(self.zone)

    def resolve(self, token: str, now: datetime | None = None) -> Period:
        try:
            kind = PeriodKind(token.strip().lower())
        except ValueError as exc:
            raise InvalidPeriodError(f"Unknown period '{token}'.") from exc

        current = (now or self.now()).astimezone(self.zone)
        today = current.date()
        if kind is PeriodKind.TODAY:
            first, last = today, today
        elif kind is PeriodKind.WEEK:
            first = today - timedelta(days=today.weekday())
            last = first + timedelta(days=6)
        else:
            first = today.replace(day=1)
            last = today.replace(day=calendar.monthrange(today.year, today.month)[1])
        return Period(kind=kind, start=_day_start(first, self.zone), end=_day_end(last, self.zone))
