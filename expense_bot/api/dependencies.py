from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..db import get_db
from ..telegram.periods import PeriodResolver, load_timezone


SessionDep = Annotated[AsyncSession, Depends(get_db)]


def get_period_resolver() -> PeriodResolver:
    return PeriodResolver(load_timezone(get_settings().user_timezone))


ResolverDep = Annotated[PeriodResolver, Depends(get_period_resolver)]
