import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from .api import api_router
from .config import get_settings
from .db import dispose_db, init_db
from .telegram.bot import init_bot, shutdown_bot

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    await init_bot()
    logger.info("%s is running", settings.app_name)
    try:
        yield
    finally:
        await shutdown_bot()
        await dispose_db()
        logger.info("%s stopped", settings.app_name)


settings = get_settings()
_docs_enabled = settings.environment.lower() != "production"
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
)
app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
