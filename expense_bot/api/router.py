from fastapi import APIRouter

from . import expenses, telegram

api_router = APIRouter()
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(telegram.router, prefix="/telegram", tags=["telegram"])
