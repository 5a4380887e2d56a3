from .base import Base
from .conversation_state import ConversationStateRecord
from .expense import Expense

__all__ = [
    "Base",
    "ConversationStateRecord",
    "Expense",
]
