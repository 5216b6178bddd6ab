"""Database module for MentorMind.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from mentormind.db.engine import create_db_engine, get_engine
from mentormind.db.models import Base, CoinAccount, CoinTransaction, UserApiKey
from mentormind.db.session import create_session_factory, get_session_factory, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "create_session_factory",
    "get_session_factory",
    "transaction",
    # Models
    "Base",
    "UserApiKey",
    "CoinAccount",
    "CoinTransaction",
]
