"""
User service: the per-user record that carries the credit balance.
"""

import logging
from typing import Optional

from zhir.config import Config
from zhir.db import Database, db

logger = logging.getLogger(__name__)


class UserService:
    """Looks up users, creating their record on first sight."""

    def __init__(self, store: Optional[Database] = None):
        self._store = store

    @property
    def store(self) -> Database:
        return self._store or db

    def ensure_user(self, auth_id: str) -> dict:
        """Return the user record for ``auth_id``, creating it if needed."""
        return self.store.get_or_create_user(auth_id, initial_coins=Config.SIGNUP_COINS)


# Singleton
user_service = UserService()
