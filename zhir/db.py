"""
Database module for the Zhir assistant API.
Stores users, conversations with their turns, and generated blogs in SQLite.
"""

import sqlite3
import logging
import uuid
from pathlib import Path
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, Generator

from zhir.config import config
from zhir.errors import NotFoundError, StaleConversationError

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Return a new record identifier."""
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    """SQLite database manager for users, conversations and blogs."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or config.DATABASE_PATH
        self._connection: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False
            )
            self._connection.row_factory = sqlite3.Row
            # Enable foreign keys
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    @contextmanager
    def cursor(self) -> Generator[sqlite3.Cursor, None, None]:
        """Context manager for database cursor with auto-commit."""
        conn = self.connect()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """Create database schema if not exists."""
        logger.info("Initializing database at %s", self.db_path)

        with self.cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    auth_id TEXT PRIMARY KEY,
                    coins INTEGER NOT NULL DEFAULT 0 CHECK (coins >= 0),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # version counts appended turns; used for optimistic appends
            cur.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cur.execute("""
                CREATE TABLE IF NOT EXISTS turns (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    user_message TEXT NOT NULL,
                    ai_response TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE (conversation_id, position),
                    FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
                )
            """)

            cur.execute("""
                CREATE TABLE IF NOT EXISTS blogs (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'completed', 'failed')),
                    user_message TEXT,
                    ai_response TEXT,
                    generated_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_owner "
                "ON conversations(owner_id, updated_at)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_turns_conversation ON turns(conversation_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_blogs_owner ON blogs(owner_id, updated_at)")

        logger.info("Database initialized successfully")

    # =========================================================================
    # Users
    # =========================================================================

    def get_user(self, auth_id: str) -> Optional[dict]:
        """Get a user record by auth id."""
        with self.cursor() as cur:
            cur.execute("SELECT * FROM users WHERE auth_id = ?", (auth_id,))
            row = cur.fetchone()
            return dict(row) if row else None

    def get_or_create_user(self, auth_id: str, initial_coins: int = 0) -> dict:
        """Return the user record, creating it with ``initial_coins`` on first sight."""
        now = _now()
        with self.cursor() as cur:
            cur.execute("""
                INSERT OR IGNORE INTO users (auth_id, coins, created_at, updated_at)
                VALUES (?, ?, ?, ?)
            """, (auth_id, initial_coins, now, now))
            if cur.rowcount:
                logger.info("Created user record for %s", auth_id)
            cur.execute("SELECT * FROM users WHERE auth_id = ?", (auth_id,))
            return dict(cur.fetchone())

    def spend_coins(self, auth_id: str, amount: int) -> bool:
        """Atomically deduct ``amount`` coins. Returns False if the balance is too low."""
        with self.cursor() as cur:
            cur.execute("""
                UPDATE users SET coins = coins - ?, updated_at = ?
                WHERE auth_id = ? AND coins >= ?
            """, (amount, _now(), auth_id, amount))
            return cur.rowcount > 0

    def add_coins(self, auth_id: str, amount: int) -> Optional[dict]:
        """Credit ``amount`` coins to an existing user and return the record."""
        with self.cursor() as cur:
            cur.execute("""
                UPDATE users SET coins = coins + ?, updated_at = ?
                WHERE auth_id = ?
            """, (amount, _now(), auth_id))
            if cur.rowcount == 0:
                return None
            cur.execute("SELECT * FROM users WHERE auth_id = ?", (auth_id,))
            return dict(cur.fetchone())

    # =========================================================================
    # Conversations
    # =========================================================================

    def create_conversation(
        self,
        owner_id: str,
        title: str,
        conversation_id: Optional[str] = None,
    ) -> dict:
        """Create an empty conversation and return it."""
        with self.cursor() as cur:
            conversation = self._insert_conversation(cur, conversation_id or new_id(), owner_id, title)
        conversation["turns"] = []
        return conversation

    @staticmethod
    def _insert_conversation(cur: sqlite3.Cursor, conversation_id: str, owner_id: str, title: str) -> dict:
        now = _now()
        cur.execute("""
            INSERT INTO conversations (id, owner_id, title, version, created_at, updated_at)
            VALUES (?, ?, ?, 0, ?, ?)
        """, (conversation_id, owner_id, title, now, now))
        return {
            "id": conversation_id,
            "owner_id": owner_id,
            "title": title,
            "version": 0,
            "created_at": now,
            "updated_at": now,
        }

    def get_conversation(self, conversation_id: str, owner_id: str) -> Optional[dict]:
        """Get a conversation owned by ``owner_id`` with its turns in order."""
        with self.cursor() as cur:
            cur.execute(
                "SELECT * FROM conversations WHERE id = ? AND owner_id = ?",
                (conversation_id, owner_id),
            )
            row = cur.fetchone()
            if not row:
                return None

            cur.execute("""
                SELECT position, user_message, ai_response, created_at
                FROM turns
                WHERE conversation_id = ?
                ORDER BY position
            """, (conversation_id,))
            turns = [dict(t) for t in cur.fetchall()]

        return {**dict(row), "turns": turns}

    def list_conversations(self, owner_id: str) -> list[dict]:
        """List conversations, most recently updated first, with the last user message."""
        with self.cursor() as cur:
            cur.execute("""
                SELECT
                    c.id,
                    c.title,
                    c.updated_at,
                    (
                        SELECT t.user_message FROM turns t
                        WHERE t.conversation_id = c.id
                        ORDER BY t.position DESC
                        LIMIT 1
                    ) AS last_message
                FROM conversations c
                WHERE c.owner_id = ?
                ORDER BY c.updated_at DESC, c.rowid DESC
            """, (owner_id,))
            return [dict(row) for row in cur.fetchall()]

    def delete_conversation(self, conversation_id: str, owner_id: str) -> bool:
        """Delete a conversation and its turns. Returns True if deleted."""
        with self.cursor() as cur:
            cur.execute(
                "DELETE FROM conversations WHERE id = ? AND owner_id = ?",
                (conversation_id, owner_id),
            )
            return cur.rowcount > 0

    def append_turn(
        self,
        conversation_id: str,
        owner_id: str,
        user_message: str,
        ai_response: str,
        *,
        title: Optional[str] = None,
        create: bool = False,
        expected_version: Optional[int] = None,
    ) -> dict:
        """
        Append one turn to a conversation in a single transaction.

        Args:
            conversation_id: Target conversation.
            owner_id: Owner the conversation must belong to.
            user_message: The user's message.
            ai_response: The full assistant response.
            title: When given, replaces the conversation title.
            create: Insert the conversation first (with ``title``).
            expected_version: When given, the append only succeeds if the
                conversation still has exactly this many turns.

        Returns:
            The appended turn.

        Raises:
            NotFoundError: The conversation does not exist for this owner.
            StaleConversationError: ``expected_version`` no longer matches.
        """
        now = _now()
        with self.cursor() as cur:
            if create:
                self._insert_conversation(cur, conversation_id, owner_id, title or "")

            query = """
                UPDATE conversations
                SET version = version + 1,
                    updated_at = ?,
                    title = COALESCE(?, title)
                WHERE id = ? AND owner_id = ?
            """
            params: list = [now, title, conversation_id, owner_id]
            if expected_version is not None:
                query += " AND version = ?"
                params.append(expected_version)
            cur.execute(query, params)

            if cur.rowcount == 0:
                cur.execute(
                    "SELECT version FROM conversations WHERE id = ? AND owner_id = ?",
                    (conversation_id, owner_id),
                )
                if cur.fetchone() is None:
                    raise NotFoundError("Chat not found", error_code="CHAT_NOT_FOUND")
                raise StaleConversationError(conversation_id, expected_version)

            cur.execute("SELECT version FROM conversations WHERE id = ?", (conversation_id,))
            position = cur.fetchone()["version"]

            cur.execute("""
                INSERT INTO turns (conversation_id, position, user_message, ai_response, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (conversation_id, position, user_message, ai_response, now))

        return {
            "position": position,
            "user_message": user_message,
            "ai_response": ai_response,
            "created_at": now,
        }

    # =========================================================================
    # Blogs
    # =========================================================================

    def create_blog(
        self,
        owner_id: str,
        title: str,
        status: str = "pending",
        user_message: Optional[str] = None,
        ai_response: Optional[str] = None,
    ) -> dict:
        """Create a blog record and return it."""
        blog_id = new_id()
        now = _now()
        generated_at = now if ai_response is not None else None
        with self.cursor() as cur:
            cur.execute("""
                INSERT INTO blogs (
                    id, owner_id, title, status, user_message, ai_response,
                    generated_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (blog_id, owner_id, title, status, user_message, ai_response, generated_at, now, now))
        return self.get_blog(blog_id, owner_id)

    def get_blog(self, blog_id: str, owner_id: str) -> Optional[dict]:
        """Get a blog owned by ``owner_id``."""
        with self.cursor() as cur:
            cur.execute("SELECT * FROM blogs WHERE id = ? AND owner_id = ?", (blog_id, owner_id))
            row = cur.fetchone()
            return dict(row) if row else None

    def list_blogs(self, owner_id: str) -> list[dict]:
        """List blogs, most recently updated first."""
        with self.cursor() as cur:
            cur.execute("""
                SELECT id, title, status, user_message, updated_at
                FROM blogs
                WHERE owner_id = ?
                ORDER BY updated_at DESC, rowid DESC
            """, (owner_id,))
            return [dict(row) for row in cur.fetchall()]

    def update_blog(
        self,
        blog_id: str,
        owner_id: str,
        *,
        status: str,
        title: Optional[str] = None,
        user_message: Optional[str] = None,
        ai_response: Optional[str] = None,
    ) -> Optional[dict]:
        """Update a blog's status and, optionally, its content."""
        now = _now()
        generated_at = now if ai_response is not None else None
        with self.cursor() as cur:
            cur.execute("""
                UPDATE blogs
                SET status = ?,
                    title = COALESCE(?, title),
                    user_message = COALESCE(?, user_message),
                    ai_response = COALESCE(?, ai_response),
                    generated_at = COALESCE(?, generated_at),
                    updated_at = ?
                WHERE id = ? AND owner_id = ?
            """, (status, title, user_message, ai_response, generated_at, now, blog_id, owner_id))
            if cur.rowcount == 0:
                return None
        return self.get_blog(blog_id, owner_id)

    def delete_blog(self, blog_id: str, owner_id: str) -> bool:
        """Delete a blog. Returns True if deleted."""
        with self.cursor() as cur:
            cur.execute("DELETE FROM blogs WHERE id = ? AND owner_id = ?", (blog_id, owner_id))
            return cur.rowcount > 0

    def get_stats(self) -> dict:
        """Get database statistics."""
        with self.cursor() as cur:
            cur.execute("SELECT COUNT(*) as count FROM users")
            user_count = cur.fetchone()["count"]

            cur.execute("SELECT COUNT(*) as count FROM conversations")
            conversation_count = cur.fetchone()["count"]

            cur.execute("SELECT COUNT(*) as count FROM turns")
            turn_count = cur.fetchone()["count"]

            cur.execute("SELECT COUNT(*) as count FROM blogs")
            blog_count = cur.fetchone()["count"]

            return {
                "user_count": user_count,
                "conversation_count": conversation_count,
                "turn_count": turn_count,
                "blog_count": blog_count,
            }


# Singleton database instance
db = Database()
