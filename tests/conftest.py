"""
Pytest configuration and shared fixtures for Zhir tests.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator, Optional

# Settings are read when zhir.config is first imported
_SESSION_DIR = Path(tempfile.mkdtemp(prefix="zhir-tests-"))
os.environ["DATABASE_PATH"] = str(_SESSION_DIR / "api.db")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ZHIR_API_KEY"] = ""
os.environ["APP_ENV"] = "production"
os.environ["CHAT_FALLBACK_TO_NEW"] = "true"
os.environ["SIGNUP_COINS"] = "0"

import pytest

from zhir.db import Database
from zhir.llm import ChatResult, LLMProvider, TokenUsage


class StubProvider(LLMProvider):
    """Provider that replays canned fragments and records what it was sent."""

    name = "stub"

    def __init__(
        self,
        fragments: Optional[list[str]] = None,
        fail_after: Optional[int] = None,
        reply: str = "Generated post",
        usage: Optional[TokenUsage] = None,
    ):
        self.fragments = fragments if fragments is not None else ["Hello", ", ", "world"]
        self.fail_after = fail_after
        self.reply = reply
        self.usage = usage or TokenUsage()
        self.calls: list[list[dict]] = []
        self.closed = False

    async def chat(self, messages, temperature=None, max_tokens=None) -> str:
        self.calls.append(messages)
        if self.fail_after is not None:
            raise RuntimeError("upstream unavailable")
        return self.reply

    async def chat_with_usage(self, messages, temperature=None, max_tokens=None) -> ChatResult:
        content = await self.chat(messages, temperature, max_tokens)
        return ChatResult(content=content, usage=self.usage)

    async def stream_chat(self, messages, temperature=None, max_tokens=None):
        self.calls.append(messages)
        try:
            for index, fragment in enumerate(self.fragments):
                if self.fail_after is not None and index >= self.fail_after:
                    raise RuntimeError("upstream dropped the connection")
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise RuntimeError("upstream dropped the connection")
        finally:
            self.closed = True


@pytest.fixture(scope="session", autouse=True)
def _session_dir() -> Generator[Path, None, None]:
    yield _SESSION_DIR
    shutil.rmtree(_SESSION_DIR, ignore_errors=True)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def temp_db(temp_dir: Path) -> Generator[Database, None, None]:
    """Create a temporary database for tests."""
    db_path = temp_dir / "test.db"
    database = Database(db_path)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def stub_provider() -> StubProvider:
    """A provider that streams "Hello, world" in three fragments."""
    return StubProvider()


@pytest.fixture
def make_provider():
    """Factory for providers with custom fragments or failures."""
    return StubProvider
