"""
End-to-end tests for the FastAPI application.
Tests all API endpoints with a real test client.
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from zhir.config import Config
from zhir.db import db, new_id
from zhir.framing import EndFrame, StartFrame, StreamDecoder, TextChunk, encode_end
from zhir.main import app, lifespan

from conftest import StubProvider


@pytest.fixture(scope="module")
def client():
    """Create a test client; the lifespan initializes the session database."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def user_id() -> str:
    """A fresh principal per test so tests do not see each other's data."""
    return f"auth0|{new_id()}"


@pytest.fixture
def headers(user_id) -> dict:
    return {"X-User-Id": user_id}


def decode(body: str) -> tuple[str, str, bool]:
    """Return (conversation id, text, completed) for a streamed body."""
    decoder = StreamDecoder()
    frames = decoder.feed(body) + decoder.close()
    conversation_id = next(f.conversation_id for f in frames if isinstance(f, StartFrame))
    text = "".join(f.text for f in frames if isinstance(f, TextChunk))
    return conversation_id, text, any(isinstance(f, EndFrame) for f in frames)


def stream(client, headers, provider, **payload):
    with patch("zhir.llm.get_llm_provider", return_value=provider):
        return client.post("/api/openai/chat", json=payload, headers=headers)


class TestHealthEndpoint:
    """Tests for GET /health endpoint."""

    def test_health_returns_200(self, client):
        with patch("zhir.llm.check_provider_availability",
                   AsyncMock(return_value={"available": True})):
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert set(data["providers"]) == {"openai", "gemini", "ollama", "anthropic"}
        assert "conversation_count" in data["stats"]

    def test_health_is_public(self, client):
        with patch.object(Config, "ZHIR_API_KEY", "secret"), \
                patch("zhir.llm.check_provider_availability",
                      AsyncMock(return_value={"available": False, "error": "down"})):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["providers"]["openai"]["error"] == "down"


class TestAuthentication:
    """Tests for principal and API key checks."""

    def test_missing_user_is_unauthorized(self, client):
        response = client.post("/api/openai/chat", json={"message": "Hello"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "code": "UNAUTHORIZED"}

    def test_api_key_required_when_configured(self, client, headers):
        with patch.object(Config, "ZHIR_API_KEY", "secret"):
            missing = client.get("/api/chats", headers=headers)
            wrong = client.get("/api/chats", headers={**headers, "X-API-Key": "nope"})
            right = client.get("/api/chats", headers={**headers, "X-API-Key": "secret"})

        assert missing.status_code == 401
        assert wrong.status_code == 403
        assert right.status_code == 200


class TestChatStreamEndpoint:
    """Tests for POST /api/openai/chat."""

    def test_new_conversation(self, client, headers):
        provider = StubProvider(["Hi", " there", "!"])
        response = stream(client, headers, provider, message="Hello")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.endswith(encode_end())

        conversation_id, text, completed = decode(response.text)
        assert text == "Hi there!"
        assert completed is True

        stored = client.get(f"/api/chat/{conversation_id}", headers=headers).json()
        assert stored["title"] == "Hello"
        assert [(t["user_message"], t["ai_response"]) for t in stored["turns"]] == [
            ("Hello", "Hi there!")
        ]

    def test_continue_with_chat_id_alias(self, client, headers):
        first = stream(client, headers, StubProvider(["One"]), message="First")
        conversation_id, _, _ = decode(first.text)

        provider = StubProvider(["Two"])
        second = stream(client, headers, provider, message="Second", chatId=conversation_id)

        assert decode(second.text)[0] == conversation_id
        assert provider.calls[0][1:] == [
            {"role": "user", "content": "First"},
            {"role": "assistant", "content": "One"},
            {"role": "user", "content": "Second"},
        ]
        stored = client.get(f"/api/chat/{conversation_id}", headers=headers).json()
        assert len(stored["turns"]) == 2

    def test_message_too_long(self, client, headers):
        provider = StubProvider()
        response = stream(client, headers, provider, message="x" * 201)

        assert response.status_code == 400
        assert response.json()["error"] == "Message too long"
        assert response.json()["code"] == "MESSAGE_TOO_LONG"
        assert provider.calls == []
        assert client.get("/api/chats", headers=headers).json()["count"] == 0

    def test_message_must_be_a_string(self, client, headers):
        response = stream(client, headers, StubProvider(), message=["not", "text"])

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_MESSAGE"

    def test_unknown_conversation_starts_new_one(self, client, headers):
        """An unknown chatId streams into a freshly created conversation."""
        unknown = new_id()
        response = stream(client, headers, StubProvider(["Hi"]), message="Hello", chatId=unknown)

        assert response.status_code == 200
        assert response.text.startswith("__START__")
        conversation_id, text, completed = decode(response.text)
        assert conversation_id != unknown
        assert (text, completed) == ("Hi", True)

        stored = client.get(f"/api/chat/{conversation_id}", headers=headers).json()
        assert stored["title"] == "Hello"
        assert client.get(f"/api/chat/{unknown}", headers=headers).status_code == 404

    def test_unknown_conversation_without_fallback(self, client, headers):
        with patch.object(Config, "CHAT_FALLBACK_TO_NEW", False):
            response = stream(client, headers, StubProvider(), message="Hi", conversationId=new_id())

        assert response.status_code == 404
        assert response.json()["code"] == "CHAT_NOT_FOUND"

    def test_provider_not_configured(self, client, headers):
        with patch("zhir.llm.get_llm_provider", side_effect=ValueError("OPENAI_API_KEY must be set")):
            response = client.post("/api/openai/chat", json={"message": "Hi"}, headers=headers)

        assert response.status_code == 503
        assert response.json()["code"] == "PROVIDER_UNAVAILABLE"

    def test_upstream_failure_stores_nothing(self, client, headers):
        """The body is cut off without an end frame and no turn is stored."""
        provider = StubProvider(["partial", " answer"], fail_after=1)

        with TestClient(app, raise_server_exceptions=False) as quiet:
            response = stream(quiet, headers, provider, message="Hello")

        _, text, completed = decode(response.text)
        assert text == "partial"
        assert completed is False

        assert client.get("/api/chats", headers=headers).json()["count"] == 0


class TestConversationEndpoints:
    """Tests for conversation CRUD routes."""

    def test_new_and_list(self, client, headers):
        created = client.post("/api/chat/new", headers=headers).json()["chat"]
        listed = client.get("/api/chats", headers=headers).json()

        assert created["title"] == "New Chat"
        assert listed["conversations"][0]["id"] == created["id"]
        assert listed["conversations"][0]["last_message"] == "No messages"

    def test_get_invalid_id(self, client, headers):
        response = client.get("/api/chat/not-an-id", headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid chat ID format"

    def test_other_users_chat_is_not_found(self, client, headers):
        created = client.post("/api/chat/new", headers=headers).json()["chat"]
        response = client.get(f"/api/chat/{created['id']}", headers={"X-User-Id": "someone-else"})

        assert response.status_code == 404

    def test_delete(self, client, headers):
        created = client.post("/api/chat/new", headers=headers).json()["chat"]

        response = client.delete(f"/api/chat/{created['id']}", headers=headers)

        assert response.json() == {"message": "Chat deleted successfully"}
        assert client.get(f"/api/chat/{created['id']}", headers=headers).status_code == 404

    def test_save_turn(self, client, headers):
        response = client.post(
            "/api/chat",
            json={"userMessage": "Saved question", "aiResponse": "Saved answer"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["turns"][0]["ai_response"] == "Saved answer"


class TestBlogEndpoints:
    """Tests for blog generation and CRUD routes."""

    def test_auth_creates_user(self, client, headers, user_id):
        response = client.get("/api/auth", headers=headers)

        assert response.status_code == 200
        assert response.json()["auth_id"] == user_id
        assert response.json()["coins"] == Config.SIGNUP_COINS

    def test_new_blog_without_credits(self, client, headers):
        response = client.post("/api/blog/new", headers=headers)

        assert response.status_code == 402
        assert response.json()["error"] == "Insufficient coins. Please purchase more credits."

    def test_generate_blog(self, client, headers, user_id):
        client.get("/api/auth", headers=headers)
        db.add_coins(user_id, 1)

        with patch("zhir.llm.get_llm_provider", return_value=StubProvider(reply="# Post")):
            response = client.post(
                "/api/openai/blog",
                json={"title": "Post", "description": "About things"},
                headers=headers,
            )

        assert response.status_code == 200
        blog_id = response.json()["id"]
        blog = client.get(f"/api/blog/{blog_id}", headers=headers).json()
        assert blog["status"] == "completed"
        assert blog["ai_response"] == "# Post"
        assert client.get("/api/auth", headers=headers).json()["coins"] == 0

        listed = client.get("/api/blogs", headers=headers).json()
        assert [b["id"] for b in listed["blogs"]] == [blog_id]

    def test_save_and_delete_blog(self, client, headers, user_id):
        client.get("/api/auth", headers=headers)
        db.add_coins(user_id, 1)

        pending = client.post("/api/blog/new", headers=headers).json()
        saved = client.post(
            "/api/blog",
            json={"userMessage": "About bread", "aiResponse": "# Bread", "blogId": pending["id"]},
            headers=headers,
        )
        again = client.post(
            "/api/blog",
            json={"userMessage": "About bread", "aiResponse": "# Bread", "blogId": pending["id"]},
            headers=headers,
        )
        deleted = client.delete(f"/api/blog/{pending['id']}", headers=headers)

        assert saved.json()["status"] == "completed"
        assert again.status_code == 400
        assert again.json()["code"] == "BLOG_ALREADY_COMPLETED"
        assert deleted.json() == {"message": "Blog deleted successfully"}


class TestLifespan:
    """Tests for application startup."""

    @pytest.mark.asyncio
    async def test_startup_logs_active_model(self, monkeypatch, caplog):
        monkeypatch.setattr(Config, "LLM_PROVIDER", "ollama")
        monkeypatch.setattr(Config, "OLLAMA_MODEL", "llama3.1")

        with patch("zhir.main.db") as mock_db, caplog.at_level(logging.INFO, logger="zhir.main"):
            async with lifespan(app):
                mock_db.initialize.assert_called_once()

        mock_db.close.assert_called_once()
        assert "LLM provider: ollama, model: llama3.1" in caplog.text

    @pytest.mark.asyncio
    async def test_startup_rejects_unknown_provider(self, monkeypatch):
        monkeypatch.setattr(Config, "LLM_PROVIDER", "mystery")

        with patch("zhir.main.db"):
            with pytest.raises(ValueError, match="Unknown LLM provider"):
                async with lifespan(app):
                    pass
