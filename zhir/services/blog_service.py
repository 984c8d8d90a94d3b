"""
Blog service: metered, non-streaming blog post generation.

Generating a post costs ``BLOG_COST`` credits. Credits are only spent after
the provider returned a post, and the spend is atomic so a concurrent request
cannot take the balance below zero.
"""

import logging
from typing import Callable, Optional

from zhir import llm
from zhir.config import Config
from zhir.db import Database, db
from zhir.errors import (
    InsufficientCreditsError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from zhir.services.conversation_service import validate_record_id
from zhir.services.user_service import UserService

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Blog"

# Blog actions need a positive balance even when they cost nothing
MIN_BALANCE = 1

_SYSTEM_PROMPT = "You write clear, well-structured, high-quality blog posts."

_BLOG_PROMPT = """Write a complete, professional and search-friendly blog post.

Title: "{title}"
Description: "{description}"

Use rich Markdown:
- one H1 with the title
- an introduction (H2)
- main sections (H2) with subsections (H3) where useful
- bullet lists and quotes where they help the reader
- a short conclusion

Keep it engaging and readable, and give examples when relevant.
Do not include metadata, disclaimers, author information or HTML.

Return only the Markdown content of the post."""


class BlogService:
    """Generates and manages a user's blog posts."""

    def __init__(
        self,
        store: Optional[Database] = None,
        provider_factory: Optional[Callable[[], llm.LLMProvider]] = None,
    ):
        self._store = store
        self._provider_factory = provider_factory

    @property
    def store(self) -> Database:
        return self._store or db

    def _users(self) -> UserService:
        return UserService(self.store)

    def _provider(self) -> llm.LLMProvider:
        try:
            if self._provider_factory is not None:
                return self._provider_factory()
            return llm.get_llm_provider()
        except ValueError as e:
            raise ProviderError(f"LLM provider unavailable: {e}") from e

    def _require_credits(self, owner_id: str, amount: int) -> dict:
        user = self._users().ensure_user(owner_id)
        if user["coins"] < MIN_BALANCE:
            raise InsufficientCreditsError(balance=user["coins"], required=MIN_BALANCE)
        if user["coins"] < amount:
            raise InsufficientCreditsError(balance=user["coins"], required=amount)
        return user

    def create_pending(self, owner_id: str) -> dict:
        """Reserve an empty blog record for a post about to be written."""
        self._require_credits(owner_id, Config.BLOG_COST)
        blog = self.store.create_blog(owner_id=owner_id, title=DEFAULT_TITLE, status="pending")
        logger.info("Created pending blog %s for %s", blog["id"], owner_id)
        return {"id": blog["id"]}

    async def generate(
        self,
        owner_id: str,
        title: str,
        description: str,
        blog_id: Optional[str] = None,
    ) -> dict:
        """
        Generate a blog post and store it as completed.

        Args:
            owner_id: The authenticated principal.
            title: Post title.
            description: What the post should cover.
            blog_id: A pending blog to fill in. It is marked ``failed`` if
                generation raises.

        Returns:
            Dict with a status message and the blog id.

        Raises:
            ValidationError: Title or description missing, or ``blog_id`` is
                already completed.
            InsufficientCreditsError: Balance below the cost of a post.
            NotFoundError: ``blog_id`` does not exist for this owner.
        """
        if not title or not title.strip() or not description or not description.strip():
            raise ValidationError(
                "Title and description are required.", error_code="MISSING_FIELDS"
            )

        if blog_id:
            validate_record_id(blog_id, kind="blog")
            blog = self.store.get_blog(blog_id, owner_id)
            if blog is None:
                raise NotFoundError("Blog not found", error_code="BLOG_NOT_FOUND")
            if blog["status"] == "completed":
                raise ValidationError(
                    "Blog has already been completed", error_code="BLOG_ALREADY_COMPLETED"
                )

        user = self._require_credits(owner_id, Config.BLOG_COST)
        provider = self._provider()

        messages = [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": _BLOG_PROMPT.format(title=title, description=description)},
        ]
        try:
            result = await provider.chat_with_usage(messages)
        except Exception:
            logger.exception("Blog generation failed for %s", owner_id)
            if blog_id:
                self.store.update_blog(blog_id, owner_id, status="failed")
            raise

        content = result.content

        if not self.store.spend_coins(owner_id, Config.BLOG_COST):
            raise InsufficientCreditsError(balance=user["coins"], required=Config.BLOG_COST)

        if blog_id:
            blog = self.store.update_blog(
                blog_id,
                owner_id,
                status="completed",
                title=title,
                user_message=description,
                ai_response=content,
            )
        else:
            blog = self.store.create_blog(
                owner_id=owner_id,
                title=title,
                status="completed",
                user_message=description,
                ai_response=content,
            )

        logger.info(
            "Generated blog %s for %s (%d chars, %d prompt + %d completion tokens)",
            blog["id"],
            owner_id,
            len(content),
            result.usage.prompt,
            result.usage.completion,
        )
        return {"message": "Blog generated successfully.", "id": blog["id"]}

    def save(
        self,
        owner_id: str,
        user_message: str,
        ai_response: str,
        blog_id: Optional[str] = None,
    ) -> dict:
        """Store an already generated post, completing a pending or failed blog."""
        if not user_message or not ai_response:
            raise ValidationError(
                "userMessage and aiResponse are required", error_code="MISSING_FIELDS"
            )
        self._require_credits(owner_id, 0)

        title = user_message[:Config.TITLE_LENGTH]
        if blog_id:
            validate_record_id(blog_id, kind="blog")
            blog = self.store.get_blog(blog_id, owner_id)
            if blog is not None:
                if blog["status"] == "completed":
                    raise ValidationError(
                        "Blog has already been completed", error_code="BLOG_ALREADY_COMPLETED"
                    )
                return self.store.update_blog(
                    blog_id,
                    owner_id,
                    status="completed",
                    title=title,
                    user_message=user_message,
                    ai_response=ai_response,
                )

        return self.store.create_blog(
            owner_id=owner_id,
            title=title,
            status="completed",
            user_message=user_message,
            ai_response=ai_response,
        )

    def list(self, owner_id: str) -> dict:
        """List the owner's blogs, most recently updated first."""
        blogs = [
            {
                "id": row["id"],
                "title": row["title"],
                "status": row["status"],
                "last_message": row["user_message"] or "No messages",
                "updated_at": row["updated_at"],
            }
            for row in self.store.list_blogs(owner_id)
        ]
        return {"blogs": blogs, "count": len(blogs)}

    def get(self, owner_id: str, blog_id: str) -> dict:
        """Return one blog."""
        validate_record_id(blog_id, kind="blog")
        blog = self.store.get_blog(blog_id, owner_id)
        if blog is None:
            raise NotFoundError("Blog not found", error_code="BLOG_NOT_FOUND")
        return blog

    def delete(self, owner_id: str, blog_id: str) -> dict:
        """Delete one blog."""
        validate_record_id(blog_id, kind="blog")
        if not self.store.delete_blog(blog_id, owner_id):
            raise NotFoundError("Blog not found", error_code="BLOG_NOT_FOUND")
        logger.info("Deleted blog %s", blog_id)
        return {"message": "Blog deleted successfully"}


# Singleton
blog_service = BlogService()
