"""
Blog-related API models.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class BlogGenerateRequest(BaseModel):
    """Generate a blog post from a title and a description."""
    title: str = ""
    description: str = ""
    blog_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("blogId", "blog_id"))


class BlogGenerateResponse(BaseModel):
    """Result of a generation."""
    message: str
    id: str


class BlogSaveRequest(BaseModel):
    """Store a post that was generated elsewhere."""
    user_message: str = Field(default="", validation_alias=AliasChoices("userMessage", "user_message"))
    ai_response: str = Field(default="", validation_alias=AliasChoices("aiResponse", "ai_response"))
    blog_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("blogId", "blog_id"))


class BlogCreatedResponse(BaseModel):
    """Id of a freshly reserved blog."""
    id: str


class BlogResponse(BaseModel):
    """A full blog record."""
    id: str
    title: str
    status: str
    user_message: Optional[str] = None
    ai_response: Optional[str] = None
    generated_at: Optional[str] = None
    created_at: str
    updated_at: str


class BlogSummary(BaseModel):
    """Blog list entry."""
    id: str
    title: str
    status: str
    last_message: str
    updated_at: str


class BlogListResponse(BaseModel):
    """List of the caller's blogs."""
    blogs: list[BlogSummary]
    count: int
