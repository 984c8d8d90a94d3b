"""
Blog routes: generation and blog CRUD.
"""

from fastapi import APIRouter, Depends

from zhir.api.dependencies import get_current_user
from zhir.api.models.blog import (
    BlogCreatedResponse,
    BlogGenerateRequest,
    BlogGenerateResponse,
    BlogListResponse,
    BlogResponse,
    BlogSaveRequest,
)
from zhir.api.models.chat import DeleteResponse
from zhir.services.blog_service import blog_service

router = APIRouter(prefix="/api", tags=["Blog"])


@router.post("/openai/blog", response_model=BlogGenerateResponse)
async def generate_blog(request: BlogGenerateRequest, user_id: str = Depends(get_current_user)):
    """
    Generate a blog post. Costs credits.
    """
    return await blog_service.generate(
        user_id,
        request.title,
        request.description,
        blog_id=request.blog_id,
    )


@router.post("/blog/new", response_model=BlogCreatedResponse)
async def new_blog(user_id: str = Depends(get_current_user)):
    """Reserve a pending blog."""
    return blog_service.create_pending(user_id)


@router.post("/blog", response_model=BlogResponse)
async def save_blog(request: BlogSaveRequest, user_id: str = Depends(get_current_user)):
    """Store a generated post, completing a pending blog when ``blogId`` is given."""
    return blog_service.save(
        user_id,
        request.user_message,
        request.ai_response,
        blog_id=request.blog_id,
    )


@router.get("/blogs", response_model=BlogListResponse)
async def list_blogs(user_id: str = Depends(get_current_user)):
    """List the caller's blogs."""
    return blog_service.list(user_id)


@router.get("/blog/{blog_id}", response_model=BlogResponse)
async def get_blog(blog_id: str, user_id: str = Depends(get_current_user)):
    return blog_service.get(user_id, blog_id)


@router.delete("/blog/{blog_id}", response_model=DeleteResponse)
async def delete_blog(blog_id: str, user_id: str = Depends(get_current_user)):
    return blog_service.delete(user_id, blog_id)
