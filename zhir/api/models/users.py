"""
User-related API models.
"""

from pydantic import BaseModel


class UserResponse(BaseModel):
    """The authenticated user and their credit balance."""
    auth_id: str
    coins: int
    created_at: str
    updated_at: str
