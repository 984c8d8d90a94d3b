"""
System routes: /health
"""

from fastapi import APIRouter

from zhir.api.models.system import HealthResponse
from zhir.services.system_service import system_service

router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.
    Returns database counts and the status of each LLM provider.
    """
    return await system_service.get_health()
