"""
System service: health checks and provider status.
"""

import logging

from zhir import llm
from zhir.config import config
from zhir.db import db
from zhir.api.models.system import HealthResponse, ProviderStatus, StatsResponse

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


class SystemService:
    """Handles system-level operations: health and stats."""

    async def get_health(self) -> HealthResponse:
        """Build the health check response with provider statuses."""
        providers = {}
        for provider_name in llm.list_providers():
            status = await llm.check_provider_availability(provider_name)
            providers[provider_name] = ProviderStatus(
                available=status["available"],
                error=status.get("error"),
            )

        return HealthResponse(
            status="ok",
            version=VERSION,
            llm_provider=config.LLM_PROVIDER,
            providers=providers,
            stats=self.get_stats(),
        )

    def get_stats(self) -> StatsResponse:
        """Return database statistics."""
        stats = db.get_stats()
        return StatsResponse(**stats)


# Singleton
system_service = SystemService()
