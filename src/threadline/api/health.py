"""Liveness and readiness probes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from threadline.api.dependencies import BlueskyClientDep
from threadline.core.settings import settings

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def live() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(client: BlueskyClientDep) -> dict[str, Any]:
    """Report configuration and upstream request metrics."""
    return {
        "status": "ok",
        "app": {"name": settings.app_name, "version": settings.app_version},
        "upstream": {
            "base_url": client.config.base_url,
            "metrics": client.get_metrics(),
        },
    }
