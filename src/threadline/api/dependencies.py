"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from threadline.core.settings import settings
from threadline.html import PollSettings
from threadline.services.bluesky import BlueskyClient, get_bluesky_client
from threadline.services.thread_service import ThreadAssembler, get_thread_assembler

AssemblerDep = Annotated[ThreadAssembler, Depends(get_thread_assembler)]
BlueskyClientDep = Annotated[BlueskyClient, Depends(get_bluesky_client)]


def get_poll_settings() -> PollSettings | None:
    """Polling parameters for rendered pages, or ``None`` when disabled."""
    if not settings.poll_enabled:
        return None
    return PollSettings(
        initial_interval=float(settings.poll_initial_interval_seconds),
        max_interval=float(
            max(settings.poll_max_interval_seconds, settings.poll_initial_interval_seconds)
        ),
        disable_after=float(settings.poll_disable_after_seconds),
    )


PollSettingsDep = Annotated[PollSettings | None, Depends(get_poll_settings)]
