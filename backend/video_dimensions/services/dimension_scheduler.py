from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from fastapi import FastAPI

from video_dimensions.core.config import settings
from video_dimensions.schemas.dimensions import TickSummary
from video_dimensions.services import reconcile

logger = logging.getLogger(__name__)


async def _run_once() -> TickSummary | None:
    if not bool(getattr(settings, "video_dimensions_enabled", True)):
        return None
    return await reconcile.run_tick()


async def _loop(stop: asyncio.Event) -> None:
    interval = max(1, int(getattr(settings, "video_dimensions_interval_seconds", 10) or 10))
    while not stop.is_set():
        try:
            await _run_once()
        except asyncio.CancelledError:
            break
        except Exception as exc:
            logger.warning("video_dimensions_scheduler_failed", extra={"error": str(exc)})

        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop.wait(), timeout=interval)


def start(app: FastAPI) -> None:
    if not bool(getattr(settings, "video_dimensions_enabled", True)):
        return
    if getattr(app.state, "video_dimensions_scheduler_task", None) is not None:
        return

    stop = asyncio.Event()
    task = asyncio.create_task(_loop(stop))
    app.state.video_dimensions_scheduler_stop = stop
    app.state.video_dimensions_scheduler_task = task


async def stop(app: FastAPI) -> None:
    stop_event = getattr(app.state, "video_dimensions_scheduler_stop", None)
    task = getattr(app.state, "video_dimensions_scheduler_task", None)
    if stop_event:
        stop_event.set()
    if task:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    if getattr(app.state, "video_dimensions_scheduler_stop", None) is not None:
        delattr(app.state, "video_dimensions_scheduler_stop")
    if getattr(app.state, "video_dimensions_scheduler_task", None) is not None:
        delattr(app.state, "video_dimensions_scheduler_task")
