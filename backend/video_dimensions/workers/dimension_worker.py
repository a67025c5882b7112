from __future__ import annotations

import asyncio
import logging

from video_dimensions.core.config import settings
from video_dimensions.core.logging_config import configure_logging
from video_dimensions.services import dimension_scheduler

logger = logging.getLogger(__name__)


async def run_dimension_worker(stop: asyncio.Event | None = None) -> None:
    stop = stop or asyncio.Event()
    logger.info(
        "video_dimensions_worker_started",
        extra={
            "interval_seconds": int(settings.video_dimensions_interval_seconds),
            "batch_size": int(settings.video_dimensions_batch_size),
        },
    )
    try:
        await dimension_scheduler._loop(stop)
    finally:
        logger.info("video_dimensions_worker_stopped")


def main() -> None:  # pragma: no cover
    configure_logging(settings.log_json)
    asyncio.run(run_dimension_worker())


if __name__ == "__main__":  # pragma: no cover
    main()
