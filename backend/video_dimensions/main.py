from contextlib import asynccontextmanager

from fastapi import FastAPI

from video_dimensions.api.v1 import api_router
from video_dimensions.core.config import settings
from video_dimensions.core.logging_config import configure_logging
from video_dimensions.services import dimension_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    dimension_scheduler.start(app)
    try:
        yield
    finally:
        await dimension_scheduler.stop(app)


def get_application() -> FastAPI:
    configure_logging(settings.log_json)
    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.include_router(api_router, prefix="/api/v1")
    return app


app = get_application()
