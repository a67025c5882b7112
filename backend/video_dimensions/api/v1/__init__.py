from video_dimensions.api.v1.routes import api_router  # noqa: F401

__all__ = ["api_router"]
