from video_dimensions.db.base import Base  # noqa: F401
from video_dimensions.models.files import StoredFile  # noqa: F401

__all__ = [
    "Base",
    "StoredFile",
]
