from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from video_dimensions.db.base import Base


class StoredFile(Base):
    """Row of the host media library's file table.

    The upload pipeline owns these rows. The worker only ever updates
    ``width``, ``height`` and ``tags``.
    """

    __tablename__ = "directus_files"

    # uuid on Postgres; ids stay plain strings on the Python side.
    id: Mapped[str] = mapped_column(String(36).with_variant(UUID(as_uuid=False), "postgresql"), primary_key=True)
    storage: Mapped[str] = mapped_column(String(255), nullable=False)
    filename_disk: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tags: Mapped[str | None] = mapped_column(Text, nullable=True)
