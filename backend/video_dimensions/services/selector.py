from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from video_dimensions.core.config import settings
from video_dimensions.models.files import StoredFile
from video_dimensions.services.tag_state import FAILED_TAG, REPROCESS_TAG, TagState, TagStateKind, classify_tags

logger = logging.getLogger(__name__)

VIDEO_TYPE_PATTERN = "video/%"


@dataclass(frozen=True)
class Candidate:
    id: str
    storage: str
    filename_disk: str | None
    width: int | None
    height: int | None
    tags: str | None
    state: TagState

    @classmethod
    def from_row(cls, row: StoredFile) -> Candidate:
        return cls(
            id=row.id,
            storage=row.storage,
            filename_disk=row.filename_disk,
            width=row.width,
            height=row.height,
            tags=row.tags,
            state=classify_tags(row.tags),
        )


def _is_video():
    return StoredFile.type.like(VIDEO_TYPE_PATTERN)


def _lowered_tags():
    return func.lower(func.coalesce(StoredFile.tags, ""))


def is_eligible(candidate: Candidate, *, local_storage_name: str | None = None) -> bool:
    """Decide from the parsed tag state whether a file needs work this tick."""
    local = local_storage_name or settings.local_storage_name
    kind = candidate.state.kind
    if kind == TagStateKind.failed:
        return False
    if kind == TagStateKind.override:
        return True
    if candidate.storage != local:
        return False
    if kind == TagStateKind.reprocess:
        return True
    return candidate.width is None and candidate.height is None


async def normalize_zero_dimensions(session: AsyncSession) -> int:
    """Reset zero widths/heights left by aborted writes back to unknown."""
    result = await session.execute(
        update(StoredFile)
        .where(_is_video(), or_(StoredFile.width == 0, StoredFile.height == 0))
        .values(width=None, height=None)
        .execution_options(synchronize_session=False)
    )
    return max(0, int(result.rowcount or 0))


def prefilter_statement(*, page_size: int, after_id: str | None = None, local_storage_name: str | None = None):
    """Coarse SQL filter; a superset of the eligible rows, ordered by id."""
    local = local_storage_name or settings.local_storage_name
    tags = _lowered_tags()
    stmt = (
        select(StoredFile)
        .where(
            _is_video(),
            ~tags.like(f"%{FAILED_TAG}%"),
            or_(
                and_(StoredFile.storage == local, StoredFile.width.is_(None), StoredFile.height.is_(None)),
                tags.like(f"%{REPROCESS_TAG}%"),
            ),
        )
        .order_by(StoredFile.id.asc())
        .limit(max(1, int(page_size)))
    )
    if after_id is not None:
        stmt = stmt.where(StoredFile.id > after_id)
    return stmt


async def select_candidates(
    session: AsyncSession,
    *,
    limit: int | None = None,
    page_size: int | None = None,
    local_storage_name: str | None = None,
) -> list[Candidate]:
    batch_limit = max(1, int(limit or settings.video_dimensions_batch_size))
    page = max(batch_limit, int(page_size or settings.video_dimensions_scan_page_size))
    local = local_storage_name or settings.local_storage_name

    selected: list[Candidate] = []
    skipped = 0
    after_id: str | None = None
    while len(selected) < batch_limit:
        rows = (
            await session.execute(prefilter_statement(page_size=page, after_id=after_id, local_storage_name=local))
        ).scalars().all()
        for row in rows:
            candidate = Candidate.from_row(row)
            if not is_eligible(candidate, local_storage_name=local):
                skipped += 1
                continue
            selected.append(candidate)
            if len(selected) >= batch_limit:
                break
        if len(rows) < page:
            break
        after_id = rows[-1].id

    if skipped:
        logger.debug("video_dimensions_prefilter_skipped", extra={"count": skipped})
    return selected
