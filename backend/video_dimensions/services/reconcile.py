"""One reconciliation pass over video files that still lack dimensions.

Each tick normalizes zero dimensions, selects a small batch and resolves the
dimensions of every selected file one at a time:

1. a ``reprocess:WxH`` override is written as-is and the directive cleared;
2. a bare ``reprocess`` re-reads the source and the directive is cleared;
3. otherwise the source is read and the tags are left alone.

A file whose dimensions cannot be found, or whose processing raises, gets the
``processing-failed`` marker so it is not picked up again until an operator
removes it. Consumed directives are cleared in that same write.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from video_dimensions.core.config import settings
from video_dimensions.core.logging_config import tick_context
from video_dimensions.db.session import SessionLocal
from video_dimensions.models.files import StoredFile
from video_dimensions.schemas.dimensions import Dimensions, TickSummary
from video_dimensions.services import selector
from video_dimensions.services.cdn_provider import CdnCredentials, CdnProvider
from video_dimensions.services.probe import MetadataProbe
from video_dimensions.services.selector import Candidate
from video_dimensions.services.tag_state import TagStateKind, clear_directives, mark_failed

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, enum.Enum):
    updated = "updated"
    failed = "failed"


class DimensionReconciler:
    def __init__(
        self,
        *,
        probe: MetadataProbe,
        cdn: CdnProvider,
        uploads_root: str | Path,
        local_storage_name: str = "local",
        cdn_storage_name: str = "cloudinary",
    ) -> None:
        self._probe = probe
        self._cdn = cdn
        self._uploads_root = Path(uploads_root)
        self._local_storage_name = local_storage_name
        self._cdn_storage_name = cdn_storage_name

    @classmethod
    def from_settings(cls) -> DimensionReconciler:
        return cls(
            probe=MetadataProbe(settings.ffprobe_path, timeout_seconds=settings.probe_timeout_seconds),
            cdn=CdnProvider(CdnCredentials.from_settings(settings)),
            uploads_root=settings.uploads_root,
            local_storage_name=settings.local_storage_name,
            cdn_storage_name=settings.cdn_storage_name,
        )

    @property
    def local_storage_name(self) -> str:
        return self._local_storage_name

    async def lookup(self, candidate: Candidate) -> Dimensions | None:
        if candidate.storage == self._cdn_storage_name:
            return await self._cdn.fetch_dimensions(candidate.filename_disk or "")
        if candidate.storage == self._local_storage_name:
            if not candidate.filename_disk:
                raise ValueError("File has no filename_disk")
            return await self._probe.probe(self._uploads_root / candidate.filename_disk)
        logger.warning(
            "video_dimensions_unsupported_storage",
            extra={"file_id": candidate.id, "storage": candidate.storage},
        )
        return None

    async def resolve(self, candidate: Candidate) -> Dimensions | None:
        state = candidate.state
        if state.kind == TagStateKind.override and state.width and state.height:
            logger.info(
                "video_dimensions_manual_override",
                extra={"file_id": candidate.id, "width": state.width, "height": state.height},
            )
            return Dimensions(width=state.width, height=state.height)
        return await self.lookup(candidate)

    async def process(self, session: AsyncSession, candidate: Candidate) -> ReconcileOutcome:
        logger.info(
            "video_dimensions_processing",
            extra={
                "file_id": candidate.id,
                "filename_disk": candidate.filename_disk,
                "storage": candidate.storage,
                "tags": candidate.tags,
                "tag_state": candidate.state.kind.value,
            },
        )
        dimensions = await self.resolve(candidate)
        clear = candidate.state.has_directive

        if dimensions is not None:
            values: dict[str, Any] = {"width": dimensions.width, "height": dimensions.height}
            if clear:
                values["tags"] = clear_directives(candidate.tags)
            await _write(session, candidate.id, values)
            logger.info("video_dimensions_updated", extra={"file_id": candidate.id, **values})
            return ReconcileOutcome.updated

        tags = clear_directives(candidate.tags) if clear else candidate.tags
        failed_tags = mark_failed(tags)
        await _write(session, candidate.id, {"tags": failed_tags})
        logger.info("video_dimensions_not_found", extra={"file_id": candidate.id, "tags": failed_tags})
        return ReconcileOutcome.failed

    async def mark_errored(self, session: AsyncSession, candidate: Candidate) -> None:
        tags = clear_directives(candidate.tags) if candidate.state.has_directive else candidate.tags
        await _write(session, candidate.id, {"tags": mark_failed(tags)})


async def _write(session: AsyncSession, file_id: str, values: dict[str, Any]) -> None:
    await session.execute(
        update(StoredFile)
        .where(StoredFile.id == file_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def _select_batch(session: AsyncSession, summary: TickSummary, *, limit: int, local_storage_name: str) -> list[Candidate]:
    summary.normalized = await selector.normalize_zero_dimensions(session)
    candidates = await selector.select_candidates(session, limit=limit, local_storage_name=local_storage_name)
    await session.commit()
    return candidates


async def run_tick(
    *,
    reconciler: DimensionReconciler | None = None,
    session_factory: Callable[[], AsyncSession] | None = None,
    limit: int | None = None,
) -> TickSummary:
    reconciler = reconciler or DimensionReconciler.from_settings()
    factory = session_factory or SessionLocal
    batch_limit = max(1, int(limit or settings.video_dimensions_batch_size))

    with tick_context(uuid4().hex[:12]) as tick_id:
        summary = TickSummary(tick_id=tick_id)
        async with factory() as session:
            try:
                candidates = await _select_batch(
                    session, summary, limit=batch_limit, local_storage_name=reconciler.local_storage_name
                )
            except Exception:
                logger.exception("video_dimensions_selection_failed")
                with suppress(Exception):
                    await session.rollback()
                summary.normalized = 0
                summary.aborted = True
                return summary

            summary.selected = len(candidates)
            if not candidates:
                return summary
            logger.info("video_dimensions_candidates_found", extra={"count": len(candidates)})

            for candidate in candidates:
                try:
                    outcome = await reconciler.process(session, candidate)
                except Exception:
                    summary.errors += 1
                    logger.exception(
                        "video_dimensions_file_failed",
                        extra={"file_id": candidate.id, "filename_disk": candidate.filename_disk},
                    )
                    with suppress(Exception):
                        await session.rollback()
                    try:
                        await reconciler.mark_errored(session, candidate)
                    except Exception:
                        logger.exception("video_dimensions_mark_failed_write_failed", extra={"file_id": candidate.id})
                        with suppress(Exception):
                            await session.rollback()
                    continue
                if outcome == ReconcileOutcome.updated:
                    summary.updated += 1
                else:
                    summary.failed += 1

        logger.info("video_dimensions_tick_completed", extra=summary.model_dump())
        return summary
