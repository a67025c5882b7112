import argparse
import asyncio
import json
from typing import Any

from sqlalchemy import func, select

from video_dimensions.core.config import settings
from video_dimensions.core.logging_config import configure_logging
from video_dimensions.db.session import SessionLocal
from video_dimensions.models.files import StoredFile
from video_dimensions.schemas.dimensions import FailedFileRead, TagInspection
from video_dimensions.services import reconcile
from video_dimensions.services.selector import VIDEO_TYPE_PATTERN
from video_dimensions.services.tag_state import FAILED_TAG, classify, clear_directives, mark_failed, parse_tags
from video_dimensions.workers import dimension_worker


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def run_tick(limit: int | None = None) -> dict[str, Any]:
    summary = await reconcile.run_tick(limit=limit)
    return summary.model_dump()


async def list_failed(limit: int = 50) -> list[dict[str, Any]]:
    """Video files carrying the failure marker, for an operator to review."""
    async with SessionLocal() as session:
        rows = (
            await session.execute(
                select(StoredFile)
                .where(
                    StoredFile.type.like(VIDEO_TYPE_PATTERN),
                    func.lower(func.coalesce(StoredFile.tags, "")).like(f"%{FAILED_TAG}%"),
                )
                .order_by(StoredFile.id.asc())
                .limit(max(1, int(limit)))
            )
        ).scalars().all()
    return [FailedFileRead.model_validate(row).model_dump() for row in rows]


def inspect_tags(raw: str | None) -> dict[str, Any]:
    tag_set = parse_tags(raw)
    state = classify(tag_set)
    return TagInspection(
        raw=raw,
        shape=tag_set.shape.value,
        tokens=list(tag_set.tokens),
        state=state.kind.value,
        width=state.width,
        height=state.height,
        cleared=clear_directives(raw),
        failed=mark_failed(raw),
    ).model_dump()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Video dimension reconciliation utilities")
    subparsers = parser.add_subparsers(dest="command")

    tick = subparsers.add_parser("tick", help="Run one reconciliation pass and print its summary")
    tick.add_argument("--limit", type=int, default=None, help="Batch size (defaults to the configured value)")

    subparsers.add_parser("worker", help="Run the reconciliation loop in the foreground")

    failed = subparsers.add_parser("list-failed", help="List video files marked processing-failed")
    failed.add_argument("--limit", type=int, default=50, help="Maximum rows to print")

    inspect = subparsers.add_parser("inspect", help="Show how a tags value is parsed and classified")
    inspect.add_argument("tags", nargs="?", default=None, help="Raw tags text (JSON array or comma list)")
    return parser


def _run_cli_command(args: argparse.Namespace) -> bool:
    if args.command == "tick":
        _print_json(asyncio.run(run_tick(args.limit)))
        return True

    if args.command == "worker":
        asyncio.run(dimension_worker.run_dimension_worker())
        return True

    if args.command == "list-failed":
        _print_json(asyncio.run(list_failed(args.limit)))
        return True

    if args.command == "inspect":
        _print_json(inspect_tags(args.tags))
        return True

    return False


def main():
    configure_logging(settings.log_json)
    parser = _build_parser()
    args = parser.parse_args()
    if not _run_cli_command(args):
        parser.print_help()


if __name__ == "__main__":
    main()
