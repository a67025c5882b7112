"""ffprobe wrapper returning the display dimensions of a local video file."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from pathlib import Path
from typing import Any

from video_dimensions.core.config import settings
from video_dimensions.schemas.dimensions import Dimensions

logger = logging.getLogger(__name__)

_SQUARE_PIXEL_RATIOS = {"", "1:1", "N/A"}


class ProbeError(RuntimeError):
    """ffprobe could not be run, timed out or exited non-zero."""

    def __init__(self, message: str, *, exit_code: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class ProbeOutputError(ProbeError):
    """ffprobe succeeded but printed something that is not stream metadata."""


def build_probe_command(ffprobe_path: str, input_path: Path) -> list[str]:
    return [
        ffprobe_path,
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_entries",
        "stream=width,height,display_aspect_ratio,sample_aspect_ratio",
        "-select_streams",
        "v:0",
        str(input_path),
    ]


def _positive_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _sample_aspect_ratio(raw: Any) -> tuple[int, int] | None:
    text = str(raw or "").strip()
    if text in _SQUARE_PIXEL_RATIOS:
        return None
    num_raw, sep, den_raw = text.partition(":")
    if not sep:
        return None
    num, den = _positive_int(num_raw), _positive_int(den_raw)
    if num is None or den is None or num == den:
        return None
    return num, den


def parse_probe_output(stdout: str) -> Dimensions | None:
    """Turn ffprobe's JSON into display dimensions.

    Returns ``None`` when there is no video stream or it lacks a usable
    width/height. Non-square pixels widen (or narrow) the display width by
    the sample aspect ratio; the height is kept as stored.
    """
    try:
        data = json.loads(stdout or "{}")
    except ValueError as exc:
        raise ProbeOutputError(f"ffprobe printed invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ProbeOutputError("ffprobe printed a non-object JSON document")

    streams = data.get("streams") or []
    if not isinstance(streams, list) or not streams or not isinstance(streams[0], dict):
        return None
    stream = streams[0]

    width = _positive_int(stream.get("width"))
    height = _positive_int(stream.get("height"))
    if width is None or height is None:
        return None

    ratio = _sample_aspect_ratio(stream.get("sample_aspect_ratio"))
    if ratio is not None:
        num, den = ratio
        # Half-up, not banker's rounding.
        display_width = math.floor(width * num / den + 0.5)
        if display_width > 0:
            width = display_width
    return Dimensions(width=width, height=height)


class MetadataProbe:
    def __init__(self, ffprobe_path: str | None = None, *, timeout_seconds: float | None = None) -> None:
        self._ffprobe_path = ffprobe_path or settings.ffprobe_path
        self._timeout = max(1.0, float(timeout_seconds or settings.probe_timeout_seconds))

    async def probe(self, input_path: Path) -> Dimensions | None:
        cmd = build_probe_command(self._ffprobe_path, input_path)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProbeError(f"Could not start {self._ffprobe_path}: {exc}") from exc

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ProbeError(f"ffprobe timed out after {self._timeout:g}s")

        stderr = err.decode("utf-8", errors="ignore").strip()
        if proc.returncode != 0:
            raise ProbeError(
                f"ffprobe failed with code {proc.returncode}: {stderr}",
                exit_code=proc.returncode,
                stderr=stderr,
            )
        dimensions = parse_probe_output(out.decode("utf-8", errors="ignore"))
        logger.debug(
            "video_probe_completed",
            extra={"path": str(input_path), "found": dimensions is not None},
        )
        return dimensions
