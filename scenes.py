"""Scene boundaries: detect scene cuts once and cache them in the workspace."""

from __future__ import annotations

import logging
import os
import re
from decimal import Decimal
from pathlib import Path
from typing import Optional

from decimals import NonZeroDecimal, parse_decimal, round_places
from errors import DecimalParseError, DetectCommandError, SceneCacheError
from time_windows import DURATION_PLACES
from toolchain import run_command

logger = logging.getLogger(__name__)

TIMESTAMP_PATTERN = re.compile(r"best_effort_timestamp_time=(\d+\.?\d*)")
SCENE_SCORE_PATTERN = re.compile(r"lavfi\.scene_score=(\d+\.?\d*)")


def escape_filter_path(path: Path) -> str:
    """Escape a path for use as a lavfi filter option inside a filtergraph."""
    value = str(path)
    for char in ("\\", "'", ":"):
        value = value.replace(char, "\\" + char)
    # second level: the filtergraph parser
    escaped = []
    for char in value:
        if char in "\\'[],;":
            escaped.append("\\")
        escaped.append(char)
    return "".join(escaped)


def build_scene_detect_command(
    ffprobe_bin: str,
    input_video: Path,
    threshold: NonZeroDecimal,
) -> list[str]:
    return [
        ffprobe_bin,
        "-hide_banner",
        "-loglevel",
        "error",
        "-show_frames",
        "-of",
        "compact=p=0",
        "-f",
        "lavfi",
        f"movie={escape_filter_path(input_video)},select=gt(scene\\,{threshold})",
    ]


def parse_scene_timestamps(
    output: str,
    threshold: Optional[NonZeroDecimal] = None,
) -> list[Decimal]:
    """
    Extract scene-cut timestamps from ``ffprobe -show_frames`` compact output.

    Only frames carrying a scene score annotation are considered. When
    ``threshold`` is given, frames scoring at or below it are dropped.
    """
    timestamps: list[Decimal] = []
    for line in output.splitlines():
        score_match = SCENE_SCORE_PATTERN.search(line)
        timestamp_match = TIMESTAMP_PATTERN.search(line)
        if not score_match or not timestamp_match:
            continue
        if threshold is not None and parse_decimal(score_match.group(1)) <= threshold.value:
            continue
        timestamps.append(parse_decimal(timestamp_match.group(1)))
    return timestamps


def read_scene_cache(cache_path: Path) -> list[Decimal]:
    """Read cached scene timestamps, failing on the first malformed line."""
    timestamps: list[Decimal] = []
    for line_number, line in enumerate(cache_path.read_text(encoding="utf-8").splitlines(), start=1):
        try:
            timestamps.append(parse_decimal(line))
        except DecimalParseError as exc:
            raise SceneCacheError(cache_path, line_number, line) from exc
    return timestamps


def write_scene_cache(cache_path: Path, timestamps: list[Decimal]) -> None:
    lines = "".join(f"{timestamp}\n" for timestamp in timestamps)
    partial = cache_path.with_name(cache_path.name + ".partial")
    partial.write_text(lines, encoding="utf-8")
    os.replace(partial, cache_path)


class SceneBoundaryStore:
    """Scene-cut timestamps for one input, cached in a text file.

    Once the cache file exists it is authoritative: a changed input or
    threshold does not invalidate it.
    """

    def __init__(
        self,
        cache_path: Path,
        ffprobe_bin: str,
        input_video: Path,
        threshold: NonZeroDecimal,
    ) -> None:
        self.cache_path = cache_path
        self.ffprobe_bin = ffprobe_bin
        self.input_video = input_video
        self.threshold = threshold

    def load(self) -> list[Decimal]:
        if self.cache_path.exists():
            logger.debug("%s exists, so using data in that file", self.cache_path)
            return read_scene_cache(self.cache_path)

        logger.info("Detecting scene cuts (threshold %s)...", self.threshold)
        cmd = build_scene_detect_command(self.ffprobe_bin, self.input_video, self.threshold)
        output = run_command(cmd, error=DetectCommandError)
        timestamps = parse_scene_timestamps(output, self.threshold)
        logger.debug("creating file: %s", self.cache_path)
        write_scene_cache(self.cache_path, timestamps)
        return timestamps

    def boundaries(self, media_end: Decimal) -> list[Decimal]:
        """Scene cuts with the implicit 0 in front and the media end behind."""
        cuts = self.load()
        boundaries = [Decimal(0), *cuts]
        # A media end within half a millisecond of the last cut adds nothing.
        if round_places(media_end - boundaries[-1], DURATION_PLACES) > 0:
            boundaries.append(media_end)
        return boundaries
