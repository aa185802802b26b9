#!/usr/bin/env python3
"""
Frame rate booster pipeline.

This script splits a video into scene-aware windows, extracts each window's
frames, generates intermediate frames with an interpolation binary, encodes
one clip per window, and finally rebuilds the video with the source's audio,
subtitle and chapter streams.
"""

from __future__ import annotations

import argparse
import decimal
import functools
import itertools
import json
import logging
import os
import re
import sys
import time
from decimal import Decimal
from pathlib import Path
from typing import Optional, Sequence

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from tqdm import tqdm

from cli import PipelineSettings, build_settings, parse_args, validate_runtime_args
from decimals import NonZeroDecimal, checked_multiply, parse_decimal, round_places
from errors import (
    ConcatCommandError,
    EncodeCommandError,
    ExtractionCommandError,
    FrameCountError,
    GenerationCommandError,
    InvalidExtensionError,
    MissingExtensionError,
    ProbeCommandError,
    ReadDirError,
    RemuxCommandError,
    WorkspaceStateError,
)
from logging_utils import setup_logging
from scenes import SceneBoundaryStore
from time_windows import TimeWindow, build_window_plan
from toolchain import Toolchain, resolve_toolchain, run_command
from workspace import ResetPolicy, ResumableWorkspace

logger = logging.getLogger(__name__)

tracer = trace.get_tracer(__name__)
_TRACING_CONFIGURED = False


def init_tracing() -> None:
    """Export spans over OTLP/HTTP when OTEL_EXPORTER_OTLP_ENDPOINT is set."""
    global _TRACING_CONFIGURED
    if _TRACING_CONFIGURED:
        return
    _TRACING_CONFIGURED = True
    if not os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"):
        return

    resource = Resource.create({"service.name": "more-fps"})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)


def _traced(func):
    """Decorator that wraps a function call in a tracing span."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        init_tracing()
        with tracer.start_as_current_span(func.__name__):
            return func(*args, **kwargs)

    return wrapper


EXTRACTED_FRAME_PATTERN = "frame_%08d.png"
GENERATED_FRAME_GLOB = "*.png"
PARTIAL_CLIP_MARKER = ".partial"


def format_time(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60
    if hours:
        return f"{hours}h {minutes}m {secs:.1f}s"
    if minutes:
        return f"{minutes}m {secs:.1f}s"
    return f"{secs:.1f}s"


def get_extension(path: Path) -> str:
    extension = path.suffix[1:]
    if not extension:
        raise MissingExtensionError(path)
    try:
        extension.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidExtensionError(path) from exc
    return extension


def probe_duration(ffprobe_bin: str, input_video: Path) -> Decimal:
    """Read the container duration in seconds as an exact decimal."""
    cmd = [
        ffprobe_bin,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(input_video),
    ]
    return parse_decimal(run_command(cmd, error=ProbeCommandError).strip())


def target_frame_count(fps: NonZeroDecimal, duration: NonZeroDecimal) -> int:
    """Number of frames the generator should produce for a window."""
    product = checked_multiply(fps, duration)
    try:
        frames = round_places(product, 0)
    except decimal.InvalidOperation as exc:
        raise FrameCountError(
            f"Frame count {product} from fps {fps} and duration {duration} has too many digits"
        ) from exc
    if frames.is_zero():
        raise FrameCountError(
            f"Unable to calculate a frame count from fps {fps} and duration {duration}"
        )
    return int(frames)


@_traced
def extract_frames(
    ffmpeg_bin: str,
    input_video: Path,
    window: TimeWindow,
    frames_dir: Path,
) -> None:
    """Extract one window of the input video into numbered PNG files."""
    cmd = [
        ffmpeg_bin,
        "-ss",
        str(window.start),
        "-i",
        str(input_video),
        "-t",
        str(window.duration),
        "-frame_pts",
        "true",
        str(frames_dir / EXTRACTED_FRAME_PATTERN),
        "-y",
        "-hide_banner",
        "-loglevel",
        "warning",
    ]
    run_command(cmd, error=ExtractionCommandError)


@_traced
def generate_frames(
    toolchain: Toolchain,
    input_dir: Path,
    output_dir: Path,
    *,
    frame_count: int,
    extra_args: Sequence[str],
) -> None:
    cmd = [
        str(toolchain.ai_binary),
        "-m",
        str(toolchain.ai_model),
        "-i",
        str(input_dir),
        "-o",
        str(output_dir),
        "-n",
        str(frame_count),
        *extra_args,
    ]
    run_command(cmd, error=GenerationCommandError)


@_traced
def encode_clip(
    ffmpeg_bin: str,
    frames_dir: Path,
    clip_path: Path,
    *,
    fps: int,
    crf: int,
) -> None:
    """Encode every generated PNG in ``frames_dir`` into one clip."""
    cmd = [
        ffmpeg_bin,
        "-y",
        "-framerate",
        str(fps),
        "-pattern_type",
        "glob",
        "-i",
        GENERATED_FRAME_GLOB,
        "-crf",
        str(crf),
        "-c:v",
        "libx264",
        "-pix_fmt",
        "yuv420p",
        str(clip_path),
        "-hide_banner",
        "-loglevel",
        "warning",
    ]
    run_command(cmd, error=EncodeCommandError, cwd=frames_dir)


def list_clips(clips_dir: Path, extension: str) -> dict[int, Path]:
    """Map window index to clip path for every completed clip."""
    pattern = re.compile(rf"^(\d+)\.{re.escape(extension)}$")
    try:
        entries = list(clips_dir.iterdir())
    except OSError as exc:
        raise ReadDirError(clips_dir, exc) from exc

    clips: dict[int, Path] = {}
    for entry in entries:
        match = pattern.match(entry.name)
        if match and entry.is_file():
            clips[int(match.group(1))] = entry
    return clips


def write_concat_manifest(manifest_path: Path, clip_paths: list[Path]) -> None:
    lines: list[str] = []
    for clip in clip_paths:
        escaped = str(clip.resolve()).replace("'", r"'\''")
        lines.append(f"file '{escaped}'")
    manifest_path.write_text("\n".join(lines) + "\n", encoding="utf-8")


@_traced
def concat_clips(ffmpeg_bin: str, manifest_path: Path, output_video: Path) -> None:
    cmd = [
        ffmpeg_bin,
        "-y",
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        str(manifest_path),
        "-c",
        "copy",
        str(output_video),
        "-hide_banner",
        "-loglevel",
        "warning",
    ]
    run_command(cmd, error=ConcatCommandError)


@_traced
def remux_streams(
    ffmpeg_bin: str,
    video_path: Path,
    source_video: Path,
    output_video: Path,
) -> None:
    """Combine new video with the source's audio, subtitles and chapters, copying streams."""
    # -max_interleave_delta 0: https://trac.ffmpeg.org/ticket/6037
    cmd = [
        ffmpeg_bin,
        "-ignore_unknown",
        "-y",
        "-i", str(video_path),
        "-vn",
        "-i", str(source_video),
        "-map", "0",
        "-c:v", "copy",
        "-map", "1",
        "-c:a", "copy",
        "-c:s", "copy",
        "-map_chapters", "1",
        "-max_interleave_delta", "0",
        str(output_video),
        "-hide_banner", "-loglevel", "warning",
    ]
    run_command(cmd, error=RemuxCommandError)


class StagedPipeline:
    """
    Runs extract -> generate -> encode for every window of the plan.

    Only an encoded clip survives a crash, so a window is either complete
    (its clip exists) or redone from scratch on the next run.
    """

    def __init__(
        self,
        toolchain: Toolchain,
        workspace: ResumableWorkspace,
        input_video: Path,
        settings: PipelineSettings,
    ) -> None:
        self.toolchain = toolchain
        self.workspace = workspace
        self.input_video = input_video
        self.settings = settings
        self.extension = get_extension(input_video)
        self.fps = NonZeroDecimal(settings.fps)

    def clip_path(self, index: int) -> Path:
        return self.workspace.clips_dir / f"{index}.{self.extension}"

    def partial_clip_path(self, index: int) -> Path:
        return self.workspace.clips_dir / f"{index}{PARTIAL_CLIP_MARKER}.{self.extension}"

    def build_plan(self) -> list[TimeWindow]:
        store = SceneBoundaryStore(
            self.workspace.scene_cache_path,
            self.toolchain.ffprobe,
            self.input_video,
            self.settings.scene_threshold,
        )
        media_end = probe_duration(self.toolchain.ffprobe, self.input_video)
        boundaries = store.boundaries(media_end)
        return build_window_plan(boundaries, self.settings.max_step_size)

    def completed_clips(self) -> list[Path]:
        """Completed clips in window order; their indices must be 0..K-1."""
        clips = list_clips(self.workspace.clips_dir, self.extension)
        indices = sorted(clips)
        if indices != list(range(len(indices))):
            raise WorkspaceStateError(
                f"Clips in {self.workspace.clips_dir} are not numbered 0..{len(indices) - 1}: "
                f"{indices}"
            )
        return [clips[index] for index in indices]

    def resume_index(self) -> int:
        return len(self.completed_clips())

    def process_window(self, index: int, window: TimeWindow) -> Path:
        frame_count = target_frame_count(self.fps, window.duration)
        self.workspace.clear_staging()
        frames_dir = self.workspace.frames_dir
        generated_dir = self.workspace.generated_frames_dir

        extract_frames(self.toolchain.ffmpeg, self.input_video, window, frames_dir)
        generate_frames(
            self.toolchain,
            frames_dir,
            generated_dir,
            frame_count=frame_count,
            extra_args=self.settings.ai_args,
        )

        partial = self.partial_clip_path(index)
        partial.unlink(missing_ok=True)
        encode_clip(
            self.toolchain.ffmpeg,
            generated_dir,
            partial,
            fps=self.settings.fps,
            crf=self.settings.crf,
        )
        clip = self.clip_path(index)
        os.replace(partial, clip)
        return clip

    def run(self, plan: list[TimeWindow]) -> int:
        """Process every window not yet encoded; returns how many were processed."""
        start_index = self.resume_index()
        if start_index > len(plan):
            raise WorkspaceStateError(
                f"Workspace holds {start_index} clips but the plan has only {len(plan)} windows."
            )
        if start_index:
            logger.info("Resuming at window %d of %d", start_index, len(plan))

        processed = 0
        with tqdm(total=len(plan), initial=start_index, unit="window", desc="Windows") as progress:
            for index, window in itertools.islice(enumerate(plan), start_index, None):
                self.process_window(index, window)
                processed += 1
                progress.update(1)
                logger.info(
                    "Extracted a total of %s seconds",
                    window.start + window.duration.value,
                )
        return processed

    def finalize(self, output_video: Path) -> None:
        self.workspace.clear_staging()
        clips = self.completed_clips()
        if not clips:
            raise WorkspaceStateError("No clips were encoded; nothing to concatenate.")

        manifest = self.workspace.concat_manifest_path
        write_concat_manifest(manifest, clips)
        video = self.workspace.concatenated_video_path(self.extension)
        concat_clips(self.toolchain.ffmpeg, manifest, video)
        remux_streams(self.toolchain.ffmpeg, video, self.input_video, output_video)


def serialize_plan(plan: list[TimeWindow]) -> list[dict[str, object]]:
    return [
        {
            "index": index,
            "start": str(window.start),
            "end": str(window.end),
            "duration": str(window.duration),
        }
        for index, window in enumerate(plan)
    ]


def run_plan_only(args: argparse.Namespace) -> int:
    validate_runtime_args(args)
    settings = build_settings(args)
    input_video = Path(args.input).expanduser().resolve()
    toolchain = resolve_toolchain(args.ai_binary, args.ai_model)
    # never wipe a workspace just to look at the plan
    workspace = ResumableWorkspace(
        Path(args.temp_dir).expanduser().resolve(),
        ResetPolicy.KEEP_EXISTING,
    )
    pipeline = StagedPipeline(toolchain, workspace, input_video, settings)
    plan = pipeline.build_plan()
    payload = {
        "input": str(input_video),
        "max_step_size": settings.max_step_size,
        "scene_threshold": str(settings.scene_threshold),
        "resume_index": pipeline.resume_index(),
        "windows": serialize_plan(plan),
    }
    print(json.dumps(payload, indent=2))
    return 0


def run_pipeline(args: argparse.Namespace) -> int:
    validate_runtime_args(args)
    settings = build_settings(args)

    input_video = Path(args.input).expanduser().resolve()
    output_video = Path(args.output).expanduser().resolve()
    output_video.parent.mkdir(parents=True, exist_ok=True)
    toolchain = resolve_toolchain(args.ai_binary, args.ai_model)

    workspace = ResumableWorkspace(
        Path(args.temp_dir).expanduser().resolve(),
        ResetPolicy(args.reset),
    )
    pipeline = StagedPipeline(toolchain, workspace, input_video, settings)

    logger.info("Input:     %s", input_video)
    logger.info("Output:    %s", output_video)
    logger.info("FPS:       %d", settings.fps)
    logger.info("Binary:    %s", toolchain.ai_binary)
    logger.info("Model:     %s", toolchain.ai_model)
    logger.info("Workspace: %s (reset: %s)", workspace.base_dir, args.reset)

    total_start = time.time()
    logger.info("Extracting scene data to file...")
    plan = pipeline.build_plan()
    logger.info("Planned %d window(s)", len(plan))

    logger.info("Beginning extraction + video creation process")
    pipeline.run(plan)

    logger.info("Finished extracting ALL frames, now creating the final video")
    pipeline.finalize(output_video)
    logger.info("Complete in %s: %s", format_time(time.time() - total_start), output_video)

    if args.keep_workspace:
        logger.info("Workspace kept at: %s", workspace.base_dir)
    else:
        workspace.delete()
    return 0


@_traced
def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        if args.plan_only:
            return run_plan_only(args)
        return run_pipeline(args)
    except KeyboardInterrupt:
        print("Interrupted by user.", file=sys.stderr)
        return 130
    except Exception as exc:
        logger.debug("Run failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
