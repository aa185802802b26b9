"""CLI: argument parsing, runtime validation, and pipeline settings."""

from __future__ import annotations

import argparse
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from decimals import NonZeroDecimal
from errors import ArgumentParseError, DecimalParseError, ZeroDecimalError
from workspace import ResetPolicy

# ── Constants ──────────────────────────────────────────────────────────────────

DEFAULT_FPS = 60
DEFAULT_MAX_STEP_SIZE = 50
DEFAULT_SCENE_GT = ".1"
DEFAULT_CRF = 18
RESET_CHOICES = tuple(policy.value for policy in ResetPolicy)


@dataclass(frozen=True)
class PipelineSettings:
    fps: int
    crf: int
    max_step_size: int
    scene_threshold: NonZeroDecimal
    ai_args: tuple[str, ...]


# ── Functions ──────────────────────────────────────────────────────────────────


def default_ai_args() -> str:
    # Leave one CPU free so decode/encode stays healthy while the system is loaded.
    cpu_count = max((os.cpu_count() or 2) - 1, 1)
    return f"-g 0,-1 -j {cpu_count}:{cpu_count},16:32:16"


def split_ai_args(raw: str) -> tuple[str, ...]:
    try:
        return tuple(shlex.split(raw))
    except ValueError as exc:
        raise ArgumentParseError(f"Unable to parse --ai-args {raw!r}: {exc}") from exc


def parse_scene_threshold(raw: str) -> NonZeroDecimal:
    try:
        return NonZeroDecimal(raw)
    except (DecimalParseError, ZeroDecimalError) as exc:
        raise ValueError(f"Scene threshold should be a non-zero decimal: {exc}") from exc


def validate_runtime_args(args: argparse.Namespace) -> None:
    input_path = Path(args.input).expanduser()
    if not input_path.is_file():
        raise ValueError(f"Input path doesn't exist or isn't a file: {input_path}")
    output_path = Path(args.output).expanduser()
    if output_path.exists():
        raise ValueError(
            f"Output path already exists. Please delete the file to continue: {output_path}"
        )
    if output_path.resolve() == input_path.resolve():
        raise ValueError("Output video path must be different from input video path.")
    temp_dir = Path(args.temp_dir).expanduser()
    if temp_dir.exists() and not temp_dir.is_dir():
        raise ValueError(f"Temp dir should not exist or should be a folder: {temp_dir}")
    if args.fps <= 0:
        raise ValueError("FPS must be > 0.")
    if args.max_step_size <= 0:
        raise ValueError("Max step size must be > 0.")
    if args.crf < 1 or args.crf > 51:
        raise ValueError("CRF must be between 1 and 51.")
    parse_scene_threshold(args.scene_gt)


def build_settings(args: argparse.Namespace) -> PipelineSettings:
    return PipelineSettings(
        fps=args.fps,
        crf=args.crf,
        max_step_size=args.max_step_size,
        scene_threshold=parse_scene_threshold(args.scene_gt),
        ai_args=split_ai_args(args.ai_args),
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Increase the frame rate of a video with a frame interpolation binary",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("input", type=str, help="Video whose frame rate will be increased")
    parser.add_argument(
        "output",
        type=str,
        help="Final output path (must not exist yet)",
    )
    parser.add_argument(
        "--ai-binary",
        type=str,
        default=os.getenv("AI_BINARY"),
        help="Frame interpolation binary (env: AI_BINARY)",
    )
    parser.add_argument(
        "--ai-model",
        type=str,
        default=os.getenv("AI_MODEL"),
        help="Model directory for the interpolation binary (env: AI_MODEL)",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=DEFAULT_FPS,
        help="Target frames per second of the output",
    )
    parser.add_argument(
        "-t",
        "--temp-dir",
        type=str,
        required=True,
        help="Workspace for extracted frames, generated frames and clips "
        "(preferably a fast SSD or ramdisk)",
    )
    parser.add_argument(
        "-m",
        "--max-step-size",
        type=int,
        default=DEFAULT_MAX_STEP_SIZE,
        help="Maximum number of seconds per window when scenes are long",
    )
    parser.add_argument(
        "--ai-args",
        type=str,
        default=default_ai_args(),
        help="Extra arguments passed to the interpolation binary",
    )
    parser.add_argument(
        "-r",
        "--reset",
        type=str,
        choices=RESET_CHOICES,
        default=ResetPolicy.WIPE_ALL.value,
        help="Workspace data to clear before starting ('nothing' resumes)",
    )
    parser.add_argument(
        "-s",
        "--scene-gt",
        type=str,
        default=DEFAULT_SCENE_GT,
        help="Scene change score above which a new window starts",
    )
    parser.add_argument("--crf", type=int, default=DEFAULT_CRF, help="x264 CRF (1-51)")
    parser.add_argument(
        "--keep-workspace",
        action="store_true",
        help="Keep the workspace after the output is written",
    )
    parser.add_argument(
        "--plan-only",
        action="store_true",
        help="Print the window plan as JSON and exit",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level name (default: LOG_LEVEL env or INFO)",
    )

    return parser.parse_args(argv)
