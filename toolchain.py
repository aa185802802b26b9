"""Toolchain: binary resolution and the subprocess wrapper."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Type

from errors import CommandError, CommandLaunchError

logger = logging.getLogger(__name__)

DEFAULT_AI_BINARY_NAME = "rife-ncnn-vulkan"
DEFAULT_AI_MODEL_NAME = "rife-v4.6"


@dataclass(frozen=True)
class Toolchain:
    ffmpeg: str
    ffprobe: str
    ai_binary: Path
    ai_model: Path


def run_command(
    cmd: Sequence[object],
    *,
    error: Type[CommandError],
    cwd: Optional[Path] = None,
) -> str:
    """Run an external command to completion and return its stdout.

    A non-zero exit raises ``error``; the command's output is logged, not
    returned, in that case.
    """
    argv = [str(part) for part in cmd]
    logger.debug("cd %s && %s", cwd or os.getcwd(), shlex.join(argv))
    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            errors="replace",
            cwd=cwd,
        )
    except OSError as exc:
        raise CommandLaunchError(error.stage, argv[0], exc) from exc

    if result.returncode != 0:
        logger.debug("stdout: %s", result.stdout)
        logger.warning("stderr: %s", result.stderr)
        raise error(argv[0], result.returncode)

    logger.debug("Finished executing %s", argv[0])
    return result.stdout


def resolve_ai_binary(custom_path: Optional[str]) -> Path:
    """Resolve the frame interpolation binary from an explicit path or PATH."""
    if custom_path:
        candidate = Path(custom_path).expanduser().resolve()
        if not candidate.is_file():
            raise FileNotFoundError(f"Frame interpolation binary not found at: {candidate}")
        return candidate

    system_binary = shutil.which(DEFAULT_AI_BINARY_NAME)
    if system_binary:
        return Path(system_binary).resolve()

    raise FileNotFoundError(
        f"Unable to locate {DEFAULT_AI_BINARY_NAME}. Install it in PATH, set "
        "AI_BINARY, or pass --ai-binary explicitly."
    )


def resolve_ai_model(custom_model_path: Optional[str], ai_binary: Path) -> Path:
    """Resolve the model directory from an explicit value or next to the binary."""
    if custom_model_path:
        model_dir = Path(custom_model_path).expanduser().resolve()
        if not model_dir.is_dir():
            raise FileNotFoundError(f"Model directory not found: {model_dir}")
        return model_dir

    sibling_model = ai_binary.parent / DEFAULT_AI_MODEL_NAME
    if sibling_model.is_dir():
        return sibling_model.resolve()
    raise FileNotFoundError(
        f"Model directory not found next to {ai_binary}. Set AI_MODEL or pass --ai-model."
    )


def resolve_toolchain(ai_binary: Optional[str], ai_model: Optional[str]) -> Toolchain:
    """Resolve runtime binaries and raise clear dependency errors."""
    ffmpeg_bin = shutil.which("ffmpeg")
    ffprobe_bin = shutil.which("ffprobe")
    if not ffmpeg_bin or not ffprobe_bin:
        missing = []
        if not ffmpeg_bin:
            missing.append("ffmpeg")
        if not ffprobe_bin:
            missing.append("ffprobe")
        raise FileNotFoundError(
            f"Missing required dependency: {', '.join(missing)}. "
            "Install with Homebrew (macOS) or your system package manager."
        )

    binary = resolve_ai_binary(ai_binary)
    return Toolchain(
        ffmpeg=ffmpeg_bin,
        ffprobe=ffprobe_bin,
        ai_binary=binary,
        ai_model=resolve_ai_model(ai_model, binary),
    )
