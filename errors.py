"""Errors: typed exceptions raised across the frame-rate pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class MoreFpsError(Exception):
    """Base error for the more-fps pipeline."""


# ── External commands ─────────────────────────────────────────────────────────


class CommandError(MoreFpsError):
    """Raised when an external command exits with a non-zero status."""

    stage = "command"

    def __init__(self, binary: str, returncode: int) -> None:
        self.binary = binary
        self.returncode = returncode
        super().__init__(f"{self.stage} failed: {binary} exited with status {returncode}")


class ExtractionCommandError(CommandError):
    stage = "frame extraction"


class GenerationCommandError(CommandError):
    stage = "frame generation"


class EncodeCommandError(CommandError):
    stage = "clip encode"


class DetectCommandError(CommandError):
    stage = "scene detection"


class ProbeCommandError(CommandError):
    stage = "media probe"


class ConcatCommandError(CommandError):
    stage = "clip concatenation"


class RemuxCommandError(CommandError):
    stage = "stream remux"


class CommandLaunchError(MoreFpsError, OSError):
    """Raised when an external command cannot be started at all."""

    def __init__(self, stage: str, binary: str, reason: Exception) -> None:
        self.stage = stage
        self.binary = binary
        super().__init__(f"{stage} failed: unable to launch {binary}: {reason}")


class ArgumentParseError(MoreFpsError, ValueError):
    """Raised when extra command arguments cannot be split into argv."""


# ── Decimal values ────────────────────────────────────────────────────────────


class DecimalParseError(MoreFpsError, ValueError):
    """Raised for text that is not a finite decimal number."""


class ZeroDecimalError(MoreFpsError, ValueError):
    """Raised when a non-zero decimal is built from zero."""


class MultiplicationOverflowError(MoreFpsError, ArithmeticError):
    def __init__(self, left: object, right: object) -> None:
        self.left = left
        self.right = right
        super().__init__(f"Multiplication overflow: {left} * {right}")


# ── Windows ───────────────────────────────────────────────────────────────────


class WindowBoundsError(MoreFpsError, ValueError):
    """Raised when a window sequence cannot be built from its bounds."""

    def __init__(self, start: object, max_step_size: object, end: object) -> None:
        self.start = start
        self.max_step_size = max_step_size
        self.end = end
        super().__init__(
            "Unable to create scene time windows: "
            f"start={start} max_step_size={max_step_size} end={end}"
        )


class FrameCountError(MoreFpsError, ValueError):
    """Raised when a window would ask the generator for zero frames."""


# ── Filesystem ────────────────────────────────────────────────────────────────


class MissingExtensionError(MoreFpsError, ValueError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Missing extension for file: {path}")


class InvalidExtensionError(MoreFpsError, ValueError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"File extension is not valid text: {path!r}")


class ReadDirError(MoreFpsError, OSError):
    def __init__(self, path: Path, reason: Optional[Exception] = None) -> None:
        self.path = path
        detail = f": {reason}" if reason else ""
        super().__init__(f"Unable to read dir: {path}{detail}")


class SceneCacheError(MoreFpsError, ValueError):
    """Raised when the scene timestamp cache contains an unparsable line."""

    def __init__(self, path: Path, line_number: int, line: str) -> None:
        self.path = path
        self.line_number = line_number
        self.line = line
        super().__init__(f"Malformed scene cache {path} at line {line_number}: {line!r}")


class WorkspaceStateError(MoreFpsError):
    """Raised when the workspace is unusable or its contents are inconsistent."""
