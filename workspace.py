"""Workspace: on-disk layout for a resumable run."""

from __future__ import annotations

import enum
import logging
import shutil
from pathlib import Path

from errors import WorkspaceStateError

logger = logging.getLogger(__name__)

SCENE_CACHE_NAME = "scene_timestamps.txt"
CONCAT_MANIFEST_NAME = "concat.txt"


class ResetPolicy(enum.Enum):
    # delete frames, generated frames, clips and the scene cache
    WIPE_ALL = "everything"
    # keep everything and continue from where the last run stopped
    KEEP_EXISTING = "nothing"

    def __str__(self) -> str:
        return self.value


def dir_exists_or_create(path: Path) -> None:
    if not path.exists():
        path.mkdir(parents=True, exist_ok=True)


def reset_dir(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


class ResumableWorkspace:
    """
    Directory tree shared by every stage of a run.

    ``frames`` and ``generated_frames`` are transient and wiped for every
    window. ``clips`` and the scene cache persist across runs until the
    workspace is reset or deleted.
    """

    def __init__(self, base_dir: Path, policy: ResetPolicy = ResetPolicy.WIPE_ALL) -> None:
        self._base_dir = Path(base_dir)
        self._deleted = False

        if policy is ResetPolicy.WIPE_ALL:
            logger.debug("Resetting workspace %s", self._base_dir)
            shutil.rmtree(self._base_dir, ignore_errors=True)

        for directory in (self.frames_dir, self.generated_frames_dir, self.clips_dir):
            dir_exists_or_create(directory)

    def _path(self, *parts: str) -> Path:
        if self._deleted:
            raise WorkspaceStateError(f"Workspace {self._base_dir} has been deleted.")
        return self._base_dir.joinpath(*parts)

    @property
    def base_dir(self) -> Path:
        return self._path()

    @property
    def frames_dir(self) -> Path:
        return self._path("frames")

    @property
    def generated_frames_dir(self) -> Path:
        return self._path("generated_frames")

    @property
    def clips_dir(self) -> Path:
        return self._path("clips")

    @property
    def scene_cache_path(self) -> Path:
        return self._path(SCENE_CACHE_NAME)

    @property
    def concat_manifest_path(self) -> Path:
        return self._path(CONCAT_MANIFEST_NAME)

    def concatenated_video_path(self, extension: str) -> Path:
        return self._path(f"video.{extension}")

    def clear_staging(self) -> None:
        reset_dir(self.frames_dir)
        reset_dir(self.generated_frames_dir)

    def delete(self) -> None:
        """Remove the whole tree; the handle is unusable afterwards."""
        base_dir = self._path()
        shutil.rmtree(base_dir)
        self._deleted = True
