"""End-to-end smoke tests using a real (tiny) video file.

These tests exercise probing, scene detection and frame extraction with actual
ffmpeg/ffprobe calls rather than mocked subprocesses. They do NOT invoke the
frame interpolation binary (which may not be available in CI).
"""

import shutil
import subprocess
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path

import more_fps
import scenes
from decimals import NonZeroDecimal
from time_windows import build_window_plan

HAS_FFMPEG = bool(shutil.which("ffmpeg") and shutil.which("ffprobe"))


def make_tiny_video(path: Path) -> None:
    """Two seconds of red followed by two seconds of blue at 10 fps."""
    subprocess.run(
        [
            "ffmpeg",
            "-f", "lavfi", "-i", "color=c=red:s=64x64:r=10:d=2",
            "-f", "lavfi", "-i", "color=c=blue:s=64x64:r=10:d=2",
            "-filter_complex", "[0:v][1:v]concat=n=2:v=1:a=0",
            "-pix_fmt", "yuv420p",
            str(path),
            "-y", "-hide_banner", "-loglevel", "error",
        ],
        check=True,
    )


@unittest.skipUnless(HAS_FFMPEG, "requires ffmpeg and ffprobe on PATH")
class TestE2ESmoke(unittest.TestCase):
    """End-to-end smoke tests with a real video file."""

    def setUp(self):
        self._temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self._temp_dir.name)
        self.video = self.root / "tiny_input.mp4"
        make_tiny_video(self.video)

    def tearDown(self):
        self._temp_dir.cleanup()

    def test_probe_duration_reads_real_metadata(self):
        duration = more_fps.probe_duration("ffprobe", self.video)
        self.assertGreater(duration, Decimal("3.5"))
        self.assertLess(duration, Decimal("4.5"))

    def test_scene_detection_finds_the_color_change(self):
        store = scenes.SceneBoundaryStore(
            self.root / "scene_timestamps.txt",
            "ffprobe",
            self.video,
            NonZeroDecimal("0.3"),
        )
        cuts = store.load()

        self.assertEqual(len(cuts), 1)
        self.assertAlmostEqual(float(cuts[0]), 2.0, places=1)
        self.assertTrue(store.cache_path.exists())

    def test_frame_extraction_produces_png_files(self):
        frames_dir = self.root / "frames"
        frames_dir.mkdir()
        plan = build_window_plan([Decimal(0), Decimal(2)], 1)

        more_fps.extract_frames("ffmpeg", self.video, plan[0], frames_dir)

        png_files = list(frames_dir.glob("frame_*.png"))
        self.assertGreater(len(png_files), 0)


if __name__ == "__main__":
    unittest.main()
