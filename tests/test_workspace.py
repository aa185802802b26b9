import tempfile
import unittest
from pathlib import Path

import workspace
from errors import WorkspaceStateError


class TestWorkspaceBehavior(unittest.TestCase):
    def test_creates_layout_in_missing_dir(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            base = Path(temp_dir) / "work"
            ws = workspace.ResumableWorkspace(base, workspace.ResetPolicy.WIPE_ALL)

            self.assertTrue(ws.frames_dir.is_dir())
            self.assertTrue(ws.generated_frames_dir.is_dir())
            self.assertTrue(ws.clips_dir.is_dir())
            self.assertEqual(ws.scene_cache_path, base / "scene_timestamps.txt")
            self.assertEqual(ws.concat_manifest_path, base / "concat.txt")
            self.assertEqual(ws.concatenated_video_path("mkv"), base / "video.mkv")

    def test_wipe_all_removes_previous_state(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            base = Path(temp_dir) / "work"
            first = workspace.ResumableWorkspace(base, workspace.ResetPolicy.WIPE_ALL)
            (first.clips_dir / "0.mkv").write_bytes(b"clip")
            first.scene_cache_path.write_text("1.5\n")

            second = workspace.ResumableWorkspace(base, workspace.ResetPolicy.WIPE_ALL)

            self.assertEqual(list(second.clips_dir.iterdir()), [])
            self.assertFalse(second.scene_cache_path.exists())

    def test_keep_existing_preserves_clips_and_cache(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            base = Path(temp_dir) / "work"
            first = workspace.ResumableWorkspace(base, workspace.ResetPolicy.WIPE_ALL)
            (first.clips_dir / "0.mkv").write_bytes(b"clip")
            first.scene_cache_path.write_text("1.5\n")

            second = workspace.ResumableWorkspace(base, workspace.ResetPolicy.KEEP_EXISTING)

            self.assertEqual((second.clips_dir / "0.mkv").read_bytes(), b"clip")
            self.assertEqual(second.scene_cache_path.read_text(), "1.5\n")

    def test_clear_staging_only_touches_transient_dirs(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            ws = workspace.ResumableWorkspace(Path(temp_dir) / "work")
            (ws.frames_dir / "frame_00000001.png").write_bytes(b"f")
            (ws.generated_frames_dir / "00000001.png").write_bytes(b"g")
            (ws.clips_dir / "0.mkv").write_bytes(b"clip")

            ws.clear_staging()

            self.assertEqual(list(ws.frames_dir.iterdir()), [])
            self.assertEqual(list(ws.generated_frames_dir.iterdir()), [])
            self.assertTrue((ws.clips_dir / "0.mkv").exists())

    def test_delete_removes_tree_and_invalidates_handle(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            base = Path(temp_dir) / "work"
            ws = workspace.ResumableWorkspace(base)

            ws.delete()

            self.assertFalse(base.exists())
            with self.assertRaises(WorkspaceStateError):
                _ = ws.clips_dir

    def test_reset_policy_values_match_cli_choices(self):
        self.assertIs(workspace.ResetPolicy("everything"), workspace.ResetPolicy.WIPE_ALL)
        self.assertIs(workspace.ResetPolicy("nothing"), workspace.ResetPolicy.KEEP_EXISTING)


if __name__ == "__main__":
    unittest.main()
