import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from reorganize_library.errors import WorkspaceError
from reorganize_library.models import Placement, Plan
from reorganize_library.workspace import MOVES, PLAN, Workspace, workspace_key


class TestWorkspace(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        base = Path(self.tmp.name)
        self.source = base / "src"
        self.library = base / "lib"
        self.source.mkdir()
        self.library.mkdir()
        self.home = base / "home"

    def tearDown(self):
        self.tmp.cleanup()

    def test_key_is_stable_and_pair_specific(self):
        key = workspace_key(self.source, self.library)
        self.assertEqual(len(key), 16)
        self.assertEqual(key, workspace_key(self.source / ".." / "src", self.library))
        self.assertNotEqual(key, workspace_key(self.library, self.source))

    def test_open_creates_descriptor(self):
        ws = Workspace.open(self.source, self.library, self.home)
        self.assertTrue(ws.directory.is_dir())
        self.assertEqual(ws.directory.parent, self.home)
        descriptor = json.loads((ws.directory / "workspace.json").read_text())
        self.assertEqual(descriptor["source_root"], str(self.source.resolve()))
        self.assertEqual(descriptor["key"], ws.key)

    def test_open_twice_is_same_workspace(self):
        first = Workspace.open(self.source, self.library, self.home)
        second = Workspace.open(self.source, self.library, self.home)
        self.assertEqual(first.directory, second.directory)

    def test_save_writes_snapshot_and_latest(self):
        ws = Workspace.open(self.source, self.library, self.home)
        plan = Plan([Placement("a", "B")])

        path = ws.save(PLAN, plan)

        self.assertEqual(json.loads(path.read_text()), plan.to_dict())
        self.assertEqual(ws.load_latest(PLAN), plan.to_dict())
        self.assertEqual(ws.history(PLAN), [path])

    def test_history_keeps_every_save_in_order(self):
        ws = Workspace.open(self.source, self.library, self.home)
        with patch("reorganize_library.workspace.file_timestamp", return_value="20240101_120000"):
            paths = [ws.save(PLAN, {"n": i}) for i in range(3)]

        self.assertEqual(len(set(paths)), 3)
        self.assertEqual(ws.history(PLAN), paths)
        self.assertEqual(ws.load_latest(PLAN), {"n": 2})
        self.assertEqual([json.loads(p.read_text())["n"] for p in ws.history(PLAN)], [0, 1, 2])

    def test_history_is_per_kind(self):
        ws = Workspace.open(self.source, self.library, self.home)
        ws.save(PLAN, {})
        self.assertEqual(ws.history(MOVES), [])

    def test_missing_latest_is_none(self):
        ws = Workspace.open(self.source, self.library, self.home)
        self.assertIsNone(ws.load_latest(MOVES))

    def test_corrupt_latest_raises(self):
        ws = Workspace.open(self.source, self.library, self.home)
        ws.latest_path(PLAN).write_text("{not json")
        with self.assertRaises(WorkspaceError):
            ws.load_latest(PLAN)

    def test_unknown_kind(self):
        ws = Workspace.open(self.source, self.library, self.home)
        with self.assertRaises(WorkspaceError):
            ws.save("nonsense", {})

    def test_no_temp_files_left(self):
        ws = Workspace.open(self.source, self.library, self.home)
        ws.save(PLAN, {"a": 1})
        ws.save(PLAN, {"a": 2})
        self.assertEqual([p.name for p in ws.directory.iterdir() if p.name.endswith(".tmp")], [])

    def test_unserializable_save_leaves_no_snapshot(self):
        ws = Workspace.open(self.source, self.library, self.home)
        ws.save(PLAN, {"v": 1})

        with self.assertRaises(TypeError):
            ws.save(PLAN, {"v": object()})

        self.assertEqual(len(ws.history(PLAN)), 1)
        self.assertEqual(ws.load_latest(PLAN), {"v": 1})
        self.assertEqual([p.name for p in ws.directory.iterdir() if p.name.endswith(".tmp")], [])

    def test_failed_write_keeps_previous_latest(self):
        ws = Workspace.open(self.source, self.library, self.home)
        ws.save(PLAN, {"v": 1})
        with patch("reorganize_library.utils.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                ws.publish_latest(PLAN, {"v": 2})
        self.assertEqual(ws.load_latest(PLAN), {"v": 1})


if __name__ == "__main__":
    unittest.main()
