import json
import unittest
from unittest.mock import patch

from reorganize_library.errors import PlannerFailure
from reorganize_library.llm.client import parse_llm_json, recover_truncated_json
from reorganize_library.llm.prompts import build_plan_prompt
from reorganize_library.models import (
    DirectoryEntry,
    FileEntry,
    LibCategory,
    LibraryIndex,
    LibSubcategory,
    SourceOverview,
)
from reorganize_library.planning import (
    CategoryRule,
    GeminiPlanner,
    HeuristicPlanner,
    MatchCriteria,
    get_planner,
    validate_plan,
)


def file_entry(name, ext, content_type="application/octet-stream", date_taken=None):
    return FileEntry(name, 100, ext, content_type, date_taken=date_taken)


def make_overview(*entries):
    return SourceOverview(source_root="/src", generated_at="", entries=list(entries))


def make_index(*names):
    return LibraryIndex(
        library_root="/lib",
        generated_at="",
        categories=[LibCategory(n, [LibSubcategory("_root")]) for n in names],
    )


class TestHeuristicPlanner(unittest.TestCase):
    def test_files_by_extension(self):
        overview = make_overview(
            file_entry("song.mp3", ".mp3"),
            file_entry("movie.MKV", ".MKV"),
            file_entry("setup.dmg", ".dmg"),
            file_entry("budget.xlsx", ".xlsx"),
        )
        plan = HeuristicPlanner().plan(overview, make_index())
        targets = {p.path: (p.category, p.subcategory) for p in plan.placements}
        self.assertEqual(targets, {
            "song.mp3": ("Music", None),
            "movie.MKV": ("Videos", None),
            "setup.dmg": ("Installers", None),
            "budget.xlsx": ("Documents", "Spreadsheets"),
        })

    def test_unknown_goes_to_misc(self):
        plan = HeuristicPlanner().plan(make_overview(file_entry("thing.qqq", ".qqq")), make_index())
        self.assertEqual(plan.placements[0].category, "Misc")

    def test_directory_uses_dominant_content(self):
        album = DirectoryEntry(
            "Album",
            files=4,
            sample_children=["01.mp3", "02.mp3", "cover.jpg"],
            top_big_files=["02.mp3", "01.mp3", "cover.jpg"],
        )
        plan = HeuristicPlanner().plan(make_overview(album), make_index())
        self.assertEqual(plan.placements[0].category, "Music")

    def test_camera_folder_and_bundle(self):
        dcim = DirectoryEntry("DCIM", sample_children=["100APPLE"], top_big_files=["100APPLE/IMG_1.MOV"],
                              is_bundle=True)
        app = DirectoryEntry("Tool.app", sample_children=["Contents"], top_big_files=["Contents/MacOS/Tool"],
                             is_bundle=True)
        plan = HeuristicPlanner().plan(make_overview(dcim, app), make_index())
        targets = {p.path: p.category for p in plan.placements}
        self.assertEqual(targets, {"DCIM": "Photos", "Tool.app": "Applications"})

    def test_photo_year_subcategory(self):
        overview = make_overview(
            file_entry("a.jpg", ".jpg", "image/jpeg", date_taken="2019-07-01T10:00:00"),
            file_entry("b.jpg", ".jpg", "image/jpeg"),
        )
        plan = HeuristicPlanner().plan(overview, make_index())
        self.assertEqual([p.subcategory for p in plan.placements], ["2019", None])

    def test_reuses_existing_category_spelling(self):
        plan = HeuristicPlanner().plan(make_overview(file_entry("song.mp3", ".mp3")), make_index("music"))
        self.assertEqual(plan.placements[0].category, "music")
        self.assertEqual(plan.new_folders, [])

    def test_requests_each_new_folder_once(self):
        overview = make_overview(file_entry("a.mp3", ".mp3"), file_entry("b.mp3", ".mp3"))
        plan = HeuristicPlanner().plan(overview, make_index())
        self.assertEqual([(f.category, f.subcategory) for f in plan.new_folders], [("Music", None)])

    def test_skips_unreadable_directories(self):
        plan = HeuristicPlanner().plan(make_overview(DirectoryEntry("Locked", unreadable=True)), make_index())
        self.assertEqual(plan.placements, [])

    def test_plan_passes_validation(self):
        overview = make_overview(
            file_entry("a.mp3", ".mp3"),
            file_entry("b.pptx", ".pptx"),
            file_entry("c.jpg", ".jpg", date_taken="2020-01-01T00:00:00"),
            DirectoryEntry("Code", sample_children=["main.py"], top_big_files=["main.py"]),
        )
        index = make_index("Documents")
        plan = HeuristicPlanner().plan(overview, index)
        result = validate_plan(plan, overview, index, quiet=True)
        self.assertTrue(result.accepted)
        self.assertEqual(len(result.plan.placements), 4)

    def test_custom_rules_from_dict(self):
        rule = CategoryRule.from_dict({
            "name": "Big files",
            "match": {"min_size_bytes": 50, "kind": "file"},
            "category": "Large",
            "priority": 5,
        })
        planner = HeuristicPlanner([rule])
        overview = make_overview(file_entry("x.bin", ".bin"), DirectoryEntry("D"))
        plan = planner.plan(overview, make_index())
        self.assertEqual([(p.path, p.category) for p in plan.placements], [("x.bin", "Large")])

    def test_match_criteria(self):
        entry = FileEntry("Invoice 2023.PDF", 2000, ".PDF", "application/pdf")
        self.assertEqual(MatchCriteria(ext_in=["pdf"]).score(entry), 1)
        self.assertEqual(MatchCriteria(name_contains_any=["invoice"]).score(entry), 1)
        self.assertEqual(MatchCriteria(content_type_prefix="image/").score(entry), 0)
        self.assertEqual(MatchCriteria(max_size_bytes=1000).score(entry), 0)
        self.assertEqual(MatchCriteria(kind="directory").score(entry), 0)


class TestGeminiPlanner(unittest.TestCase):
    def setUp(self):
        self.overview = make_overview(file_entry("song.mp3", ".mp3"))
        self.index = make_index("Music")

    @patch("reorganize_library.planning.remote.call_llm")
    def test_parses_response(self, mock_call):
        mock_call.return_value = '```json\n{"placements": [{"path": "song.mp3", "category": "Music", ' \
                                 '"subcategory": "_root", "reason": "audio"}], "notes": ["ok"]}\n```'
        plan = GeminiPlanner("flash", api_key="k").plan(self.overview, self.index)

        self.assertEqual(len(plan.placements), 1)
        self.assertIsNone(plan.placements[0].subcategory)
        self.assertEqual(plan.new_folders, [])
        self.assertEqual(plan.notes, "ok")
        prompt, model_name, api_key = mock_call.call_args[0]
        self.assertIn('"song.mp3"', prompt)
        self.assertEqual((model_name, api_key), ("flash", "k"))

    @patch("reorganize_library.planning.remote.call_llm")
    def test_schema_error_is_planner_failure(self, mock_call):
        mock_call.return_value = '{"placements": [{"path": "song.mp3"}]}'
        with self.assertRaises(PlannerFailure):
            GeminiPlanner().plan(self.overview, self.index)

    @patch("reorganize_library.planning.remote.call_llm")
    def test_garbage_is_planner_failure(self, mock_call):
        mock_call.return_value = "I could not decide."
        with self.assertRaises(PlannerFailure):
            GeminiPlanner().plan(self.overview, self.index)

    @patch("reorganize_library.llm.client.genai")
    def test_api_error_is_planner_failure(self, mock_genai):
        mock_genai.GenerativeModel.return_value.generate_content.side_effect = RuntimeError("quota")
        with patch("reorganize_library.llm.client._configured", True):
            with self.assertRaises(PlannerFailure):
                GeminiPlanner().plan(self.overview, self.index)

    def test_missing_key(self):
        with patch("reorganize_library.llm.client._configured", False), \
             patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(PlannerFailure):
                GeminiPlanner(api_key=None).plan(self.overview, self.index)

    def test_get_planner(self):
        self.assertIsInstance(get_planner("heuristic"), HeuristicPlanner)
        planner = get_planner("gemini", "pro")
        self.assertEqual(planner.model_name, "pro")
        with self.assertRaises(ValueError):
            get_planner("oracle")

    def test_prompt_contains_both_inputs(self):
        prompt = build_plan_prompt(self.overview, self.index)
        self.assertIn('"categories"', prompt)
        self.assertIn('"entries"', prompt)


class TestJsonRecovery(unittest.TestCase):
    def test_truncated_inside_string(self):
        truncated = '{"placements": [{"path": "a", "category": "path/to/fi'
        recovered = json.loads(recover_truncated_json(truncated))
        self.assertIsInstance(recovered, dict)
        self.assertEqual(recovered["placements"][0]["path"], "a")

    def test_truncated_after_complete_item(self):
        truncated = '{"placements": [{"a": 1}, {"b": 2'
        recovered = json.loads(recover_truncated_json(truncated))
        self.assertEqual(len(recovered["placements"]), 2)
        self.assertEqual(recovered["placements"][0]["a"], 1)

    def test_parse_handles_trailing_text(self):
        self.assertEqual(parse_llm_json('Here you go: {"notes": "x"} Hope it helps'), {"notes": "x"})

    def test_parse_uses_recovery(self):
        data = parse_llm_json('{"placements": [{"path": "a", "category": "B"}, {"path": "c", "cat')
        self.assertEqual(data["placements"][0], {"path": "a", "category": "B"})

    def test_parse_rejects_non_objects(self):
        with self.assertRaises(PlannerFailure):
            parse_llm_json("no json here")


if __name__ == "__main__":
    unittest.main()
