"""Tests for path and content ranking of repository files."""

from __future__ import annotations

from pathlib import Path

from rootscout.config import Settings
from rootscout.retrieval.ranker import (
    calculate_path_relevance,
    collect_candidates,
    find_relevant_files,
    score_candidate_contents,
    search_file_content,
)
from rootscout.signals.extractor import build_signal_set
from rootscout.signals.schemas import SignalSet
from tests.conftest import REPORT_TEXT, write_files


class TestPathRelevance:
    def test_keyword_in_path_scores(self) -> None:
        with_kw = calculate_path_relevance("src/cart/total.ts", ["cart"])
        without = calculate_path_relevance("src/cart/total.ts", [])
        assert with_kw - without == 15

    def test_role_bonuses(self) -> None:
        # error +10, handler +8
        assert calculate_path_relevance("src/errors/handler.ts", []) == 18

    def test_test_files_penalized(self) -> None:
        assert calculate_path_relevance("src/a.test.ts", []) == -10

    def test_single_char_keywords_ignored(self) -> None:
        assert calculate_path_relevance("src/x.ts", ["x"]) == 0


class TestSearchFileContent:
    def test_function_definition(self, tmp_path: Path) -> None:
        path = tmp_path / "list.ts"
        path.write_text("export function renderList(users) {}\n")
        signals = SignalSet(function_names=("renderList",))
        assert search_file_content(path, signals) == (
            25,
            ["function:renderList"],
        )

    def test_keyword_occurrences_capped(self, tmp_path: Path) -> None:
        path = tmp_path / "auth.ts"
        path.write_text("token " * 10)
        score, matched = search_file_content(
            path, SignalSet(keywords=("token",))
        )
        assert score == 20
        assert matched == ["token"]

    def test_error_message_overlap(self, tmp_path: Path) -> None:
        path = tmp_path / "view.ts"
        path.write_text("// cannot read the properties here\n")
        signals = SignalSet(
            error_messages=("Cannot read properties of undefined",)
        )
        score, matched = search_file_content(path, signals)
        assert score == 15
        assert matched[0].startswith("error:")

    def test_stacktrace_file_and_function(self, tmp_path: Path) -> None:
        path = tmp_path / "UserList.tsx"
        path.write_text("function renderList() {}\n")
        signals = build_signal_set(
            "at renderList (src/components/UserList.tsx:9:16)"
        )
        score, matched = search_file_content(path, signals)
        assert "stacktrace:UserList.tsx" in matched
        assert "function:renderList" in matched
        assert score >= 50 + 20

    def test_unreadable_file_scores_zero(self, tmp_path: Path) -> None:
        assert search_file_content(tmp_path / "gone.ts", SignalSet()) == (
            0,
            [],
        )


class TestCollectCandidates:
    def test_skips_ignored_dot_and_foreign_files(self, ts_repo: Path) -> None:
        candidates = collect_candidates(ts_repo, SignalSet())
        names = sorted(Path(c.path).name for c in candidates)
        assert names == [
            "App.tsx",
            "UserList.test.tsx",
            "UserList.tsx",
            "format.ts",
        ]

    def test_relevance_starts_as_path_score(self, ts_repo: Path) -> None:
        signals = build_signal_set(REPORT_TEXT)
        for c in collect_candidates(ts_repo, signals):
            assert c.relevance_score == c.path_score
            assert c.content_score == 0

    def test_respects_gitignore(self, tmp_path: Path) -> None:
        write_files(
            tmp_path,
            {
                ".gitignore": "generated/\n",
                "generated/client.ts": "export const x = 1;\n",
                "src/main.ts": "export const y = 2;\n",
            },
        )
        names = [
            Path(c.path).name
            for c in collect_candidates(tmp_path, SignalSet())
        ]
        assert names == ["main.ts"]

        unfiltered = collect_candidates(
            tmp_path, SignalSet(), respect_gitignore=False
        )
        assert len(unfiltered) == 2

    def test_scan_cap(self, ts_repo: Path) -> None:
        assert len(collect_candidates(ts_repo, SignalSet(), max_files=2)) == 2

    def test_depth_limit(self, tmp_path: Path) -> None:
        write_files(
            tmp_path,
            {"index.ts": "x\n", "a/b/deep.ts": "y\n"},
        )
        candidates = collect_candidates(tmp_path, SignalSet(), max_depth=0)
        assert [Path(c.path).name for c in candidates] == ["index.ts"]

    def test_missing_root_is_empty(self, tmp_path: Path) -> None:
        assert collect_candidates(tmp_path / "nope", SignalSet()) == []


class TestContentStage:
    def test_only_top_slice_is_content_scored(self, ts_repo: Path) -> None:
        signals = build_signal_set(REPORT_TEXT)
        candidates = collect_candidates(ts_repo, signals)
        scored = score_candidate_contents(candidates, signals, top_n=2)

        assert len(scored) == 2
        for c in candidates[2:]:
            assert c.content_score == 0
            assert c.relevance_score == c.path_score
        for c in scored:
            assert c.relevance_score == c.path_score + 2 * c.content_score

    def test_scored_slice_sorted_by_relevance(self, ts_repo: Path) -> None:
        signals = build_signal_set(REPORT_TEXT)
        scored = score_candidate_contents(
            collect_candidates(ts_repo, signals), signals
        )
        scores = [c.relevance_score for c in scored]
        assert scores == sorted(scores, reverse=True)


class TestFindRelevantFiles:
    def test_stack_trace_file_ranks_first(self, ts_repo: Path) -> None:
        signals = build_signal_set(REPORT_TEXT)
        files = find_relevant_files(ts_repo, signals)
        assert Path(files[0].path).name == "UserList.tsx"
        assert "stacktrace:UserList.tsx" in files[0].matched_keywords

    def test_ranking_is_deterministic(self, ts_repo: Path) -> None:
        signals = build_signal_set(REPORT_TEXT)
        first = find_relevant_files(ts_repo, signals)
        second = find_relevant_files(ts_repo, signals)
        assert [(f.path, f.relevance_score) for f in first] == [
            (f.path, f.relevance_score) for f in second
        ]

    def test_output_cap(self, ts_repo: Path) -> None:
        settings = Settings(max_output_files=1)
        files = find_relevant_files(
            ts_repo, build_signal_set(REPORT_TEXT), settings
        )
        assert len(files) == 1
