"""Tests for turning free text into task drafts."""

from __future__ import annotations

from taskmaster.core.plan import (
    PLAN_DESCRIPTION,
    parse_batch,
    parse_plan,
    parse_task_block,
    starter_plan,
)


class TestTaskBlock:
    """Single task blocks."""

    def test_title_only(self):
        draft = parse_task_block("Fix the login bug")
        assert draft.title == "Fix the login bug"
        assert draft.description == "no description"
        assert draft.priority == 2
        assert draft.subtasks == []

    def test_blank_input(self):
        assert parse_task_block("  \n\n ") is None

    def test_subtask_markers(self):
        draft = parse_task_block("Release\n- Tag\n* Build\n1. Upload\n12. Announce")
        assert draft.subtasks == ["Tag", "Build", "Upload", "Announce"]

    def test_description_lines(self):
        draft = parse_task_block("Release\nCut a new version\n- Tag\nfrom main")
        assert draft.description == "Cut a new version\nfrom main"

    def test_priority_tag_on_title(self):
        draft = parse_task_block("Hotfix [P:1]")
        assert draft.title == "Hotfix"
        assert draft.priority == 1

    def test_priority_tag_variants(self):
        assert parse_task_block("A [priority: 3]").priority == 3
        assert parse_task_block("A [p=1]").priority == 1
        assert parse_task_block("A [Приоритет: 3]").priority == 3

    def test_priority_tag_on_own_line(self):
        draft = parse_task_block("Cleanup\n[P:3]\nRemove dead code")
        assert draft.priority == 3
        assert draft.description == "Remove dead code"

    def test_out_of_range_tag_is_not_a_tag(self):
        draft = parse_task_block("A [P:7]")
        assert draft.priority == 2
        assert draft.title == "A [P:7]"

    def test_default_priority(self):
        assert parse_task_block("A", default_priority=3).priority == 3

    def test_literal_newline_escape(self):
        draft = parse_task_block("Release\\n- Tag\\n- Build")
        assert draft.title == "Release"
        assert draft.subtasks == ["Tag", "Build"]

    def test_title_truncation_keeps_full_text(self):
        draft = parse_task_block("one two three four five six seven", max_title_words=5)
        assert draft.title == "one two three four five..."
        assert draft.description == "one two three four five six seven"

    def test_short_title_not_truncated(self):
        draft = parse_task_block("one two", max_title_words=5)
        assert draft.title == "one two"
        assert draft.description == "no description"

    def test_tag_only_title(self):
        assert parse_task_block("[P:1]") is None


class TestBatch:
    def test_blocks(self):
        drafts = parse_batch("A\n- a1\n###\nB [P:1]\n###\nC")
        assert [d.title for d in drafts] == ["A", "B", "C"]
        assert drafts[0].subtasks == ["a1"]
        assert drafts[1].priority == 1

    def test_empty_blocks_skipped(self):
        assert [d.title for d in parse_batch("###\nA\n###\n   \n###")] == ["A"]

    def test_empty_input(self):
        assert parse_batch("") == []

    def test_default_description(self):
        assert parse_batch("A", "From chat")[0].description == "From chat"


class TestPlan:
    """Free-form plans, one task per paragraph."""

    def test_paragraphs_become_tasks(self):
        drafts = parse_plan("Design\n\nBuild\n\nShip")
        assert [d.title for d in drafts] == ["Design", "Build", "Ship"]

    def test_priority_by_position(self):
        text = "\n\n".join(f"Step {i}" for i in range(1, 9))
        assert [d.priority for d in parse_plan(text)] == [1, 1, 1, 2, 2, 2, 3, 3]

    def test_keywords_override_position(self):
        drafts = parse_plan("Theme support\nNice to have later.\n\nA\n\nB\n\nBackups\nThis is critical.")
        assert drafts[0].priority == 3
        assert drafts[3].priority == 1

    def test_low_keyword_wins_over_high(self):
        drafts = parse_plan("Extras\nImportant but optional.")
        assert drafts[0].priority == 3

    def test_keywords_match_whole_words(self):
        drafts = parse_plan("A\n\nB\n\nC\n\nMustard colour scheme")
        assert drafts[3].priority == 2

    def test_bullets_and_action_sentences(self):
        drafts = parse_plan(
            "Backend\n- Set up the database\nWe need a service. Implement the REST API. Then write tests!"
        )
        assert drafts[0].subtasks == [
            "Set up the database",
            "Implement the REST API.",
            "Then write tests!",
        ]
        assert drafts[0].description == "We need a service. Implement the REST API. Then write tests!"

    def test_action_sentence_already_a_bullet(self):
        drafts = parse_plan("Docs\n- Write the user guide.\nWrite the user guide.")
        assert drafts[0].subtasks == ["Write the user guide."]

    def test_russian_action_sentence(self):
        drafts = parse_plan("Сервер\nНужно реализовать API.")
        assert drafts[0].subtasks == ["Нужно реализовать API."]

    def test_default_description(self):
        assert parse_plan("Only a title")[0].description == PLAN_DESCRIPTION

    def test_windows_line_endings(self):
        assert [d.title for d in parse_plan("A\r\n\r\nB")] == ["A", "B"]

    def test_empty(self):
        assert parse_plan("  \n\n  ") == []


class TestStarterPlan:
    def test_shape(self):
        drafts = starter_plan()
        assert len(drafts) == 7
        assert drafts[0].title == "Project planning"
        assert [d.priority for d in drafts] == [1, 1, 1, 2, 2, 3, 2]
        assert all(len(d.subtasks) == 4 for d in drafts)

    def test_returns_fresh_copies(self):
        starter_plan()[0].subtasks.append("extra")
        assert len(starter_plan()[0].subtasks) == 4
