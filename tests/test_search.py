"""
Tests for inline search syntax, filter merging and per-collection SQL
"""
from conftest import utc
from studybuddy.models.search import SearchFilters, SearchType
from studybuddy.services.search import (
    build_collection_query,
    collections_for,
    highlight,
    merge_filters,
    parse_search_query,
)

NOW = utc(2024, 6, 12, 9, 30)


class TestParseSearchQuery:
    def test_plain_text(self):
        clean, filters = parse_search_query("photosynthesis", NOW)
        assert clean == "photosynthesis"
        assert filters.type == SearchType.ALL
        assert filters.tags is None

    def test_type_and_tags(self):
        clean, filters = parse_search_query("type:note tag:biology cells tag:exam", NOW)
        assert clean == "cells"
        assert filters.type == SearchType.NOTE
        assert filters.tags == ["biology", "exam"]

    def test_unknown_type_is_stripped_but_ignored(self):
        clean, filters = parse_search_query("type:video lecture", NOW)
        assert clean == "lecture"
        assert filters.type == SearchType.ALL

    def test_due_today(self):
        _, filters = parse_search_query("due:today", NOW)
        assert filters.due_date_from == utc(2024, 6, 12)
        assert filters.due_date_to.date() == NOW.date()

    def test_due_overdue(self):
        _, filters = parse_search_query("due:overdue", NOW)
        assert filters.due_date_from is None
        assert filters.due_date_to == utc(2024, 6, 12)

    def test_completed_and_priority(self):
        clean, filters = parse_search_query("essay completed:yes priority:2", NOW)
        assert clean == "essay"
        assert filters.completed is True
        assert filters.priority == 2

    def test_case_insensitive(self):
        _, filters = parse_search_query("TYPE:Task COMPLETED:False", NOW)
        assert filters.type == SearchType.TASK
        assert filters.completed is False

    def test_overlapping_tokens_are_removed_exactly(self):
        clean, filters = parse_search_query("tag:ab tag:abc", NOW)
        assert clean == ""
        assert filters.tags == ["ab", "abc"]

    def test_token_text_elsewhere_in_query_survives(self):
        clean, filters = parse_search_query("tag:exam review tag:examprep", NOW)
        assert clean == "review"
        assert filters.tags == ["exam", "examprep"]


class TestMergeFilters:
    def test_explicit_overrides_parsed(self):
        parsed = SearchFilters(type=SearchType.NOTE, priority=1)
        explicit = SearchFilters(type=SearchType.TASK)
        merged = merge_filters(parsed, explicit)
        assert merged.type == SearchType.TASK
        assert merged.priority == 1

    def test_unset_explicit_keeps_parsed(self):
        parsed = SearchFilters(tags=["math"])
        assert merge_filters(parsed, SearchFilters()).tags == ["math"]


class TestCollections:
    def test_all_searches_everything(self):
        assert set(collections_for(SearchType.ALL)) == {
            SearchType.NOTE,
            SearchType.TASK,
            SearchType.FLASHCARD,
            SearchType.FOLDER,
            SearchType.TAG,
        }

    def test_single_type(self):
        assert collections_for(SearchType.FOLDER) == [SearchType.FOLDER]

    def test_task_only_filter_skips_notes(self):
        filters = SearchFilters(completed=True)
        assert build_collection_query(SearchType.NOTE, "x", filters, "alice") is None
        assert build_collection_query(SearchType.TASK, "x", filters, "alice") is not None

    def test_query_is_scoped_to_owner(self):
        sql, params = build_collection_query(
            SearchType.FLASHCARD, "", SearchFilters(), "alice"
        )
        assert "d.user_id = ?" in sql
        assert params[0] == "alice"

    def test_like_wildcards_are_escaped(self):
        _, params = build_collection_query(
            SearchType.NOTE, "100%_done", SearchFilters(), "alice"
        )
        assert "%100\\%\\_done%" in params


class TestHighlight:
    def test_wraps_match(self):
        assert highlight("The Krebs cycle", "krebs") == "The <mark>Krebs</mark> cycle"

    def test_escapes_html(self):
        result = highlight("<b>bold</b> & krebs", "krebs")
        assert result == "&lt;b&gt;bold&lt;/b&gt; &amp; <mark>krebs</mark>"

    def test_no_match(self):
        assert highlight("Mitochondria", "krebs") is None

    def test_long_text_is_trimmed(self):
        text = "a" * 100 + "needle" + "b" * 100
        result = highlight(text, "needle")
        assert result.startswith("…")
        assert result.endswith("…")
        assert "<mark>needle</mark>" in result
