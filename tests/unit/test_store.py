"""Unit tests for the activity store and highlight state."""

from __future__ import annotations

from datetime import date

import pytest

from strava_trails.models.activity import Activity
from strava_trails.models.highlight import HighlightState
from strava_trails.models.store import ActivityStore, dedupe_activities


def _activity(activity_id: str, name: str = "", day: int = 1) -> Activity:
    return Activity(
        id=activity_id,
        name=name or f"Activity {activity_id}",
        category="Run",
        date=date(2024, 6, day),
        geometry=((-105.0, 40.0),),
        start_point=(-105.0, 40.0),
    )


@pytest.mark.ai_generated
class TestActivityStore:
    """Tests for ActivityStore."""

    def test_replace_and_append(self) -> None:
        store = ActivityStore()

        assert store.replace([_activity("1"), _activity("2")]) == 2
        assert store.append([_activity("3")]) == 1
        assert [a.id for a in store] == ["1", "2", "3"]
        assert len(store) == 3
        assert "2" in store

    def test_replace_discards_previous(self) -> None:
        store = ActivityStore()
        store.replace([_activity("1"), _activity("2")])

        store.replace([_activity("9")])

        assert [a.id for a in store] == ["9"]
        assert store.by_id("1") is None

    def test_duplicate_id_across_pages_keeps_first(self) -> None:
        store = ActivityStore()
        store.replace([_activity("42", name="first page")])

        added = store.append([_activity("42", name="second page"), _activity("43")])

        assert added == 1
        assert [a.id for a in store] == ["42", "43"]
        assert store.by_id("42").name == "first page"

    def test_duplicate_id_within_page(self) -> None:
        store = ActivityStore()

        store.replace([_activity("7", name="a"), _activity("7", name="b")])

        assert len(store) == 1
        assert store.by_id("7").name == "a"

    def test_listeners_and_version(self) -> None:
        store = ActivityStore()
        calls: list[int] = []
        unsubscribe = store.subscribe(lambda s: calls.append(len(s)))

        store.replace([_activity("1")])
        store.append([_activity("2")])
        unsubscribe()
        store.append([_activity("3")])

        assert calls == [1, 2]
        assert store.version == 3

    def test_activities_is_snapshot(self) -> None:
        store = ActivityStore()
        store.replace([_activity("1")])
        snapshot = store.activities

        store.append([_activity("2")])

        assert len(snapshot) == 1

    def test_dedupe_updates_seen(self) -> None:
        seen = {"1"}

        unique = dedupe_activities([_activity("1"), _activity("2")], seen=seen)

        assert [a.id for a in unique] == ["2"]
        assert seen == {"1", "2"}


@pytest.mark.ai_generated
class TestHighlightState:
    """Tests for HighlightState."""

    @pytest.fixture
    def store(self) -> ActivityStore:
        store = ActivityStore()
        store.replace([_activity("1"), _activity("2")])
        return store

    def test_set_and_notify(self, store: ActivityStore) -> None:
        highlight = HighlightState(store.__contains__)
        seen: list[str | None] = []
        highlight.subscribe(seen.append)

        assert highlight.set_highlight("1")
        assert highlight.set_highlight("1")

        assert highlight.value == "1"
        assert seen == ["1"]

    def test_unknown_id_ignored(self, store: ActivityStore) -> None:
        highlight = HighlightState(store.__contains__)

        assert not highlight.set_highlight("999")
        assert highlight.value is None

    def test_late_clear_does_not_clobber_newer_hover(self, store: ActivityStore) -> None:
        highlight = HighlightState(store.__contains__)
        highlight.set_highlight("1")
        highlight.set_highlight("2")

        assert not highlight.clear_highlight("1")
        assert highlight.value == "2"

        assert highlight.clear_highlight("2")
        assert highlight.value is None

    def test_reconcile_after_replace(self, store: ActivityStore) -> None:
        highlight = HighlightState(store.__contains__)
        highlight.set_highlight("2")

        store.replace([_activity("1")])
        highlight.reconcile()

        assert highlight.value is None

    def test_reconcile_keeps_present_id(self, store: ActivityStore) -> None:
        highlight = HighlightState(store.__contains__)
        highlight.set_highlight("1")

        store.append([_activity("3")])
        highlight.reconcile()

        assert highlight.value == "1"
