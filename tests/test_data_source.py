"""
Tests for the JSON file data source.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from politician_service.data_source import USER_LOCK_STRIPES, JsonDataSource
from politician_service.errors import ClassifiedError, ErrorKind
from politician_service.models import EntityKind, FeedbackEvent, FeedbackKind, SearchTermType

ENTITIES = [
    {"id": "p1", "title": "Ada Green", "party": "Green", "constituency": "North", "position": "MP", "popularity": 0.5},
    {"id": "p2", "title": "Ben Green", "party": "Green", "constituency": "South", "position": "MP", "popularity": 0.9},
    {"id": "p3", "title": "Cy Red", "party": "Labour", "constituency": "North", "position": "Senator"},
    {"id": "c1", "kind": "content", "title": "Green budget explained", "popularity": 0.7},
]

BOUNDS = (-3.0, 3.0)


def _write_entities(data_dir, records):
    (data_dir / "entities.json").write_text(json.dumps(records), encoding="utf-8")


def _event(feedback, user_id="u1", recommendation_id="p1", minutes=0):
    return FeedbackEvent(
        user_id=user_id,
        recommendation_id=recommendation_id,
        feedback=feedback,
        timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes),
    )


@pytest.fixture
def source(tmp_path):
    _write_entities(tmp_path, ENTITIES)
    return JsonDataSource(tmp_path)


class TestEntities:
    """Test entity reads."""

    async def test_fetch_candidates_orders_by_popularity_then_id(self, source):
        politicians = await source.fetch_candidates(EntityKind.POLITICIAN, 10)
        assert [e.id for e in politicians] == ["p2", "p1", "p3"]

        content = await source.fetch_candidates(EntityKind.CONTENT, 10)
        assert [e.id for e in content] == ["c1"]

        assert [e.id for e in await source.fetch_candidates(EntityKind.POLITICIAN, 1)] == ["p2"]

    async def test_get_entity(self, source):
        assert (await source.get_entity("p3")).party == "Labour"
        assert await source.get_entity("missing") is None

    async def test_find_entities_substring_match(self, source):
        matches = await source.find_entities("green", 10)
        assert [e.id for e in matches] == ["p2", "c1", "p1"]

    async def test_find_related_excludes_source(self, source):
        p1 = await source.get_entity("p1")
        related = await source.find_related(p1)
        assert [e.id for e in related] == ["p2", "p3"]

    async def test_search_terms_with_frequencies(self, source):
        terms = await source.list_search_terms()
        by_text = {(t.type, t.text): t.frequency for t in terms}

        assert by_text[(SearchTermType.PARTY, "Green")] == 2
        assert by_text[(SearchTermType.CONSTITUENCY, "North")] == 2
        assert by_text[(SearchTermType.NAME, "Ada Green")] == 1
        assert (SearchTermType.NAME, "Green budget explained") not in by_text

    async def test_missing_file_means_empty_directory(self, tmp_path):
        source = JsonDataSource(tmp_path)
        assert await source.fetch_candidates(EntityKind.POLITICIAN, 10) == []

    async def test_reload_after_file_changes(self, source, tmp_path):
        assert len(await source.fetch_candidates(EntityKind.POLITICIAN, 10)) == 3
        _write_entities(tmp_path, ENTITIES[:1])
        assert [e.id for e in await source.fetch_candidates(EntityKind.POLITICIAN, 10)] == ["p1"]

    async def test_invalid_records_are_skipped(self, tmp_path):
        _write_entities(tmp_path, [{"id": "ok", "title": "Fine"}, {"id": "", "title": "No id"}, {"title": "x"}])
        source = JsonDataSource(tmp_path)
        assert [e.id for e in await source.fetch_candidates(EntityKind.POLITICIAN, 10)] == ["ok"]

    async def test_corrupt_file_is_transient(self, tmp_path):
        (tmp_path / "entities.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ClassifiedError) as exc_info:
            await JsonDataSource(tmp_path).get_entity("p1")
        assert exc_info.value.kind is ErrorKind.TRANSIENT_BACKEND_ERROR
        assert exc_info.value.is_retryable


class TestFeedbackStore:
    """Test per-user feedback persistence."""

    async def test_records_history_and_affinity(self, source):
        write = await source.record_feedback(_event("like"), 1.0, BOUNDS)
        assert write.changed and write.weight == 1.0

        assert await source.load_affinity("u1") == {"p1": 1.0}
        history = await source.list_feedback("u1")
        assert [e.feedback for e in history] == [FeedbackKind.LIKE]

    async def test_identical_repeat_only_refreshes_timestamp(self, source):
        await source.record_feedback(_event("like"), 1.0, BOUNDS)
        write = await source.record_feedback(_event("like", minutes=5), 1.0, BOUNDS)

        assert not write.changed
        assert write.weight == 1.0
        assert len(await source.list_feedback("u1")) == 1

        data = json.loads(source._user_file("u1").read_text(encoding="utf-8"))
        assert data["latest"]["p1"]["timestamp"].startswith("2025-01-01T00:05")

    async def test_changed_feedback_appends_and_nudges(self, source):
        await source.record_feedback(_event("like"), 1.0, BOUNDS)
        await source.record_feedback(_event("dislike", minutes=1), -1.0, BOUNDS)

        history = await source.list_feedback("u1")
        assert [e.feedback.value for e in history] == ["like", "dislike"]
        assert await source.load_affinity("u1") == {"p1": 0.0}

    async def test_weight_is_clamped(self, source):
        for minute, kind in enumerate(["like", "clicked", "like", "clicked", "like"]):
            await source.record_feedback(_event(kind, minutes=minute), 1.0, (-2.0, 2.0))
        assert (await source.load_affinity("u1"))["p1"] == 2.0

    async def test_users_are_isolated(self, source):
        await source.record_feedback(_event("like", user_id="u1"), 1.0, BOUNDS)
        await source.record_feedback(_event("dislike", user_id="u2"), -1.0, BOUNDS)
        assert await source.load_affinity("u1") == {"p1": 1.0}
        assert await source.load_affinity("u2") == {"p1": -1.0}
        assert await source.load_affinity("nobody") == {}

    async def test_unsafe_user_ids_stay_inside_feedback_dir(self, source):
        path = source._user_file("../../etc/passwd")
        assert path.parent == source.feedback_dir
        assert source._user_file("a/b") != source._user_file("a_b")

    async def test_concurrent_writes_are_serialised(self, source):
        events = [
            _event("like" if i % 2 == 0 else "clicked", recommendation_id=f"e{i}", minutes=i)
            for i in range(20)
        ]
        await asyncio.gather(*(source.record_feedback(e, 0.5, BOUNDS) for e in events))

        assert len(await source.list_feedback("u1")) == 20
        assert len(await source.load_affinity("u1")) == 20

    async def test_user_locks_are_a_fixed_pool(self, source):
        for i in range(500):
            source._user_lock(f"user-{i}")
        assert len(source._user_locks) == USER_LOCK_STRIPES
        assert source._user_lock("u1") is source._user_lock("u1")
