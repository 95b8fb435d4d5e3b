"""
Tests for the search service.
"""

import pytest

from conftest import FakeDataSource, make_entity
from politician_service.errors import ClassifiedError, ErrorKind, transient_error
from politician_service.models import SearchTerm, SearchTermType
from politician_service.retry import RetryExecutor
from politician_service.search import SearchService, SearchSettings


def _service(source, sleep=None, **settings):
    return SearchService(
        source,
        retry_executor=RetryExecutor(sleep=sleep) if sleep else None,
        settings=SearchSettings(**settings),
    )


def _terms(*texts_and_freqs):
    return [SearchTerm(text=text, type=SearchTermType.NAME, frequency=freq) for text, freq in texts_and_freqs]


class TestSuggestions:
    """Test suggestion lookup."""

    @pytest.mark.parametrize("query", ["", " ", "a", " b ", None])
    async def test_short_query_skips_data_source(self, fake_source, query):
        assert await _service(fake_source).get_suggestions(query) == []
        assert fake_source.total_calls == 0

    async def test_prefix_before_word_prefix_before_fuzzy(self):
        source = FakeDataSource(terms=_terms(
            ("Anna Green", 1),
            ("Greenwich", 1),
            ("Grean Party", 1),
            ("Labour", 9),
        ))
        suggestions = await _service(source).get_suggestions("gree")
        assert suggestions[:2] == ["Greenwich", "Anna Green"]
        assert "Labour" not in suggestions

    async def test_frequency_breaks_ties(self):
        source = FakeDataSource(terms=_terms(("Green North", 1), ("Green South", 5)))
        assert await _service(source).get_suggestions("green") == ["Green South", "Green North"]

    async def test_deduplicates_case_insensitively(self):
        source = FakeDataSource(terms=_terms(("Green", 3), ("green", 1)))
        assert await _service(source).get_suggestions("gr") == ["Green"]

    async def test_limit_is_clamped(self):
        source = FakeDataSource(terms=_terms(*[(f"Name {i:02d}", 1) for i in range(30)]))
        service = _service(source, max_suggestions=20)
        assert len(await service.get_suggestions("name", limit=100)) == 20
        assert len(await service.get_suggestions("name", limit=0)) == 1

    async def test_uses_fast_best_effort_policy(self, fake_source, recording_sleep):
        fake_source.fail("list_search_terms", transient_error("a"), transient_error("b"))

        with pytest.raises(ClassifiedError) as exc_info:
            await _service(fake_source, sleep=recording_sleep).get_suggestions("p1")

        assert exc_info.value.kind is ErrorKind.TRANSIENT_BACKEND_ERROR
        assert fake_source.calls["list_search_terms"] == 2
        assert recording_sleep.delays == [0.05]


class TestRelatedPoliticians:
    """Test related politician lookup."""

    async def test_ranked_by_shared_attributes(self, fake_source):
        related = await _service(fake_source).get_related_politicians("p1")

        assert [(r.entity.id, r.similarity, r.match_type) for r in related] == [
            ("p2", pytest.approx(0.7), "same_party"),
            ("p3", pytest.approx(0.3), "same_constituency"),
        ]

    async def test_limit(self, fake_source):
        related = await _service(fake_source).get_related_politicians("p1", limit=1)
        assert [r.entity.id for r in related] == ["p2"]

    async def test_ties_broken_by_id(self):
        source = FakeDataSource([
            make_entity("src", party="Green"),
            make_entity("b", party="Green"),
            make_entity("a", party="Green"),
        ])
        related = await _service(source).get_related_politicians("src")
        assert [r.entity.id for r in related] == ["a", "b"]

    @pytest.mark.parametrize("entity_id", ["", "   ", None])
    async def test_blank_id_rejected(self, fake_source, entity_id):
        with pytest.raises(ClassifiedError) as exc_info:
            await _service(fake_source).get_related_politicians(entity_id)
        assert exc_info.value.kind is ErrorKind.VALIDATION_ERROR
        assert fake_source.total_calls == 0

    async def test_missing_source_is_not_found_and_not_retried(self, fake_source, recording_sleep):
        with pytest.raises(ClassifiedError) as exc_info:
            await _service(fake_source, sleep=recording_sleep).get_related_politicians("nobody")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert fake_source.calls["get_entity"] == 1
        assert recording_sleep.delays == []

    async def test_transient_failure_uses_standard_policy(self, fake_source, recording_sleep):
        fake_source.fail("find_related", transient_error("a"), transient_error("b"))
        related = await _service(fake_source, sleep=recording_sleep).get_related_politicians("p1")

        assert related
        assert fake_source.calls["find_related"] == 3
        assert recording_sleep.delays == [0.1, 0.2]


class TestFuzzySearch:
    """Test typo-tolerant search."""

    async def test_finds_misspelled_name(self):
        source = FakeDataSource([
            make_entity("p1", title="Jacinda Ardern", party="Labour"),
            make_entity("p2", title="Boris Johnson", party="Conservative"),
        ])
        matches = await _service(source).fuzzy_search("Jacinta Arden", threshold=0.7)

        assert [m.entity.id for m in matches] == ["p1"]
        assert matches[0].match_type == "name_fuzzy"
        assert matches[0].similarity >= 0.7

    async def test_best_field_decides_match_type(self):
        source = FakeDataSource([make_entity("p1", title="Someone Else", party="Greens")])
        matches = await _service(source).fuzzy_search("Green", threshold=0.5)
        assert matches[0].match_type == "party_fuzzy"

    async def test_zero_threshold_returns_everything_sorted(self, fake_source):
        matches = await _service(fake_source).fuzzy_search("P1", threshold=0.0)
        assert matches[0].entity.id == "p1"
        assert matches[0].similarity == pytest.approx(1.0)
        similarities = [m.similarity for m in matches]
        assert similarities == sorted(similarities, reverse=True)

    @pytest.mark.parametrize("query,threshold", [("a", 0.3), ("", 0.3), ("green", -0.1), ("green", 1.5)])
    async def test_invalid_arguments_rejected(self, fake_source, query, threshold):
        with pytest.raises(ClassifiedError) as exc_info:
            await _service(fake_source).fuzzy_search(query, threshold=threshold)
        assert exc_info.value.kind is ErrorKind.VALIDATION_ERROR
        assert fake_source.total_calls == 0
