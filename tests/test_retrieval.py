"""Tests for ranking, search sessions and category detection."""

import pytest

from codecontext.core.config import PipelineConfig
from codecontext.services.method_index import MethodIndex
from codecontext.services.retrieval_service import (
    create_search_session,
    detect_query_category,
    rank_methods,
)

from conftest import SCENARIO_QUERY


class TestRanking:
    def test_ranking_is_deterministic(self, index: MethodIndex) -> None:
        """Two sessions for the same text over an unchanged index have identical order."""
        first = create_search_session(SCENARIO_QUERY, index)
        second = create_search_session(SCENARIO_QUERY, index)
        assert first.keys == second.keys
        assert [r.score for r in first.ranked] == [r.score for r in second.ranked]

    def test_ties_broken_by_key(self, index: MethodIndex) -> None:
        """Equal scores are ordered by key; lower scores follow."""
        session = create_search_session(SCENARIO_QUERY, index)
        assert session.keys == ["Circle.area", "Shape.area", "Polygon.perimeter"]
        assert [r.score for r in session.ranked] == [24, 24, 3]

    def test_private_and_internal_excluded(self, index: MethodIndex) -> None:
        keys = [r.key for r in rank_methods("area method traces", index)]
        assert "Shape._cache" not in keys
        assert "Logger.write" not in keys

    def test_extended_scope_retry_when_nothing_matches(self) -> None:
        """A private-only match is found by the extended-scope retry."""
        index = MethodIndex.from_dict({
            "methods": {
                "Store._evict": {"name": "_evict", "class": "Store", "description": "Drop cache entries", "isPrivate": True},
                "Store.get": {"name": "get", "class": "Store", "description": "Read one entry"},
            }
        })
        assert [r.key for r in rank_methods("cache eviction", index)] == ["Store._evict"]

    def test_explicit_class_method_mention(self, index: MethodIndex) -> None:
        ranked = rank_methods("fix Polygon.perimeter", index)
        assert ranked[0].key == "Polygon.perimeter"
        assert ranked[0].score >= 50


class TestSearchSessionLevels:
    def test_levels_add_fields_without_reordering(self, index: MethodIndex) -> None:
        """Each level is a strict superset of the previous one, in the same key order."""
        session = create_search_session(SCENARIO_QUERY, index)
        levels = [session.get_at_level(n) for n in (1, 2, 3)]
        assert [m["key"] for m in levels[0]] == [m["key"] for m in levels[1]] == [m["key"] for m in levels[2]]
        for one, two, three in zip(*levels):
            assert set(one) < set(two) < set(three)

    def test_level_three_contains_code(self, index: MethodIndex) -> None:
        session = create_search_session(SCENARIO_QUERY, index)
        first = session.get_at_level(3)[0]
        assert first["key"] == "Circle.area"
        assert "math.pi" in first["code"]

    def test_level_projection_does_not_search_again(self, index: MethodIndex, monkeypatch) -> None:
        session = create_search_session(SCENARIO_QUERY, index)
        monkeypatch.setattr(
            "codecontext.services.retrieval_service.rank_methods",
            lambda *a, **k: pytest.fail("get_at_level must not rank again"),
        )
        assert len(session.get_at_level(2)) == 3

    def test_invalid_level(self, index: MethodIndex) -> None:
        with pytest.raises(ValueError):
            create_search_session(SCENARIO_QUERY, index).get_at_level(4)


class TestDetectQueryCategory:
    def test_first_matching_category(self, config: PipelineConfig) -> None:
        assert detect_query_category("draw the area", config.categories) == "geometry"
        assert detect_query_category("Draw it on a canvas", config.categories) == "rendering"

    def test_no_match(self, config: PipelineConfig) -> None:
        assert detect_query_category("rotate the logs", config.categories) is None
