"""Unit tests for query preprocessing."""

import pytest

from codecontext.core.config import PipelineConfig
from codecontext.services.text_processing import (
    Preprocessor,
    clean_query,
    detect_intent,
    estimate_complexity,
    extract_domain_terms,
    extract_keywords,
    normalize_terms,
)


class TestCleanQuery:
    def test_empty_returns_empty(self) -> None:
        """Empty or whitespace-only input returns empty string."""
        assert clean_query("") == ""
        assert clean_query("   \n  ") == ""

    def test_removes_politeness(self) -> None:
        """Politeness phrases are stripped and whitespace collapsed."""
        assert clean_query("Could you please add an area method?") == "add an area method?"

    def test_collapses_whitespace(self) -> None:
        assert clean_query("fix   the\n\tbug") == "fix the bug"


class TestNormalizeTerms:
    def test_synonym_and_plural_replaced(self) -> None:
        """Synonyms (singular or plural) map to the canonical term."""
        assert normalize_terms("draw figures and a figure", {"figure": "shape"}) == "draw shape and a shape"

    def test_no_partial_word_replacement(self) -> None:
        assert normalize_terms("configured", {"config": "settings"}) == "configured"


class TestIntentAndKeywords:
    def test_create_intent(self) -> None:
        assert detect_intent("add an area calculation method").type == "create"

    def test_debug_intent(self) -> None:
        assert detect_intent("the parser crashes on empty input").type == "debug"

    def test_general_intent(self) -> None:
        assert detect_intent("hello there").type == "general"

    def test_keywords_unique_and_bounded(self) -> None:
        """Keywords drop short words and stop words, keep first-seen order, max 10."""
        words = extract_keywords("the area and the area of the shape")
        assert words == ["area", "shape"]
        many = extract_keywords(" ".join(f"word{i}" for i in range(20)))
        assert len(many) == 10

    def test_domain_term_weight_counts_occurrences(self) -> None:
        terms = extract_domain_terms("shape and Shape area", {"shape": "Base class"})
        assert [(t.term, t.weight) for t in terms] == [("shape", 2.0)]

    def test_complexity_hint(self) -> None:
        assert estimate_complexity("just rename it") == "simple"
        assert estimate_complexity("refactor several modules") == "complex"


class TestPreprocessor:
    def test_process_is_deterministic(self, config: PipelineConfig) -> None:
        """Same text and dictionary give an identical result."""
        pre = Preprocessor(config)
        assert pre.process("add an area to the figure") == pre.process("add an area to the figure")

    def test_process_applies_synonyms_and_terms(self, config: PipelineConfig) -> None:
        result = Preprocessor(config).process("Please add an area to the figure")
        assert result.original == "Please add an area to the figure"
        assert result.cleaned == "add an area to the shape"
        assert result.intent.type == "create"
        assert [t.term for t in result.detected_terms] == ["shape"]
        assert "math" in result.domains and "domain" in result.domains

    def test_empty_query_is_caller_error(self, config: PipelineConfig) -> None:
        with pytest.raises(ValueError):
            Preprocessor(config).process("  ")
