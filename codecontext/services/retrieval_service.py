"""
Retrieval: keyword ranking over the method index and leveled search sessions.

Responsibility: Score indexed methods against cleaned query text, keep a
deterministic ranked list per query, and project it at increasing detail levels.
"""

import logging
import re
from typing import Any

from codecontext.core.config import CategorySettings, SearchSettings
from codecontext.schemas.methods import MethodRecord, RankedMethod
from codecontext.services.method_index import MethodIndex

logger = logging.getLogger(__name__)

# "Class.method" mentions in the raw text
EXPLICIT_METHOD_RE = re.compile(r"([A-Z][a-zA-Z]*)\s*\.\s*([a-zA-Z_][a-zA-Z0-9_]*)")

LEVEL_1_FIELDS = ("key", "class", "name", "role", "score", "description")
LEVEL_2_FIELDS = LEVEL_1_FIELDS + ("file", "signature", "effects", "consumers")
LEVEL_3_FIELDS = LEVEL_2_FIELDS + ("code",)


def _score_method(key: str, method: MethodRecord, words: list[str], explicit: set[str]) -> float:
    score = 0.0
    if key.lower() in explicit:
        score += 50
    name = method.name.lower()
    class_name = (method.class_name or "").lower()
    for word in words:
        if name == word:
            score += 20
        elif len(word) > 3 and word in name:
            score += 3
        if class_name and class_name == word:
            score += 10
    description = method.description.lower()
    if description:
        score += 3 * sum(1 for w in words if w in description)
    for consumer in method.consumers:
        score += 2 * sum(1 for w in words if w in consumer.lower())
    for targets in method.effects.values():
        for target in targets:
            score += 2 * sum(1 for w in words if w in target.lower())
    if method.role == "entry":
        score += 2
    elif method.role == "core":
        score += 1
    return score


def _rank(
    text: str,
    index: MethodIndex,
    max_methods: int,
    min_score: float,
    exclude_roles: tuple[str, ...],
    include_private: bool,
) -> list[RankedMethod]:
    words = [w for w in text.lower().split() if len(w) > 2]
    explicit = {f"{m.group(1)}.{m.group(2)}".lower() for m in EXPLICIT_METHOD_RE.finditer(text)}
    scored: dict[str, float] = {}
    for key, method in index.items():
        if method.is_private and not include_private:
            continue
        if method.role in exclude_roles:
            continue
        score = _score_method(key, method, words, explicit)
        if score >= min_score:
            scored[key] = score
    # Total order: score desc, key asc
    ranked = sorted(scored.items(), key=lambda item: (-item[1], item[0]))
    return [RankedMethod(key=k, score=s) for k, s in ranked[:max_methods]]


def rank_methods(text: str, index: MethodIndex, settings: SearchSettings | None = None) -> list[RankedMethod]:
    """
    Rank indexed methods for the query text.

    When nothing reaches the minimum score, one retry runs with an extended
    scope: lower threshold, internal roles and private methods included.
    """
    settings = settings or SearchSettings()
    logger.info("[retrieval:rank_methods] IN  text=%r methods=%d", text[:100], len(index))
    results = _rank(
        text, index, settings.max_methods, settings.min_score,
        tuple(settings.exclude_roles), settings.include_private,
    )
    if not results:
        logger.info("[retrieval:rank_methods] no results, retrying with extended scope")
        results = _rank(text, index, settings.max_methods, max(1, settings.min_score - 2), (), True)
    logger.info(
        "[retrieval:rank_methods] OUT results=%d top=%s",
        len(results), [(r.key, r.score) for r in results[:5]],
    )
    return results


class SearchSession:
    """
    Ranked, leveled view over method keys for one query.

    Read-only after creation: get_at_level projects the ranking computed in
    create_search_session and never reorders or searches again.
    """

    def __init__(self, query: str, ranked: list[RankedMethod], index: MethodIndex) -> None:
        self.query = query
        self._ranked = tuple(ranked)
        self._index = index

    @property
    def keys(self) -> list[str]:
        return [r.key for r in self._ranked]

    @property
    def ranked(self) -> tuple[RankedMethod, ...]:
        return self._ranked

    @property
    def count(self) -> int:
        return len(self._ranked)

    @property
    def index(self) -> MethodIndex:
        return self._index

    @property
    def summary(self) -> dict[str, Any]:
        return {"query": self.query, "result_count": self.count, "top": self.keys[:3]}

    def get_at_level(self, level: int = 1) -> list[dict[str, Any]]:
        """
        Level 1: key, class, name, role, score, description.
        Level 2: + file, signature, effects, consumers.
        Level 3: + code (None when the source cannot be read).
        """
        if level not in (1, 2, 3):
            raise ValueError(f"detail level must be 1, 2 or 3, got {level!r}")
        out: list[dict[str, Any]] = []
        for ranked in self._ranked:
            method = self._index.get(ranked.key)
            if method is None:
                out.append({"key": ranked.key, "score": ranked.score})
                continue
            item: dict[str, Any] = {
                "key": ranked.key,
                "class": method.class_name,
                "name": method.name,
                "role": method.role,
                "score": ranked.score,
                "description": method.description,
            }
            if level >= 2:
                item["file"] = method.file
                item["signature"] = method.signature
                item["effects"] = method.effects
                item["consumers"] = method.consumers
            if level >= 3:
                item["code"] = self._index.read_code(method)
            out.append(item)
        return out


def create_search_session(text: str, index: MethodIndex, settings: SearchSettings | None = None) -> SearchSession:
    """Run retrieval once for the cleaned query text."""
    return SearchSession(text, rank_methods(text, index, settings), index)


def detect_query_category(text: str, categories: dict[str, CategorySettings]) -> str | None:
    """First configured category with a keyword contained in the text, else None."""
    lower = text.lower()
    for category, settings in categories.items():
        if any(kw.lower() in lower for kw in settings.keywords):
            return category
    return None
