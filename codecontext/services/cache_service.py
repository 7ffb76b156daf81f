"""
Similarity-keyed query cache persisted as JSON.

Lookups are advisory: a hit is reported to the caller, never substituted for a
fresh answer. Similarity is difflib's SequenceMatcher ratio over normalized
query text; entries expire after ttl_minutes and the store is bounded by
max_entries (lowest use_count minus age in days evicted first).
"""

import hashlib
import json
import logging
import os
import tempfile
import time
from difflib import SequenceMatcher
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from codecontext.core.config import CacheSettings
from codecontext.core.errors import PersistenceFailure
from codecontext.schemas.pipeline import CacheEntry, CacheLookup

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


def normalize_query(text: str) -> str:
    return " ".join((text or "").lower().split())


def query_fingerprint(text: str) -> str:
    return hashlib.sha256(normalize_query(text).encode("utf-8")).hexdigest()[:16]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]; identical normalized text is exactly 1.0."""
    left, right = normalize_query(a), normalize_query(b)
    if left == right:
        return 1.0
    if not left or not right:
        return 0.0
    return SequenceMatcher(None, left, right).ratio()


class QueryCache:
    def __init__(self, path: str | Path, settings: CacheSettings | None = None, clock=time.time) -> None:
        self.path = Path(path)
        self.settings = settings or CacheSettings()
        self._clock = clock
        self.entries: list[CacheEntry] = []
        self.hits = 0
        self.misses = 0
        self._load()

    def _load(self) -> None:
        if not self.path.is_file():
            logger.info("[cache:load] no cache file at %s", self.path)
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("[cache:load] unreadable cache %s, starting empty: %s", self.path, e)
            return
        if not isinstance(data, dict):
            logger.warning("[cache:load] unexpected cache format in %s, starting empty", self.path)
            return
        for raw in data.get("entries") or []:
            try:
                self.entries.append(CacheEntry.model_validate(raw))
            except ValidationError:
                logger.warning("[cache:load] skip malformed entry")
        stats = data.get("stats") or {}
        self.hits = int(stats.get("hits", 0))
        self.misses = int(stats.get("misses", 0))
        removed = self._drop_expired()
        logger.info("[cache:load] OUT entries=%d expired_removed=%d", len(self.entries), removed)

    def _drop_expired(self) -> int:
        ttl = self.settings.ttl_minutes * 60
        now = self._clock()
        before = len(self.entries)
        self.entries = [e for e in self.entries if now - e.timestamp < ttl]
        return before - len(self.entries)

    def find(self, query: str) -> CacheLookup:
        best: CacheEntry | None = None
        best_score = 0.0
        for entry in self.entries:
            score = similarity(query, entry.original_query)
            if score > best_score and score >= self.settings.similarity_threshold:
                best, best_score = entry, score
        if best is None:
            self.misses += 1
            logger.info("[cache:find] MISS query=%r", query[:80])
            return CacheLookup(hit=False, similarity=0.0)
        self.hits += 1
        logger.info("[cache:find] HIT similarity=%.3f cached_query=%r", best_score, best.original_query[:80])
        return CacheLookup(hit=True, similarity=best_score, entry=best)

    def store(self, query: str, response: str, metadata: dict[str, Any] | None = None) -> CacheEntry:
        """Add an entry; a near-duplicate query replaces the older entry and inherits its use count."""
        now = self._clock()
        use_count = 1
        for i, existing in enumerate(self.entries):
            if similarity(query, existing.original_query) > self.settings.duplicate_threshold:
                use_count = existing.use_count + 1
                del self.entries[i]
                break
        entry = CacheEntry(
            query_fingerprint=query_fingerprint(query),
            original_query=query,
            response=response,
            timestamp=now,
            use_count=use_count,
            metadata=dict(metadata or {}),
        )
        self.entries.append(entry)
        if len(self.entries) > self.settings.max_entries:
            self.entries.sort(key=lambda e: e.use_count - (now - e.timestamp) / SECONDS_PER_DAY, reverse=True)
            evicted = len(self.entries) - self.settings.max_entries
            self.entries = self.entries[: self.settings.max_entries]
            logger.info("[cache:store] evicted=%d", evicted)
        logger.info("[cache:store] entries=%d use_count=%d", len(self.entries), use_count)
        return entry

    def save(self) -> None:
        """Write all entries atomically (temp file in the same directory, then os.replace)."""
        payload = {
            "entries": [e.model_dump() for e in self.entries],
            "stats": {"hits": self.hits, "misses": self.misses},
        }
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".qa-cache-", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceFailure(f"Could not save cache to {self.path}: {e}", str(self.path)) from e
        logger.info("[cache:save] OUT path=%s entries=%d", self.path, len(self.entries))

    def stats(self) -> dict[str, Any]:
        total = self.hits + self.misses
        hit_rate = round(self.hits / total * 100, 1) if total else 0.0
        return {"entries": len(self.entries), "hits": self.hits, "misses": self.misses, "hit_rate": hit_rate}

    def clear(self) -> None:
        self.entries = []
        self.hits = 0
        self.misses = 0
