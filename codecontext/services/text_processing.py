"""
Query preprocessing: cleaning, term normalization, intent and keyword detection.

Cleaning removes conversational noise so retrieval scores content words only.
The output is a frozen PreprocessedQuery; the same text and dictionary always
yield the same result.
"""

import logging
import re
import unicodedata

from codecontext.core.config import PipelineConfig
from codecontext.schemas.query import DetectedTerm, Intent, PreprocessedQuery

logger = logging.getLogger(__name__)

# (pattern, replacement) applied in order; whitespace collapse last
CLEAN_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bthanks? (you )?in advance\b", re.IGNORECASE), ""),
    (re.compile(r"\bplease\b", re.IGNORECASE), ""),
    (re.compile(r"\b(could|can|would) you( please)?\b", re.IGNORECASE), ""),
    (re.compile(r"\bi(?:'d| would) like you to\b", re.IGNORECASE), ""),
    (re.compile(r"\bi want you to\b", re.IGNORECASE), ""),
    (re.compile(r"\s+"), " "),
]

# First match wins
INTENTS: list[tuple[str, tuple[str, ...], str]] = [
    ("create", ("add", "create", "implement", "new", "build", "write"), "Create new code"),
    ("modify", ("modify", "change", "update", "replace", "rename", "edit"), "Modify existing code"),
    ("explain", ("explain", "how does", "what does", "why", "understand", "describe"), "Explain code behaviour"),
    ("debug", ("bug", "fix", "error", "broken", "crash", "debug", "fail", "issue"), "Fix a defect"),
    ("optimize", ("optimi", "faster", "performance", "speed up", "slow"), "Improve performance"),
    ("refactor", ("refactor", "restructure", "clean up", "simplify", "extract"), "Restructure code"),
    ("test", ("test", "coverage", "assert"), "Write or fix tests"),
]
GENERAL_INTENT = Intent(type="general", description="General request")

DOMAIN_PATTERNS: dict[str, tuple[str, ...]] = {
    "math": ("calcul", "compute", "area", "angle", "distance", "projection", "geometry"),
    "rendering": ("render", "draw", "canvas", "svg", "display", "color", "style"),
    "ui": ("button", "click", "input", "form", "dialog", "modal", "menu"),
    "debug": ("debug", "log", "trace", "inspect", "breakpoint"),
}

STOP_WORDS: frozenset[str] = frozenset({
    "the", "and", "for", "with", "without", "into", "from", "that", "this", "these",
    "those", "are", "was", "were", "has", "have", "had", "but", "not", "you", "your",
    "our", "its", "how", "what", "why", "when", "where", "which", "who", "can", "could",
    "should", "would", "will", "all", "any", "some", "then", "than", "there", "their",
    "does", "did", "also", "just",
})
MAX_KEYWORDS = 10


def clean_query(text: str) -> str:
    """Normalize unicode, strip politeness phrases and collapse whitespace."""
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    for pattern, replacement in CLEAN_PATTERNS:
        text = pattern.sub(replacement, text)
    return text.strip(" ,.;")


def normalize_terms(text: str, synonyms: dict[str, str]) -> str:
    """Replace synonyms (and their plural) with the canonical domain term."""
    for synonym, canonical in synonyms.items():
        pattern = re.compile(rf"\b{re.escape(synonym)}s?\b", re.IGNORECASE)
        text = pattern.sub(canonical, text)
    return text


def _contains(lower: str, pattern: str) -> bool:
    return re.search(rf"\b{re.escape(pattern)}", lower) is not None


def detect_intent(text: str) -> Intent:
    lower = text.lower()
    for intent_type, patterns, description in INTENTS:
        if any(_contains(lower, p) for p in patterns):
            return Intent(type=intent_type, description=description)
    return GENERAL_INTENT


def extract_domain_terms(text: str, domain_terms: dict[str, str]) -> list[DetectedTerm]:
    """Domain terms present in text, weighted by occurrence count, in dictionary order."""
    lower = text.lower()
    found: list[DetectedTerm] = []
    for term, description in domain_terms.items():
        count = len(re.findall(rf"\b{re.escape(term.lower())}", lower))
        if count:
            found.append(DetectedTerm(term=term, weight=float(count), description=description))
    return found


def detect_domains(text: str, has_domain_terms: bool) -> list[str]:
    lower = text.lower()
    domains = [name for name, patterns in DOMAIN_PATTERNS.items() if any(p in lower for p in patterns)]
    if has_domain_terms:
        domains.append("domain")
    return domains or ["general"]


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Unique significant words (len > 2, not a stop word) in order of appearance."""
    words = re.sub(r"[^\w\s-]", " ", text.lower()).split()
    out: list[str] = []
    for w in words:
        if len(w) > 2 and w not in STOP_WORDS and w not in out:
            out.append(w)
    return out[:limit]


def estimate_complexity(text: str) -> str:
    lower = text.lower()
    score = 0
    if any(_contains(lower, w) for w in ("simple", "basic", "just", "small")):
        score -= 1
    if any(_contains(lower, w) for w in ("several", "multiple", "many")):
        score += 1
    if any(_contains(lower, w) for w in ("refactor", "system", "everywhere", "all files")):
        score += 2
    if score <= 0:
        return "simple"
    if score <= 2:
        return "medium"
    return "complex"


def _enrich(cleaned: str, intent: Intent, terms: list[DetectedTerm]) -> str:
    lines = [cleaned, "", f"Intent: {intent.description}"]
    if terms:
        lines.append("Domain context:")
        lines.extend(f"- {t.term}: {t.description}" if t.description else f"- {t.term}" for t in terms)
    return "\n".join(lines)


class Preprocessor:
    """Turns a raw query into a PreprocessedQuery using the configured domain dictionary."""

    def __init__(self, config: PipelineConfig) -> None:
        self.domain_terms = dict(config.domain_terms)
        self.synonyms = dict(config.synonyms)

    def process(self, query: str) -> PreprocessedQuery:
        if not query or not query.strip():
            raise ValueError("query is required")
        logger.info("[preprocess:process] IN  query=%r", query[:200])
        cleaned = normalize_terms(clean_query(query), self.synonyms)
        intent = detect_intent(cleaned)
        terms = extract_domain_terms(cleaned, self.domain_terms)
        result = PreprocessedQuery(
            original=query,
            cleaned=cleaned,
            enriched=_enrich(cleaned, intent, terms),
            intent=intent,
            detected_terms=tuple(terms),
            domains=tuple(detect_domains(cleaned, bool(terms))),
            keywords=tuple(extract_keywords(cleaned)),
            complexity_hint=estimate_complexity(cleaned),
        )
        logger.info(
            "[preprocess:process] OUT cleaned=%r intent=%s terms=%s",
            result.cleaned, intent.type, [t.term for t in terms],
        )
        return result
