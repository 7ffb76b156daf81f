"""
Code extraction for the top-ranked methods of a search session.

Walks the session's ranked order (never re-ranks) and resolves full source
for at most max_methods keys. Keys whose record or code cannot be resolved
are skipped; partial extraction is a normal outcome.
"""

import logging

from codecontext.schemas.methods import ExtractedMethod
from codecontext.services.retrieval_service import SearchSession

logger = logging.getLogger(__name__)

DEFAULT_MAX_METHODS = 10


def extract_methods_code(session: SearchSession, max_methods: int = DEFAULT_MAX_METHODS) -> list[ExtractedMethod]:
    logger.info("[extraction:extract_methods_code] IN  ranked=%d max_methods=%d", session.count, max_methods)
    extracted: list[ExtractedMethod] = []
    skipped: list[str] = []
    for ranked in session.ranked:
        if len(extracted) >= max_methods:
            break
        record = session.index.get(ranked.key)
        code = session.index.read_code(record) if record is not None else None
        if record is None or code is None:
            skipped.append(ranked.key)
            continue
        extracted.append(ExtractedMethod(
            key=ranked.key,
            score=ranked.score,
            file=record.file,
            class_name=record.class_name,
            name=record.name,
            signature=record.signature,
            role=record.role,
            description=record.description,
            effects=record.effects,
            consumers=record.consumers,
            code=code,
        ))
    if skipped:
        logger.info("[extraction:extract_methods_code] skipped unresolvable keys=%s", skipped)
    if session.count and not extracted:
        logger.warning("[extraction:extract_methods_code] no method could be resolved out of %d ranked", session.count)
    logger.info("[extraction:extract_methods_code] OUT extracted=%s", [m.key for m in extracted])
    return extracted
