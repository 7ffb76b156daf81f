"""
Prompt assembly in a fixed section order.

Context header, one subsection per extracted method, analysis, the chosen
approach (only when one was selected), then the verbatim request last.
"""

import math
from typing import Any

from codecontext.core.config import CHARS_PER_TOKEN
from codecontext.schemas.methods import ExtractedMethod
from codecontext.schemas.pipeline import Analysis, Proposal
from codecontext.schemas.query import PreprocessedQuery

SYSTEM_PROMPT = (
    "You are an expert software engineer working on the codebase the user describes. "
    "Only the methods relevant to the request are provided. Answer precisely and "
    "concisely, and show code changes as complete methods."
)

CONTEXT_HEADER = "# Context"
METHODS_HEADER = "# Relevant methods"
ANALYSIS_HEADER = "# Analysis"
APPROACH_HEADER = "# Chosen approach"
REQUEST_HEADER = "# Request"


def estimate_tokens(text: str) -> int:
    """Approximate token count: ceil(characters / 4). Not a tokenizer."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _format_effects(effects: dict[str, list[str]]) -> str:
    return "; ".join(f"{kind}: {', '.join(targets)}" for kind, targets in effects.items() if targets)


def _method_section(method: ExtractedMethod) -> str:
    lines = [
        f"## {method.key}",
        f"File: {method.file}",
        f"Role: {method.role or 'unspecified'}",
    ]
    if method.description:
        lines.append(f"Description: {method.description}")
    effects = _format_effects(method.effects)
    if effects:
        lines.append(f"Effects: {effects}")
    if method.consumers:
        lines.append(f"Called by: {', '.join(method.consumers)}")
    if method.signature:
        lines.append(f"Signature: {method.signature}")
    lines.extend(["```", method.code, "```"])
    return "\n".join(lines)


def build_optimized_prompt(
    query: str,
    preprocessed: PreprocessedQuery,
    analysis: Analysis,
    proposal: Proposal | None,
    extracted: list[ExtractedMethod],
    context: dict[str, Any],
) -> str:
    terms = ", ".join(t.term for t in preprocessed.detected_terms) or "none"
    sections = [
        "\n".join([
            CONTEXT_HEADER,
            f"Category: {context.get('detected_category') or 'general'}",
            f"Domain terms: {terms}",
        ])
    ]

    if extracted:
        sections.append(f"{METHODS_HEADER}\n{len(extracted)} method(s) selected")
        sections.extend(_method_section(m) for m in extracted)

    risks = "\n".join(f"- [{r.level}] {r.description}" for r in analysis.risks) or "- none identified"
    sections.append("\n".join([
        ANALYSIS_HEADER,
        f"Type: {analysis.summary.type}",
        f"Complexity: {analysis.complexity.label}",
        "Risks:",
        risks,
    ]))

    if proposal is not None:
        approach = [APPROACH_HEADER, f"**{proposal.title}**", proposal.description]
        if proposal.snippet:
            approach.extend(["Example:", "```", proposal.snippet, "```"])
        sections.append("\n".join(approach))

    sections.append(f"{REQUEST_HEADER}\n{query}")
    return "\n\n".join(sections)
