"""
Proposal generation and interactive validation.

Offers 2-3 alternative approaches per intent, scores them, recommends one and
asks the user to approve before any code is extracted or sent. The prompt and
output callables are injected so the decision point can be scripted.
"""

import logging
from typing import Any, Callable

from codecontext.core.config import ProposalSettings
from codecontext.schemas.pipeline import Analysis, Proposal, ProposalScores, ProposalSet, Validation

logger = logging.getLogger(__name__)

DIFFICULTY_SCORES = {"simple": 3, "medium": 2, "complex": 1}
MAINTAINABILITY_SCORES = {"good": 3, "average": 2, "poor": 1}
YES_ANSWERS = frozenset({"y", "yes"})


def _create_proposals(files: list[str], category: str) -> list[Proposal]:
    proposals = [
        Proposal(
            title="Add directly to the existing file",
            description="Put the new functionality in the most relevant existing file",
            pros=["Quick to implement", "No new files to maintain", "Consistent with existing code"],
            cons=["May bloat the existing file", "Less modular"],
            difficulty="simple",
            maintainability="average",
            files=files[:2],
        ),
        Proposal(
            title="Create a dedicated module",
            description="Implement the functionality in a new, separate file",
            pros=["Clear separation of responsibilities", "Easier to test", "Reusable"],
            cons=["More files to manage", "Extra imports needed"],
            difficulty="medium",
            maintainability="good",
            files=["New file"],
        ),
    ]
    if category in ("domain", "math"):
        proposals.append(Proposal(
            title="Extend an existing class",
            description="Subclass or extend an existing class with the new behaviour",
            pros=["Reuses existing infrastructure", "Fits the project architecture"],
            cons=["Tighter coupling", "Deeper hierarchy"],
            difficulty="medium",
            maintainability="good",
            files=files[:2],
        ))
    return proposals


def _modify_proposals(files: list[str]) -> list[Proposal]:
    return [
        Proposal(
            title="Minimal targeted change",
            description="Change only the code that strictly needs it",
            pros=["Minimal regression risk", "Quick", "Easy to revert"],
            cons=["May not address the root cause"],
            difficulty="simple",
            maintainability="average",
            files=files[:1],
        ),
        Proposal(
            title="Local refactoring with improvement",
            description="Use the change to improve the surrounding code",
            pros=["Improves code quality", "May fix related problems"],
            cons=["Takes longer", "Higher regression risk"],
            difficulty="medium",
            maintainability="good",
            files=files[:3],
        ),
    ]


def _refactor_proposals(files: list[str]) -> list[Proposal]:
    return [
        Proposal(
            title="Incremental refactoring",
            description="Refactor step by step, validating after each step",
            pros=["Reversible", "Testable at each step", "Lower risk"],
            cons=["Takes longer"],
            difficulty="medium",
            maintainability="good",
            files=files,
        ),
        Proposal(
            title="Single-pass refactoring",
            description="Refactor everything in one pass",
            pros=["Fast", "Consistent result"],
            cons=["Risky", "Hard to debug when something breaks"],
            difficulty="complex",
            maintainability="good",
            files=files,
        ),
    ]


def _optimize_proposals(files: list[str]) -> list[Proposal]:
    return [
        Proposal(
            title="Algorithmic optimization",
            description="Reduce the algorithmic complexity of the hot path",
            pros=["Significant gains", "Durable"],
            cons=["May require a rewrite", "Harder to implement"],
            difficulty="complex",
            maintainability="good",
            files=files[:2],
        ),
        Proposal(
            title="Caching / memoization",
            description="Cache results of expensive computations",
            pros=["Simple to implement", "Immediate gains"],
            cons=["Uses more memory", "Risk of stale results"],
            difficulty="simple",
            maintainability="average",
            files=files[:2],
            snippet=(
                "_cache = {}\n\n"
                "def memoized(key, compute):\n"
                "    if key not in _cache:\n"
                "        _cache[key] = compute()\n"
                "    return _cache[key]"
            ),
        ),
    ]


def _default_proposals(files: list[str]) -> list[Proposal]:
    return [
        Proposal(
            title="Standard approach",
            description="Implement following the project's conventions",
            pros=["Consistent with existing code", "Maintainable"],
            cons=["May not be optimal"],
            difficulty="medium",
            maintainability="good",
            files=files[:3],
        )
    ]


def _fallback_proposal(index: int) -> Proposal:
    return Proposal(
        title=f"Alternative {index}",
        description="Alternative approach to consider",
        pros=["Depends on context"],
        cons=["To be evaluated"],
        difficulty="medium",
        maintainability="average",
    )


def calculate_scores(proposal: Proposal) -> ProposalScores:
    difficulty = DIFFICULTY_SCORES.get(proposal.difficulty, 2)
    maintainability = MAINTAINABILITY_SCORES.get(proposal.maintainability, 2)
    return ProposalScores(difficulty=difficulty, maintainability=maintainability, total=difficulty + maintainability)


class ProposalGenerator:
    def __init__(
        self,
        settings: ProposalSettings | None = None,
        prompt_fn: Callable[[str], str] = input,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.settings = settings or ProposalSettings()
        self._prompt = prompt_fn
        self._echo = echo

    def generate_proposals(self, analysis: Analysis, context: dict[str, Any]) -> ProposalSet:
        intent = analysis.summary.intent
        files = analysis.impacted_files
        category = context.get("detected_category") or "domain"
        if intent == "create":
            proposals = _create_proposals(files, category)
        elif intent in ("modify", "debug"):
            proposals = _modify_proposals(files)
        elif intent == "refactor":
            proposals = _refactor_proposals(files)
        elif intent == "optimize":
            proposals = _optimize_proposals(files)
        else:
            proposals = _default_proposals(files)
        while len(proposals) < self.settings.min_proposals:
            proposals.append(_fallback_proposal(len(proposals) + 1))
        proposals = proposals[: self.settings.max_proposals]
        numbered = [
            p.model_copy(update={"id": i + 1, "scores": calculate_scores(p)})
            for i, p in enumerate(proposals)
        ]
        if analysis.complexity.level == "complex":
            best = max(numbered, key=lambda p: (p.scores.maintainability, -p.id))
        else:
            best = max(numbered, key=lambda p: (p.scores.total, -p.id))
        logger.info("[proposal:generate] OUT proposals=%d recommended=%d", len(numbered), best.id)
        return ProposalSet(proposals=numbered, recommended=best.id)

    def display_proposals(self, proposal_set: ProposalSet) -> None:
        for p in proposal_set.proposals:
            marker = "*" if p.id == proposal_set.recommended else " "
            self._echo(f"\n{marker} {p.id}. {p.title}")
            self._echo(f"   {p.description}")
            self._echo("   Pros: " + "; ".join(p.pros))
            self._echo("   Cons: " + "; ".join(p.cons))
            self._echo(f"   Difficulty: {p.difficulty} | Maintainability: {p.maintainability}")
            if p.files:
                self._echo("   Files: " + ", ".join(p.files))
            if p.snippet:
                self._echo("   Example:\n      " + p.snippet.replace("\n", "\n      "))
        self._echo(f"\nRecommended: approach {proposal_set.recommended}")

    def request_validation(self, proposal_set: ProposalSet) -> Validation:
        """
        Ask the user to approve. 'y'/'yes' selects the recommended approach, a
        listed number selects that approach, anything else declines.
        """
        if not self.settings.require_validation:
            return Validation(approved=True, selected=proposal_set.recommended)
        self.display_proposals(proposal_set)
        options = "/".join(str(p.id) for p in proposal_set.proposals)
        try:
            answer = (self._prompt(f"\nContinue? [y/N/{options}] ") or "").strip().lower()
        except EOFError:
            answer = ""
        if answer in YES_ANSWERS:
            return Validation(approved=True, selected=proposal_set.recommended)
        if answer.isdigit():
            selected = int(answer)
            if any(p.id == selected for p in proposal_set.proposals):
                return Validation(approved=True, selected=selected)
            return Validation(approved=False, reason="Invalid option")
        return Validation(approved=False, reason="Cancelled by user")

    @staticmethod
    def get_selected_proposal(proposal_set: ProposalSet, selected: int | None) -> Proposal | None:
        return next((p for p in proposal_set.proposals if p.id == selected), None)
