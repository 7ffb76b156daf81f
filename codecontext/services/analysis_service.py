"""
Query analysis: subtasks, impacted files, complexity and risks.

Pure function of the preprocessed query and the retrieved level-2 context;
no I/O and no retrieval.
"""

import logging
from typing import Any

from codecontext.core.config import AnalysisSettings
from codecontext.schemas.pipeline import Analysis, AnalysisSummary, Complexity, Risk, Subtask
from codecontext.schemas.query import PreprocessedQuery

logger = logging.getLogger(__name__)

SUBTASKS: dict[str, list[tuple[str, str]]] = {
    "create": [
        ("Locate where the new code belongs", "research"),
        ("Implement the new functionality", "code"),
        ("Integrate with existing code", "integration"),
    ],
    "modify": [
        ("Locate the code to change", "research"),
        ("Understand current behaviour", "analysis"),
        ("Apply the change", "code"),
        ("Check for regressions", "test"),
    ],
    "debug": [
        ("Reproduce the problem", "debug"),
        ("Identify the root cause", "analysis"),
        ("Implement the fix", "code"),
        ("Verify the fix", "test"),
    ],
    "refactor": [
        ("Analyse the current structure", "analysis"),
        ("Define the target structure", "design"),
        ("Migrate code incrementally", "code"),
        ("Update dependants", "integration"),
        ("Validate behaviour", "test"),
    ],
    "test": [
        ("Identify test cases", "analysis"),
        ("Write the tests", "code"),
        ("Run and validate", "test"),
    ],
}
DEFAULT_SUBTASKS = [("Analyse the request", "analysis"), ("Implement the solution", "code")]

COMPLEX_SUBTASK_TYPES = frozenset({"refactor", "integration", "migration"})
LEVEL_LABELS = {"simple": "Simple", "medium": "Medium", "complex": "Complex"}
MAX_TASK_LEN = 100


def decompose_task(preprocessed: PreprocessedQuery) -> list[Subtask]:
    steps = SUBTASKS.get(preprocessed.intent.type, DEFAULT_SUBTASKS)
    subtasks = [Subtask(id=i + 1, task=task, type=kind) for i, (task, kind) in enumerate(steps)]
    if "math" in preprocessed.domains:
        subtasks.append(Subtask(id=len(subtasks) + 1, task="Check the calculations", type="validation"))
    if "rendering" in preprocessed.domains:
        subtasks.append(Subtask(id=len(subtasks) + 1, task="Check the rendered output", type="visual-test"))
    return subtasks


def impacted_files(methods: list[dict[str, Any]]) -> list[str]:
    """Distinct files of the context methods, in ranked order."""
    files: list[str] = []
    for m in methods:
        f = m.get("file")
        if f and f not in files:
            files.append(f)
    return files


class Analyzer:
    def __init__(self, settings: AnalysisSettings | None = None) -> None:
        self.settings = settings or AnalysisSettings()

    def evaluate_complexity(self, subtasks: list[Subtask], files: list[str]) -> Complexity:
        score = len(subtasks) * 1.5 + len(files) * 2
        score += 2 * sum(1 for s in subtasks if s.type in COMPLEX_SUBTASK_TYPES)
        thresholds = self.settings.complexity_thresholds
        if score <= thresholds.simple:
            level = "simple"
        elif score <= thresholds.medium:
            level = "medium"
        else:
            level = "complex"
        return Complexity(score=score, level=level, label=LEVEL_LABELS[level])

    @staticmethod
    def identify_risks(intent: str, complexity: Complexity) -> list[Risk]:
        risks: list[Risk] = []
        if intent == "refactor":
            risks.append(Risk(
                level="medium",
                description="Refactoring may introduce regressions",
                mitigation="Test each step independently",
            ))
        if intent in ("modify", "debug"):
            risks.append(Risk(
                level="low",
                description="Changes existing code",
                mitigation="Keep the change minimal and reviewable",
            ))
        if complexity.level == "complex":
            risks.append(Risk(
                level="medium",
                description="Complex task spanning several files",
                mitigation="Split into incremental steps",
            ))
        return risks

    @staticmethod
    def recommendations(complexity: Complexity, risks: list[Risk], files: list[str]) -> list[str]:
        out: list[str] = []
        if complexity.level == "complex":
            out.append("Consider an incremental approach")
        if any(r.level == "high" for r in risks):
            out.append("Prepare regression tests before changing code")
        if len(files) > 5:
            out.append("Group changes by file")
        return out

    def analyze(self, preprocessed: PreprocessedQuery, context: dict[str, Any]) -> Analysis:
        """context: {"methods": level-2 records, "method_count": int, "detected_category": str | None}."""
        methods = context.get("methods") or []
        logger.info("[analysis:analyze] IN  intent=%s methods=%d", preprocessed.intent.type, len(methods))
        subtasks = decompose_task(preprocessed)
        files = impacted_files(methods)
        complexity = self.evaluate_complexity(subtasks, files)
        risks = self.identify_risks(preprocessed.intent.type, complexity)
        task = preprocessed.original
        if len(task) > MAX_TASK_LEN:
            task = task[:MAX_TASK_LEN] + "..."
        analysis = Analysis(
            summary=AnalysisSummary(
                task=task,
                type=preprocessed.intent.description,
                intent=preprocessed.intent.type,
            ),
            subtasks=subtasks,
            impacted_files=files,
            complexity=complexity,
            risks=risks,
            recommendations=self.recommendations(complexity, risks, files),
        )
        logger.info(
            "[analysis:analyze] OUT complexity=%s score=%.1f risks=%d files=%d",
            complexity.level, complexity.score, len(risks), len(files),
        )
        return analysis
