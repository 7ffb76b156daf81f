"""Schemas exchanged between pipeline stages."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CacheEntry(BaseModel):
    query_fingerprint: str
    original_query: str
    response: str
    timestamp: float = Field(..., description="Unix time the entry was stored.")
    use_count: int = 1
    metadata: dict[str, Any] = Field(default_factory=dict)


class CacheLookup(BaseModel):
    hit: bool
    similarity: float = Field(0.0, ge=0.0, le=1.0)
    entry: CacheEntry | None = None


class Subtask(BaseModel):
    id: int
    task: str
    type: str


class Complexity(BaseModel):
    score: float
    level: str
    label: str


class Risk(BaseModel):
    level: str
    description: str
    mitigation: str = ""


class AnalysisSummary(BaseModel):
    task: str
    type: str
    intent: str


class Analysis(BaseModel):
    summary: AnalysisSummary
    subtasks: list[Subtask] = Field(default_factory=list)
    impacted_files: list[str] = Field(default_factory=list)
    complexity: Complexity
    risks: list[Risk] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ProposalScores(BaseModel):
    difficulty: int
    maintainability: int
    total: int


class Proposal(BaseModel):
    id: int = 0
    title: str
    description: str
    snippet: str | None = None
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    difficulty: str = "medium"
    maintainability: str = "average"
    files: list[str] = Field(default_factory=list)
    scores: ProposalScores | None = None


class ProposalSet(BaseModel):
    proposals: list[Proposal]
    recommended: int


class Validation(BaseModel):
    approved: bool
    selected: int | None = None
    reason: str | None = None


class Usage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int | None = None
    cache_creation_input_tokens: int | None = None


class APIResult(BaseModel):
    """One successful Messages API response."""

    model_config = ConfigDict(frozen=True)

    content: str
    usage: Usage
    model: str
    stop_reason: str | None = None


class PipelineResult(BaseModel):
    success: bool = False
    cancelled: bool = False
    dry_run: bool = False
    prompt: str = ""
    response: str = ""
    tokens_estimate: int = 0
    usage: Usage | None = None
    cache_hit: CacheLookup | None = None
    methods: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    reason: str | None = None
