"""Schemas for preprocessed queries."""

from pydantic import BaseModel, ConfigDict, Field


class Intent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = Field("general", description="create, modify, explain, debug, optimize, refactor, test or general.")
    description: str = Field("General request", description="Human-readable label used in the analysis summary.")


class DetectedTerm(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    weight: float = Field(1.0, description="Occurrences of the term in the query.")
    description: str = ""


class PreprocessedQuery(BaseModel):
    """Derived once per query; never mutated afterwards."""

    model_config = ConfigDict(frozen=True)

    original: str = Field(..., min_length=1)
    cleaned: str
    enriched: str = ""
    intent: Intent = Intent()
    detected_terms: tuple[DetectedTerm, ...] = ()
    domains: tuple[str, ...] = ("general",)
    keywords: tuple[str, ...] = ()
    complexity_hint: str = "simple"


class PromptRequest(BaseModel):
    """Request body for POST /prompt."""

    query: str = Field(..., min_length=1, description="Free-text question about the indexed codebase.")
    max_methods: int | None = Field(None, ge=1, description="Override for the extraction budget.")


class PromptResponse(BaseModel):
    """Response for POST /prompt."""

    prompt: str
    tokens_estimate: int
    methods: list[str] = Field(default_factory=list, description="Keys of the extracted methods, in ranked order.")
    category: str | None = None
