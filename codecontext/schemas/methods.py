"""Schemas for indexed methods and their extraction."""

from pydantic import BaseModel, ConfigDict, Field


class MethodRecord(BaseModel):
    """One code unit as produced by the external method indexer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    key: str
    file: str = ""
    class_name: str | None = Field(None, alias="class")
    name: str = ""
    signature: str = ""
    role: str | None = None
    description: str = ""
    effects: dict[str, list[str]] = Field(default_factory=dict)
    consumers: list[str] = Field(default_factory=list)
    line: int | None = None
    end_line: int | None = Field(None, alias="endLine")
    is_private: bool = Field(False, alias="isPrivate")
    is_static: bool = Field(False, alias="isStatic")
    is_async: bool = Field(False, alias="isAsync")


class RankedMethod(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    score: float


class ExtractedMethod(BaseModel):
    """A ranked method with its full record and resolved source text."""

    model_config = ConfigDict(frozen=True)

    key: str
    score: float
    file: str
    class_name: str | None = None
    name: str = ""
    signature: str = ""
    role: str | None = None
    description: str = ""
    effects: dict[str, list[str]] = Field(default_factory=dict)
    consumers: list[str] = Field(default_factory=list)
    code: str
