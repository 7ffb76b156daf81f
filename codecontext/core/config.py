"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and pipeline
settings. Components receive a frozen PipelineConfig snapshot and never read
each other's runtime state.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from codecontext.core.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

# Config file looked up in the working directory when none is given
DEFAULT_CONFIG_FILE: str = "codecontext.json"
CONFIG_PATH: str = os.getenv("CODECONTEXT_CONFIG", "").strip()

# Anthropic Messages API (from env)
ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "").strip()
ANTHROPIC_MODEL: str = (
    os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514").strip()
    or "claude-sonnet-4-20250514"
)
ANTHROPIC_MESSAGES_URL: str = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION: str = "2023-06-01"

# API timeouts (seconds)
ANTHROPIC_API_TIMEOUT: float = float(os.getenv("ANTHROPIC_API_TIMEOUT", "120") or 120)

# Dispatch defaults
DISPATCH_MAX_TOKENS: int = 8000

# Prompt size approximation: characters per token
CHARS_PER_TOKEN: int = 4

# Dry-run terminal box width
PROMPT_BOX_WIDTH: int = 78


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ProjectSettings(_Frozen):
    name: str = "unknown"
    root_path: str = "."
    index_path: str = ".cache/method-index.json"
    cache_path: str = ".cache/qa-cache.json"


class CacheSettings(_Frozen):
    enabled: bool = True
    similarity_threshold: float = Field(0.85, ge=0.0, le=1.0)
    duplicate_threshold: float = Field(0.95, ge=0.0, le=1.0)
    max_entries: int = Field(100, ge=1)
    ttl_minutes: int = Field(1440, ge=1)


class ComplexityThresholds(_Frozen):
    simple: float = 5.0
    medium: float = 12.0


class AnalysisSettings(_Frozen):
    enabled: bool = True
    complexity_thresholds: ComplexityThresholds = ComplexityThresholds()


class ProposalSettings(_Frozen):
    enabled: bool = True
    min_proposals: int = 2
    max_proposals: int = 3
    require_validation: bool = True


class ExtractionSettings(_Frozen):
    max_methods: int = Field(10, ge=1)


class SearchSettings(_Frozen):
    max_methods: int = 15
    min_score: int = 1
    exclude_roles: tuple[str, ...] = ("internal",)
    include_private: bool = False


class AgentsSettings(_Frozen):
    cache: CacheSettings = CacheSettings()
    analysis: AnalysisSettings = AnalysisSettings()
    proposal: ProposalSettings = ProposalSettings()
    extraction: ExtractionSettings = ExtractionSettings()
    search: SearchSettings = SearchSettings()


class CategorySettings(_Frozen):
    keywords: tuple[str, ...] = ()


class PipelineConfig(_Frozen):
    """Immutable snapshot of the JSON configuration merged over defaults."""

    project: ProjectSettings = ProjectSettings()
    agents: AgentsSettings = AgentsSettings()
    # category -> {"keywords": [...]}; dict order is match order
    categories: dict[str, CategorySettings] = Field(default_factory=dict)
    # domain term -> human description
    domain_terms: dict[str, str] = Field(default_factory=dict)
    # synonym -> canonical domain term
    synonyms: dict[str, str] = Field(default_factory=dict)

    def resolve(self, relative: str) -> Path:
        """Resolve a project-relative path against project.root_path."""
        path = Path(relative)
        if path.is_absolute():
            return path
        return Path(self.project.root_path) / path

    @property
    def index_file(self) -> Path:
        return self.resolve(self.project.index_path)

    @property
    def cache_file(self) -> Path:
        return self.resolve(self.project.cache_path)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base (lists and scalars replace)."""
    out = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(path: str | Path | None = None) -> PipelineConfig:
    """
    Load the JSON configuration and return a frozen snapshot.

    An explicitly requested file (argument or CODECONTEXT_CONFIG) must exist.
    Without one, codecontext.json in the working directory is used when present,
    defaults otherwise. project.root_path defaults to the config file's directory.
    """
    explicit = path or CONFIG_PATH or None
    config_path = Path(explicit) if explicit else Path.cwd() / DEFAULT_CONFIG_FILE
    logger.info("[config:load_config] IN  path=%s explicit=%s", config_path, bool(explicit))

    raw: dict[str, Any] = {}
    if config_path.is_file():
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Invalid configuration file {config_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a JSON object")
    elif explicit:
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    base_dir = config_path.parent.resolve()
    merged = deep_merge({"project": {"root_path": str(base_dir)}}, raw)
    if not isinstance(merged.get("project"), dict):
        raise ConfigurationError(f"'project' in {config_path} must be an object")
    root = Path(merged["project"].get("root_path") or ".")
    if not root.is_absolute():
        merged["project"]["root_path"] = str((base_dir / root).resolve())
    try:
        config = PipelineConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e
    logger.info(
        "[config:load_config] OUT root=%s cache_enabled=%s categories=%d domain_terms=%d",
        config.project.root_path,
        config.agents.cache.enabled,
        len(config.categories),
        len(config.domain_terms),
    )
    return config
