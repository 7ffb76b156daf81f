"""
API handlers: load shared pipeline resources, run services, map errors to HTTP.

Responsibility: Bridge HTTP types and services. Services stay free of
FastAPI types; configuration and index problems become 503, bad input 400.
"""

import logging
from functools import lru_cache

from fastapi import HTTPException

from codecontext.agent.graph import Coordinator
from codecontext.agent.llm import APIClient
from codecontext.core.config import PipelineConfig, load_config
from codecontext.core.errors import ConfigurationError
from codecontext.schemas.query import PromptRequest, PromptResponse
from codecontext.services.analysis_service import Analyzer
from codecontext.services.cache_service import QueryCache
from codecontext.services.method_index import MethodIndex
from codecontext.services.proposal_service import ProposalGenerator
from codecontext.services.retrieval_service import detect_query_category
from codecontext.services.text_processing import Preprocessor

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_config() -> PipelineConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_index() -> MethodIndex:
    config = get_config()
    return MethodIndex.load(config.index_file, config.project.root_path)


@lru_cache(maxsize=1)
def get_cache() -> QueryCache:
    config = get_config()
    return QueryCache(config.cache_file, config.agents.cache)


def handle_prompt(body: PromptRequest) -> PromptResponse:
    """Build the prompt for a query in quick dry-run mode (no proposal, no dispatch, no cache)."""
    try:
        config = get_config()
        index = get_index()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    coordinator = Coordinator(
        config=config,
        preprocessor=Preprocessor(config),
        index=index,
        analyzer=Analyzer(config.agents.analysis),
        proposals=ProposalGenerator(config.agents.proposal),
        client=APIClient(),
        cache=None,
        echo=logger.info,
    )
    try:
        result = coordinator.run(body.query, quick=True, dry_run=True, max_methods=body.max_methods)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return PromptResponse(
        prompt=result.prompt,
        tokens_estimate=result.tokens_estimate,
        methods=result.methods,
        category=detect_query_category(body.query, config.categories),
    )
