"""
Minimal MCP-style tool server: exposes method search, code extraction and
cache statistics as a standardized tool interface, so coding agents fetch
only the methods they need instead of whole files.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from codecontext.api.handlers import get_cache, get_config, get_index
from codecontext.core.errors import ConfigurationError
from codecontext.services.extraction_service import extract_methods_code
from codecontext.services.retrieval_service import create_search_session

logger = logging.getLogger(__name__)

# MCP tool schema for discovery / documentation
tools = [
    {
        "name": "search_methods",
        "description": "Rank indexed methods for a query; returns keys, roles, scores and descriptions only",
        "input_schema": {"query": "string"},
    },
    {
        "name": "extract_methods",
        "description": "Extract the source of the top-ranked methods for a query. Call this before reading whole files.",
        "input_schema": {"query": "string", "max_methods": "integer (default 10)"},
    },
    {
        "name": "cache_stats",
        "description": "Query cache status: entries, hits, misses, hit rate",
        "input_schema": {},
    },
]

mcp_router = APIRouter(tags=["mcp"])


@mcp_router.get("/tools", summary="MCP tool discovery")
def mcp_list_tools() -> dict[str, list[dict[str, Any]]]:
    return {"tools": tools}


def _index_or_503():
    try:
        return get_index()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message) from e


def _search_settings():
    try:
        return get_config().agents.search
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message) from e


# --- search_methods ---

class SearchMethodsRequest(BaseModel):
    """Request body for MCP tool search_methods."""
    query: str = ""


@mcp_router.post(
    "/tools/search_methods",
    summary="MCP tool: search_methods",
    description="Ranked method metadata (detail level 1) for a query.",
)
def mcp_search_methods(body: SearchMethodsRequest) -> dict[str, list[dict[str, Any]]]:
    logger.info("MCP tool called: search_methods")
    query = (body.query or "").strip()
    if not query:
        return {"results": []}
    session = create_search_session(query, _index_or_503(), _search_settings())
    return {"results": session.get_at_level(1)}


# --- extract_methods ---

class ExtractMethodsRequest(BaseModel):
    """Request body for MCP tool extract_methods."""
    query: str = ""
    max_methods: int = Field(10, ge=1, le=50)


@mcp_router.post(
    "/tools/extract_methods",
    summary="MCP tool: extract_methods",
    description="Source code of the top-ranked methods for a query, bounded by max_methods.",
)
def mcp_extract_methods(body: ExtractMethodsRequest) -> dict[str, Any]:
    logger.info("MCP tool called: extract_methods")
    query = (body.query or "").strip()
    if not query:
        return {"methods": []}
    session = create_search_session(query, _index_or_503(), _search_settings())
    extracted = extract_methods_code(session, body.max_methods)
    return {
        "methods": [
            {"key": m.key, "file": m.file, "signature": m.signature, "score": m.score, "code": m.code}
            for m in extracted
        ]
    }


# --- cache_stats ---

@mcp_router.post(
    "/tools/cache_stats",
    summary="MCP tool: cache_stats",
    description="Query cache status (system observability).",
)
def mcp_cache_stats() -> dict[str, Any]:
    logger.info("MCP tool called: cache_stats")
    try:
        cache = get_cache()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    return cache.stats()
