"""
API route aggregator: register endpoints; no logic, only delegation to handlers.
"""

import logging

from fastapi import APIRouter

from codecontext.api.handlers import handle_prompt
from codecontext.schemas.query import PromptRequest, PromptResponse

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "codecontext backend running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Prompt ---

@router.post(
    "/prompt",
    response_model=PromptResponse,
    tags=["prompt"],
    summary="Build the optimized prompt for a query",
    description="Runs the pipeline in quick dry-run mode and returns the assembled prompt. 400 on invalid input, 503 when the method index is unavailable.",
)
def post_prompt(body: PromptRequest) -> PromptResponse:
    logger.info("[api:post_prompt] IN  query=%r max_methods=%s", body.query, body.max_methods)
    response = handle_prompt(body)
    logger.info("[api:post_prompt] OUT methods=%d tokens_estimate=%d", len(response.methods), response.tokens_estimate)
    return response
