"""
LangGraph coordinator: cache lookup → preprocess → retrieve → analyze →
propose (skipped in quick mode; may cancel) → extract → build prompt →
(END on dry run, else dispatch) → cache update.

Collaborators are injected at construction. Stage errors propagate out of
run(); the caller decides the exit code.
"""

import logging
from typing import Any, Callable, Literal, TypedDict

from langgraph.graph import END, StateGraph

from codecontext.agent.llm import APIClient
from codecontext.core.config import DISPATCH_MAX_TOKENS, PipelineConfig
from codecontext.core.errors import PersistenceFailure
from codecontext.schemas.pipeline import PipelineResult
from codecontext.services.analysis_service import Analyzer
from codecontext.services.cache_service import QueryCache
from codecontext.services.extraction_service import extract_methods_code
from codecontext.services.method_index import MethodIndex
from codecontext.services.prompt_builder import SYSTEM_PROMPT, build_optimized_prompt, estimate_tokens
from codecontext.services.proposal_service import ProposalGenerator
from codecontext.services.retrieval_service import create_search_session, detect_query_category
from codecontext.services.text_processing import Preprocessor

logger = logging.getLogger(__name__)

VERBOSE_LISTING = 10


class PipelineState(TypedDict):
    query: str
    quick: bool
    dry_run: bool
    verbose: bool
    max_methods: int
    cache_hit: Any
    preprocessed: Any
    session: Any
    context: dict
    analysis: Any
    proposal: Any
    cancelled: bool
    cancel_reason: str | None
    extracted: list
    prompt: str
    tokens_estimate: int
    api_result: Any
    warnings: list


class Coordinator:
    def __init__(
        self,
        config: PipelineConfig,
        preprocessor: Preprocessor,
        index: MethodIndex,
        analyzer: Analyzer,
        proposals: ProposalGenerator,
        client: APIClient,
        cache: QueryCache | None = None,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.config = config
        self.preprocessor = preprocessor
        self.index = index
        self.analyzer = analyzer
        self.proposals = proposals
        self.client = client
        self.cache = cache if config.agents.cache.enabled else None
        self._echo = echo
        self._graph = self.build_graph()

    # --- nodes ---

    def _cache_lookup(self, state: PipelineState) -> dict:
        if self.cache is None:
            return {}
        lookup = self.cache.find(state["query"])
        if lookup.hit:
            self._echo(
                f"Similar query answered before ({lookup.similarity:.0%} match): "
                f"{lookup.entry.original_query!r}. Continuing with a fresh answer."
            )
        return {"cache_hit": lookup}

    def _preprocess(self, state: PipelineState) -> dict:
        return {"preprocessed": self.preprocessor.process(state["query"])}

    def _retrieve(self, state: PipelineState) -> dict:
        preprocessed = state["preprocessed"]
        session = create_search_session(preprocessed.cleaned, self.index, self.config.agents.search)
        if state["verbose"]:
            for item in session.get_at_level(1)[:VERBOSE_LISTING]:
                self._echo(f"  {item['key']} (score {item['score']:g}) {item.get('description') or ''}".rstrip())
        context = {
            "method_count": session.count,
            "methods": session.get_at_level(2),
            "detected_category": detect_query_category(state["query"], self.config.categories),
        }
        logger.info(
            "[graph:retrieve] OUT methods=%d category=%s", session.count, context["detected_category"]
        )
        return {"session": session, "context": context}

    def _analyze(self, state: PipelineState) -> dict:
        return {"analysis": self.analyzer.analyze(state["preprocessed"], state["context"])}

    def _propose(self, state: PipelineState) -> dict:
        if state["quick"] or not self.config.agents.proposal.enabled:
            logger.info("[graph:propose] skipped (quick mode)")
            return {}
        proposal_set = self.proposals.generate_proposals(state["analysis"], state["context"])
        validation = self.proposals.request_validation(proposal_set)
        if not validation.approved:
            logger.info("[graph:propose] cancelled reason=%s", validation.reason)
            return {"cancelled": True, "cancel_reason": validation.reason}
        proposal = self.proposals.get_selected_proposal(proposal_set, validation.selected)
        logger.info("[graph:propose] OUT selected=%s", proposal.title if proposal else None)
        return {"proposal": proposal}

    def _extract(self, state: PipelineState) -> dict:
        extracted = extract_methods_code(state["session"], state["max_methods"])
        warnings = list(state["warnings"])
        if state["session"].count and not extracted:
            warnings.append("No method source could be resolved; the prompt has no code context.")
        return {"extracted": extracted, "warnings": warnings}

    def _build_prompt(self, state: PipelineState) -> dict:
        prompt = build_optimized_prompt(
            state["query"],
            state["preprocessed"],
            state["analysis"],
            state["proposal"],
            state["extracted"],
            state["context"],
        )
        tokens = estimate_tokens(prompt)
        logger.info("[graph:build_prompt] OUT prompt_len=%d tokens_estimate=%d", len(prompt), tokens)
        self._echo(f"Prompt: {len(state['extracted'])} method(s), ~{tokens} tokens")
        return {"prompt": prompt, "tokens_estimate": tokens}

    def _dispatch(self, state: PipelineState) -> dict:
        result = self.client.send_message(
            state["prompt"],
            max_tokens=DISPATCH_MAX_TOKENS,
            use_cache=True,
            system_prompt=SYSTEM_PROMPT,
        )
        return {"api_result": result}

    def _cache_update(self, state: PipelineState) -> dict:
        if self.cache is None:
            return {}
        result = state["api_result"]
        self.cache.store(
            state["query"],
            result.content,
            {"model": result.model, "methods": [m.key for m in state["extracted"]]},
        )
        try:
            self.cache.save()
        except PersistenceFailure as e:
            logger.warning("[graph:cache_update] %s", e.message)
            return {"warnings": list(state["warnings"]) + [e.message]}
        return {}

    # --- routing ---

    @staticmethod
    def _route_after_propose(state: PipelineState) -> Literal["extract", "__end__"]:
        return END if state["cancelled"] else "extract"

    @staticmethod
    def _route_after_prompt(state: PipelineState) -> Literal["dispatch", "__end__"]:
        return END if state["dry_run"] else "dispatch"

    def build_graph(self):
        graph = StateGraph(PipelineState)

        graph.add_node("cache_lookup", self._cache_lookup)
        graph.add_node("preprocess", self._preprocess)
        graph.add_node("retrieve", self._retrieve)
        graph.add_node("analyze", self._analyze)
        graph.add_node("propose", self._propose)
        graph.add_node("extract", self._extract)
        graph.add_node("build_prompt", self._build_prompt)
        graph.add_node("dispatch", self._dispatch)
        graph.add_node("cache_update", self._cache_update)

        graph.set_entry_point("cache_lookup")
        graph.add_edge("cache_lookup", "preprocess")
        graph.add_edge("preprocess", "retrieve")
        graph.add_edge("retrieve", "analyze")
        graph.add_edge("analyze", "propose")
        graph.add_conditional_edges("propose", self._route_after_propose)
        graph.add_edge("extract", "build_prompt")
        graph.add_conditional_edges("build_prompt", self._route_after_prompt)
        graph.add_edge("dispatch", "cache_update")
        graph.add_edge("cache_update", END)

        return graph.compile()

    def run(
        self,
        query: str,
        quick: bool = False,
        dry_run: bool = False,
        verbose: bool = False,
        max_methods: int | None = None,
    ) -> PipelineResult:
        if not query or not str(query).strip():
            raise ValueError("query is required")
        if max_methods is None:
            max_methods = self.config.agents.extraction.max_methods
        if max_methods < 1:
            raise ValueError(f"max_methods must be at least 1, got {max_methods}")
        logger.info("[run] START query=%r quick=%s dry_run=%s", query, quick, dry_run)
        initial: PipelineState = {
            "query": query,
            "quick": quick,
            "dry_run": dry_run,
            "verbose": verbose,
            "max_methods": max_methods,
            "cache_hit": None,
            "preprocessed": None,
            "session": None,
            "context": {},
            "analysis": None,
            "proposal": None,
            "cancelled": False,
            "cancel_reason": None,
            "extracted": [],
            "prompt": "",
            "tokens_estimate": 0,
            "api_result": None,
            "warnings": [],
        }
        final = self._graph.invoke(initial)
        if final["cancelled"]:
            logger.info("[run] END cancelled")
            return PipelineResult(cancelled=True, cache_hit=final["cache_hit"], reason=final["cancel_reason"])
        api_result = final["api_result"]
        result = PipelineResult(
            success=True,
            dry_run=dry_run,
            prompt=final["prompt"],
            response=api_result.content if api_result else "",
            tokens_estimate=final["tokens_estimate"],
            usage=api_result.usage if api_result else None,
            cache_hit=final["cache_hit"],
            methods=[m.key for m in final["extracted"]],
            warnings=final["warnings"],
        )
        logger.info("[run] END tokens_estimate=%d response_len=%d", result.tokens_estimate, len(result.response))
        return result


def build_coordinator(
    config: PipelineConfig,
    client: APIClient | None = None,
    prompt_fn: Callable[[str], str] = input,
    echo: Callable[[str], None] = print,
) -> Coordinator:
    """Wire the default collaborators for a configuration snapshot."""
    index = MethodIndex.load(config.index_file, config.project.root_path)
    cache = QueryCache(config.cache_file, config.agents.cache) if config.agents.cache.enabled else None
    return Coordinator(
        config=config,
        preprocessor=Preprocessor(config),
        index=index,
        analyzer=Analyzer(config.agents.analysis),
        proposals=ProposalGenerator(config.agents.proposal, prompt_fn=prompt_fn, echo=echo),
        client=client or APIClient(),
        cache=cache,
        echo=echo,
    )
