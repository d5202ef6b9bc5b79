"""Corrective RAG orchestration: local retrieval, quality analysis, web fusion."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.config import Settings, settings
from core.models import RetrievalOutcome
from retrieval.fusion import build_local_section

if TYPE_CHECKING:
    from retrieval.fusion import ContextFusion
    from retrieval.query_analyzer import QualityStrategy
    from retrieval.retriever import Retriever

logger = logging.getLogger(__name__)


class CorrectiveRetriever:
    """Runs retrieve -> analyze -> fuse sequentially for one query at a time."""

    def __init__(
        self,
        retriever: Retriever,
        analyzer: QualityStrategy,
        fusion: ContextFusion,
        cfg: Settings | None = None,
    ):
        self.retriever = retriever
        self.analyzer = analyzer
        self.fusion = fusion
        self.cfg = cfg or settings
        self.enable_corrective_rag = self.cfg.enable_corrective_rag

    def retrieve_context(self, query: str, top_k: int | None = None) -> RetrievalOutcome:
        """Build the prompt context for ``query``.

        Only ``RetrievalUnavailable`` (and ``ValueError`` for bad input)
        propagates; analysis and web search failures degrade inside their
        components.
        """
        if top_k is None:
            top_k = self.cfg.top_k

        chunks = self.retriever.retrieve(query, top_k=top_k)

        if not self.enable_corrective_rag:
            logger.info("Corrective RAG disabled, using local documents only")
            return RetrievalOutcome(
                query=query, context=build_local_section(chunks), chunks=chunks
            )

        verdict = self.analyzer.analyze(query, chunks)
        fused = self.fusion.fuse(query, chunks, verdict)

        logger.info(
            "Context prepared: %d local chunks + %s",
            len(chunks),
            "no web results" if fused.web_degraded or not fused.web_section else "web search",
        )
        return RetrievalOutcome(
            query=query,
            context=fused.combined,
            chunks=chunks,
            verdict=verdict,
            fused=fused,
        )


def build_corrective_retriever(
    vector_store, openai_client=None, cfg: Settings | None = None, web_session=None
) -> CorrectiveRetriever:
    """Wire the engine components from configuration, once, at startup."""
    from retrieval.fusion import ContextFusion
    from retrieval.query_analyzer import build_quality_strategy
    from retrieval.retriever import Retriever
    from retrieval.web_search import WebSearcher

    cfg = cfg or settings
    if openai_client is None:
        from core.clients import build_openai_client

        openai_client = build_openai_client(cfg)

    searcher = WebSearcher(web_session, cfg)
    return CorrectiveRetriever(
        retriever=Retriever(vector_store, openai_client, cfg),
        analyzer=build_quality_strategy(cfg, openai_client),
        fusion=ContextFusion(
            searcher.search, num_results=cfg.web_results, policy=cfg.web_search_policy
        ),
        cfg=cfg,
    )
