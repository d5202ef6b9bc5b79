"""Context fusion: merges local chunks and web evidence into one prompt context."""

from __future__ import annotations

import logging
from typing import Callable, Literal

from core.models import Chunk, FusedContext, QualityVerdict, WebSearchResponse

logger = logging.getLogger(__name__)

WebSearchFn = Callable[[str, int], WebSearchResponse]

RESULT_SEPARATOR = "\n\n---\n\n"


def build_local_section(chunks: list[Chunk]) -> str:
    """Join chunk texts with blank lines, keeping retrieval rank order."""
    return "\n\n".join(chunk.text for chunk in chunks)


def build_web_section(response: WebSearchResponse) -> str:
    """Featured snippet, then knowledge panel, then numbered organic results."""
    section = ""

    if response.featured_snippet:
        section += f"=== FEATURED SNIPPET ===\n{response.featured_snippet}\n\n"

    if response.knowledge_panel:
        section += f"=== KNOWLEDGE GRAPH ===\n{response.knowledge_panel}\n\n"

    if response.results:
        section += "=== SEARCH RESULTS ===\n\n"
        section += RESULT_SEPARATOR.join(
            f"[Web Source {i}: {result.title}]\nURL: {result.url}\nContent: {result.snippet}"
            for i, result in enumerate(response.results, start=1)
        )

    return section


class ContextFusion:
    """Builds the fused local + web context for one query.

    ``policy="always"`` searches the web for every query regardless of the
    verdict; ``policy="on_demand"`` searches only when the verdict asks for it.
    """

    def __init__(
        self,
        web_search_fn: WebSearchFn,
        num_results: int = 3,
        policy: Literal["always", "on_demand"] = "always",
    ):
        self.web_search_fn = web_search_fn
        self.num_results = num_results
        self.policy = policy

    def fuse(
        self, query: str, local_chunks: list[Chunk], verdict: QualityVerdict
    ) -> FusedContext:
        """Fuse local chunks with web evidence. Never raises on web failure."""
        local_section = build_local_section(local_chunks)

        if self.policy == "on_demand" and not verdict.requires_web_search:
            logger.info("Local documents judged sufficient, skipping web search")
            return FusedContext(local_section=local_section, web_section="")

        search_query = verdict.suggested_query or query
        logger.info("Supplementing local documents with web search: %s", search_query)

        try:
            response = self.web_search_fn(search_query, self.num_results)
        except Exception as e:
            logger.warning("Web search failed, continuing with local context only: %s", e)
            return FusedContext(
                local_section=local_section,
                web_section="",
                search_query=search_query,
                web_degraded=True,
            )

        if response.is_empty:
            logger.warning("Web search returned nothing for: %s", search_query)
            return FusedContext(
                local_section=local_section,
                web_section="",
                search_query=search_query,
                web_degraded=True,
            )

        return FusedContext(
            local_section=local_section,
            web_section=build_web_section(response),
            search_query=search_query,
        )


def fuse(
    query: str,
    local_chunks: list[Chunk],
    verdict: QualityVerdict,
    web_search_fn: WebSearchFn,
    num_results: int = 3,
) -> FusedContext:
    """Fuse with the unconditional web search policy."""
    return ContextFusion(web_search_fn, num_results=num_results).fuse(
        query, local_chunks, verdict
    )
