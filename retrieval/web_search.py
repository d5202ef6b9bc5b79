"""Google web search through the SerpAPI JSON endpoint.

One request per query yields the organic results, the answer box (featured
snippet) and the knowledge graph panel.
"""

from __future__ import annotations

import json
import logging

import requests

from core.config import Settings, settings
from core.errors import WebSearchError
from core.models import WebResult, WebSearchResponse

logger = logging.getLogger(__name__)


class WebSearcher:
    """Thin SerpAPI client returning ranked results in the engine's order."""

    def __init__(self, session: requests.Session | None = None, cfg: Settings | None = None):
        self.cfg = cfg or settings
        self.session = session or requests.Session()

    def search(self, query: str, num_results: int | None = None) -> WebSearchResponse:
        """Search Google for ``query``.

        Args:
            query: Search query
            num_results: Maximum organic results to keep (default: settings.web_results)

        Returns:
            WebSearchResponse in the engine's ranking order

        Raises:
            WebSearchError: missing API key, HTTP failure, timeout or bad payload
        """
        if num_results is None:
            num_results = self.cfg.web_results
        if not self.cfg.serpapi_api_key:
            raise WebSearchError("SERPAPI_API_KEY is not configured")

        logger.info("Searching the web for: %s", query)
        try:
            response = self.session.get(
                self.cfg.serpapi_endpoint,
                params={
                    "engine": "google",
                    "q": query,
                    "num": num_results,
                    "hl": self.cfg.web_search_language,
                    "api_key": self.cfg.serpapi_api_key,
                },
                timeout=self.cfg.web_search_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise WebSearchError(f"web search request failed: {e}") from e
        except ValueError as e:
            raise WebSearchError(f"web search returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise WebSearchError("web search returned an unexpected payload")
        if data.get("error"):
            raise WebSearchError(f"web search provider error: {data['error']}")

        results = [
            WebResult(
                title=item.get("title") or "",
                url=item.get("link") or "",
                snippet=item.get("snippet") or "",
            )
            for item in (data.get("organic_results") or [])[:num_results]
        ]

        search_response = WebSearchResponse(
            query=query,
            results=results,
            featured_snippet=format_featured_snippet(data.get("answer_box")),
            knowledge_panel=format_knowledge_panel(data.get("knowledge_graph")),
        )

        if search_response.is_empty:
            logger.warning("No web results found for: %s", query)
        else:
            logger.info("Found %d web results", len(results))
            for i, result in enumerate(results, start=1):
                logger.debug("%d. %s (%s)", i, result.title, result.url)
        return search_response


def format_featured_snippet(answer_box: dict | None) -> str | None:
    """Render SerpAPI's answer box as ``Title/Content/Source`` lines."""
    if not answer_box:
        return None

    text = ""
    if answer_box.get("title"):
        text += f"Title: {answer_box['title']}\n"
    content = answer_box.get("snippet") or answer_box.get("answer")
    if content:
        text += f"Content: {content}\n"
    if answer_box.get("link"):
        text += f"Source: {answer_box['link']}\n"
    return text or None


def format_knowledge_panel(knowledge_graph: dict | None) -> str | None:
    """Render SerpAPI's knowledge graph as ``Title/Type/Description/Info`` lines."""
    if not knowledge_graph:
        return None

    text = ""
    if knowledge_graph.get("title"):
        text += f"Title: {knowledge_graph['title']}\n"
    if knowledge_graph.get("type"):
        text += f"Type: {knowledge_graph['type']}\n"
    if knowledge_graph.get("description"):
        text += f"Description: {knowledge_graph['description']}\n"

    # Everything that is not presentation metadata goes into the info block
    info = {
        key: value
        for key, value in knowledge_graph.items()
        if key not in ("title", "type", "description")
        and isinstance(value, (str, int, float))
        and not key.endswith(("link", "links", "image", "thumbnail", "kgmid"))
    }
    if info:
        text += f"Info: {json.dumps(info, indent=2)}\n"
    return text or None
