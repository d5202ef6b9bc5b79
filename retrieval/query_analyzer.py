"""Retrieval quality analysis: decides whether local evidence is sufficient."""

from __future__ import annotations

import datetime
import json
import logging
import math
import re
from typing import TYPE_CHECKING, Protocol

import openai
from pydantic import ValidationError

from core.config import Settings, settings
from core.errors import AnalysisDegraded
from core.models import SAFE_DEFAULT_VERDICT, Chunk, QualityVerdict

if TYPE_CHECKING:
    from openai import OpenAI

logger = logging.getLogger(__name__)

WEB_INDICATORS = (
    "latest",
    "recent",
    "current",
    "today",
    "now",
    "new",
    "news",
    "update",
    "trend",
    "price",
    "stock",
    "weather",
    "2024",
    "2025",
    "this year",
    "this month",
)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")

_SYSTEM_PROMPT = "You are a precise query analyzer. Always respond with valid JSON only."


class QualityStrategy(Protocol):
    """Anything that can judge retrieved chunks against a query."""

    def analyze(self, query: str, chunks: list[Chunk]) -> QualityVerdict: ...


class HeuristicQualityStrategy:
    """Keyword and context-length heuristic; no network calls."""

    def __init__(self, min_context_chars: int = 100, today: datetime.date | None = None):
        self.min_context_chars = min_context_chars
        year = (today or datetime.date.today()).year
        extra_years = {str(year), str(year - 1)}
        self.keywords = tuple(WEB_INDICATORS) + tuple(
            sorted(extra_years - set(WEB_INDICATORS))
        )

    def analyze(self, query: str, chunks: list[Chunk]) -> QualityVerdict:
        query_lower = query.lower()
        needs_web_info = any(keyword in query_lower for keyword in self.keywords)
        total_length = sum(len(chunk.text or "") for chunk in chunks)
        requires_web = needs_web_info or total_length < self.min_context_chars

        if requires_web:
            reasoning = (
                "Query appears to need current information "
                "or retrieved content is insufficient"
            )
        else:
            reasoning = "Retrieved documents should be sufficient"

        verdict = QualityVerdict(
            relevance_score=4 if requires_web else 7,
            is_sufficient=not requires_web,
            requires_web_search=requires_web,
            reasoning=reasoning,
            suggested_query=query if requires_web else None,
        )
        logger.debug(
            "Heuristic verdict: keywords=%s, context_chars=%d, web=%s",
            needs_web_info,
            total_length,
            requires_web,
        )
        return verdict


class LLMQualityStrategy:
    """Asks the language model for a JSON verdict about the retrieved chunks."""

    def __init__(self, openai_client: OpenAI | None = None, cfg: Settings | None = None):
        self.cfg = cfg or settings
        if openai_client is None:
            from core.clients import build_openai_client

            openai_client = build_openai_client(self.cfg)
        self.openai_client = openai_client

    def build_prompt(self, query: str, chunks: list[Chunk]) -> str:
        """Embed the query and a short preview of each chunk in the analysis prompt."""
        limit = self.cfg.preview_chars
        context = "\n\n".join(
            f"[Chunk {i}]: {chunk.text[:limit]}..." for i, chunk in enumerate(chunks, start=1)
        )

        return f"""You are a query analyzer for a Retrieval-Augmented Generation (RAG) system.

Your task is to evaluate if the retrieved documents are sufficient to answer the user's query.

User Query: "{query}"

Retrieved Documents:
{context}

Analyze the relevance and completeness of the retrieved documents. Consider:
1. Do the documents directly address the query?
2. Is there enough information to provide a complete answer?
3. Are the documents current and relevant?
4. Does the query ask for recent/current information that might not be in the documents?

Respond in JSON format with:
{{
  "relevance_score": <number 0-10>,
  "is_sufficient": <boolean>,
  "requires_web_search": <boolean>,
  "reasoning": "<brief explanation>",
  "suggested_search_query": "<optimized search query if web search needed, or null>"
}}"""

    def analyze(self, query: str, chunks: list[Chunk]) -> QualityVerdict:
        """Return the model's verdict, or the safe default if anything goes wrong."""
        try:
            verdict = self._evaluate(query, chunks)
        except AnalysisDegraded as e:
            logger.warning("Query analysis degraded, trusting local retrieval: %s", e)
            return SAFE_DEFAULT_VERDICT
        except Exception as e:
            logger.warning("Query analysis failed, trusting local retrieval: %s", e)
            return SAFE_DEFAULT_VERDICT

        logger.info(
            "Relevance %.1f/10, sufficient=%s, web search=%s: %s",
            verdict.relevance_score,
            verdict.is_sufficient,
            verdict.requires_web_search,
            verdict.reasoning,
        )
        if verdict.requires_web_search and verdict.suggested_query:
            logger.info("Suggested search: %s", verdict.suggested_query)
        return verdict

    def _evaluate(self, query: str, chunks: list[Chunk]) -> QualityVerdict:
        try:
            response = self.openai_client.chat.completions.create(
                model=self.cfg.llm_model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": self.build_prompt(query, chunks)},
                ],
                temperature=0.3,
            )
            content = response.choices[0].message.content or ""
        except openai.OpenAIError as e:
            raise AnalysisDegraded(f"analysis call failed: {e}") from e
        except (AttributeError, IndexError, TypeError) as e:
            raise AnalysisDegraded(f"unexpected completion shape: {e}") from e

        logger.debug("Analysis response: %s", content)
        return parse_verdict(content)


def parse_verdict(content: str) -> QualityVerdict:
    """Parse a model completion into a verdict.

    Accepts bare JSON or JSON inside a fenced code block.

    Raises:
        AnalysisDegraded: the completion is not a usable JSON verdict
    """
    match = _FENCED_JSON.search(content)
    if match:
        content = match.group(1)

    try:
        data = json.loads(content.strip())
    except (json.JSONDecodeError, ValueError) as e:
        raise AnalysisDegraded(f"completion is not JSON: {content[:80]!r}") from e

    if not isinstance(data, dict):
        raise AnalysisDegraded(f"expected a JSON object, got {type(data).__name__}")

    try:
        score = float(data.get("relevance_score", SAFE_DEFAULT_VERDICT.relevance_score))
        if not math.isfinite(score):
            raise ValueError(f"relevance_score is {score}")
        is_sufficient = _as_bool(data.get("is_sufficient", True))
        requires_web = _as_bool(data.get("requires_web_search", False))
    except (TypeError, ValueError) as e:
        raise AnalysisDegraded(f"invalid verdict field: {e}") from e

    suggested = data.get("suggested_search_query")
    if not isinstance(suggested, str) or not suggested.strip():
        suggested = None

    try:
        return QualityVerdict(
            relevance_score=min(max(score, 0.0), 10.0),
            is_sufficient=is_sufficient,
            requires_web_search=requires_web,
            reasoning=str(data.get("reasoning") or ""),
            suggested_query=suggested.strip() if suggested else None,
        )
    except ValidationError as e:
        raise AnalysisDegraded(f"invalid verdict: {e}") from e


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"not a boolean: {value!r}")


def build_quality_strategy(
    cfg: Settings | None = None, openai_client: OpenAI | None = None
) -> QualityStrategy:
    """Pick the quality strategy named by ``cfg.quality_strategy``."""
    cfg = cfg or settings
    if cfg.quality_strategy == "heuristic":
        logger.info("Using heuristic quality analysis")
        return HeuristicQualityStrategy(min_context_chars=cfg.min_context_chars)
    logger.info("Using LLM quality analysis (%s)", cfg.llm_model)
    return LLMQualityStrategy(openai_client, cfg)
