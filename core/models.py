"""Data models for the CRAG pipeline."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

LOCAL_CONTEXT_HEADER = "=== LOCAL DOCUMENT CONTEXT ==="
WEB_CONTEXT_HEADER = "=== WEB SEARCH CONTEXT (Additional Information) ==="


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"


class Chunk(BaseModel):
    """A retrieved unit of evidence, ordered by ascending distance."""

    model_config = {"frozen": True}

    text: str
    content_type: ContentType = ContentType.TEXT
    distance: float = 0.0
    page_number: int | None = None
    id: str = ""
    metadata: dict = Field(default_factory=dict)


class QualityVerdict(BaseModel):
    """Outcome of retrieval quality analysis for one query."""

    model_config = {"frozen": True}

    relevance_score: float = Field(ge=0.0, le=10.0)
    is_sufficient: bool
    requires_web_search: bool
    reasoning: str = ""
    suggested_query: str | None = None


SAFE_DEFAULT_VERDICT = QualityVerdict(
    relevance_score=5,
    is_sufficient=True,
    requires_web_search=False,
    reasoning="Analysis failed, using retrieved documents only",
    suggested_query=None,
)


class WebResult(BaseModel):
    """A single organic web search result."""

    title: str = ""
    url: str = ""
    snippet: str = ""


class WebSearchResponse(BaseModel):
    """Ranked web results plus optional answer box and knowledge panel text."""

    query: str
    results: list[WebResult] = Field(default_factory=list)
    featured_snippet: str | None = None
    knowledge_panel: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.results or self.featured_snippet or self.knowledge_panel)


class FusedContext(BaseModel):
    """Local and web evidence under the fixed two-heading layout."""

    model_config = {"frozen": True}

    local_section: str
    web_section: str
    search_query: str | None = None
    web_degraded: bool = False

    @property
    def combined(self) -> str:
        return (
            f"{LOCAL_CONTEXT_HEADER}\n\n{self.local_section}\n\n"
            f"{WEB_CONTEXT_HEADER}\n\n{self.web_section}"
        )


class RetrievalOutcome(BaseModel):
    """Everything the corrective retriever produced for one query."""

    query: str
    context: str
    chunks: list[Chunk] = Field(default_factory=list)
    verdict: QualityVerdict | None = None
    fused: FusedContext | None = None


class IndexedChunk(BaseModel):
    """A chunk on its way into the vector index."""

    text: str
    content_type: ContentType = ContentType.TEXT
    page_number: int | None = None
    image_path: str | None = None
    ocr_text: str | None = None
    vision_description: str | None = None
    embedding: list[float] = Field(default_factory=list)


class ProcessedImage(BaseModel):
    """OCR and vision output for one extracted image."""

    page_number: int
    image_path: str
    ocr_text: str | None = None
    vision_description: str | None = None
    combined_description: str = ""


class ExtractedImage(BaseModel):
    """An image pulled out of a PDF page and written to the temp directory."""

    page_number: int
    image_index: int
    path: str
    extension: str
    size: int
