"""Local retrieval: query embedding followed by vector similarity search."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import openai
from neo4j.exceptions import DriverError, Neo4jError

from core.config import Settings, settings
from core.errors import EmbeddingDimensionMismatch, RetrievalUnavailable
from core.models import Chunk

if TYPE_CHECKING:
    from openai import OpenAI

    from storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


class Retriever:
    """Embeds a query and returns the nearest chunks from the vector store."""

    def __init__(
        self,
        vector_store: VectorStore,
        openai_client: OpenAI | None = None,
        cfg: Settings | None = None,
    ):
        """Initialize retriever with vector store and optional OpenAI client.

        Args:
            vector_store: Vector store for similarity search
            openai_client: Optional OpenAI client (will create if None)
            cfg: Optional settings (module settings if None)
        """
        self.vector_store = vector_store
        self.cfg = cfg or settings

        if openai_client is None:
            from core.clients import build_openai_client

            self.openai_client = build_openai_client(self.cfg)
        else:
            self.openai_client = openai_client

    def get_embedding(self, text: str) -> list[float]:
        """Embed text using the configured embedding model.

        Raises:
            RetrievalUnavailable: the embedding call failed or timed out
            EmbeddingDimensionMismatch: vector length differs from the index
        """
        try:
            response = self.openai_client.embeddings.create(
                model=self.cfg.embedding_model,
                input=text,
            )
            embedding = list(response.data[0].embedding)
        except openai.OpenAIError as e:
            raise RetrievalUnavailable(f"Embedding service failed: {e}") from e
        except (AttributeError, IndexError, TypeError) as e:
            raise RetrievalUnavailable(f"Unexpected embedding response: {e}") from e

        expected = self.vector_store.dimensions
        if len(embedding) != expected:
            raise EmbeddingDimensionMismatch(expected, len(embedding))
        return embedding

    def retrieve(self, query: str, top_k: int | None = None) -> list[Chunk]:
        """Return the ``top_k`` chunks nearest to ``query``, closest first.

        Args:
            query: User query (must be non-empty after trimming)
            top_k: Number of chunks to return (default: settings.top_k)

        Returns:
            Chunks sorted by non-decreasing distance
        """
        if top_k is None:
            top_k = self.cfg.top_k
        if not query or not query.strip():
            raise ValueError("Query must not be empty")
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")

        logger.info("Retrieving top %d local chunks for: %s", top_k, query)
        embedding = self.get_embedding(query)

        try:
            chunks = self.vector_store.search(embedding, top_k=top_k)
        except (Neo4jError, DriverError) as e:
            raise RetrievalUnavailable(f"Vector index unavailable: {e}") from e

        chunks = sorted(chunks, key=lambda c: c.distance)[:top_k]

        for i, chunk in enumerate(chunks, start=1):
            page = f" (page {chunk.page_number})" if chunk.page_number else ""
            logger.debug(
                "Chunk %d [%s]%s distance=%.4f: %s",
                i,
                chunk.content_type.value,
                page,
                chunk.distance,
                chunk.text[:200],
            )
        logger.info("Found %d local chunks", len(chunks))
        return chunks
