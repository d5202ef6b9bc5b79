"""Batch embedding of chunks via the OpenAI-compatible embeddings API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.config import Settings, settings
from core.models import ContentType, IndexedChunk

if TYPE_CHECKING:
    from openai import OpenAI

logger = logging.getLogger(__name__)


def embedding_text(chunk: IndexedChunk) -> str:
    """Text that represents ``chunk`` in embedding space.

    Image chunks prefer their OCR transcription (the actual content), then the
    combined description, then the vision description.
    """
    if chunk.content_type is ContentType.TEXT:
        return chunk.text

    page = chunk.page_number or "unknown"
    if chunk.ocr_text and chunk.ocr_text.strip():
        text = f"Image from page {page}: {chunk.ocr_text}"
        if chunk.vision_description:
            text += f" Visual context: {chunk.vision_description}"
        return text
    if chunk.text and chunk.text.strip():
        return chunk.text
    if chunk.vision_description and chunk.vision_description.strip():
        return f"Image from page {page}: {chunk.vision_description}"
    return (
        f"Visual content from page {page} with graphical elements, "
        "diagrams, or illustrations"
    )


def embed_chunks(
    chunks: list[IndexedChunk],
    openai_client: OpenAI | None = None,
    cfg: Settings | None = None,
) -> list[IndexedChunk]:
    """Embed chunks in batches and set ``chunk.embedding`` on each.

    Chunks whose embedding text is blank are dropped. Embedding errors
    propagate; a half-built index is worse than none.
    """
    cfg = cfg or settings
    if not chunks:
        return chunks

    if openai_client is None:
        from core.clients import build_openai_client

        openai_client = build_openai_client(cfg)

    valid = [(chunk, embedding_text(chunk)) for chunk in chunks]
    valid = [(chunk, text) for chunk, text in valid if text.strip()]
    if len(valid) != len(chunks):
        logger.info("Filtered %d empty chunks", len(chunks) - len(valid))

    batch_size = cfg.embedding_batch_size
    for start in range(0, len(valid), batch_size):
        batch = valid[start : start + batch_size]
        try:
            response = openai_client.embeddings.create(
                model=cfg.embedding_model, input=[text for _, text in batch]
            )
        except Exception as e:
            logger.error("Failed to embed chunks %d-%d: %s", start, start + len(batch), e)
            raise

        for (chunk, _), item in zip(batch, response.data, strict=True):
            chunk.embedding = list(item.embedding)
        logger.info("Embedding progress: %d/%d chunks", start + len(batch), len(valid))

    return [chunk for chunk, _ in valid]
