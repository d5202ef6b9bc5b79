"""Sentence-based text chunker with word overlap."""

from __future__ import annotations

import logging
import re

from core.config import settings

logger = logging.getLogger(__name__)

_SENTENCE_BOUNDARY = re.compile(r"[.!?]\s+")


def chunk_text(
    text: str, chunk_size: int | None = None, chunk_overlap: int | None = None
) -> list[str]:
    """Split text into chunks of whole sentences.

    Strategy:
    1. Split on sentence terminators (``.``, ``!``, ``?``) followed by whitespace
    2. Append sentences (each re-terminated with ". ") until the next one would
       push the chunk past ``chunk_size``
    3. Start the following chunk with the last ``chunk_overlap // 10`` words of
       the previous one, so neighbouring chunks share context

    A single sentence longer than ``chunk_size`` becomes its own chunk.
    """
    if chunk_size is None:
        chunk_size = settings.chunk_size
    if chunk_overlap is None:
        chunk_overlap = settings.chunk_overlap

    if not text.strip():
        return []

    overlap_words = chunk_overlap // 10
    chunks: list[str] = []
    current = ""

    for sentence in _SENTENCE_BOUNDARY.split(text):
        if len(current + sentence) > chunk_size and current:
            chunks.append(current.strip())
            words = current.split()
            tail = words[-overlap_words:] if overlap_words else []
            current = " ".join(tail) + " " + sentence
        else:
            current += sentence + ". "

    if current.strip():
        chunks.append(current.strip())

    logger.info("Text split into %d chunks", len(chunks))
    return chunks
