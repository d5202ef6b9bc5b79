"""Indexing pipeline: document -> text and image chunks -> embeddings -> Neo4j."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.config import Settings, settings
from core.models import ContentType, IndexedChunk
from ingestion.chunker import chunk_text
from ingestion.embedder import embed_chunks
from ingestion.images import ImageExtractor, ImageProcessor, image_stats
from ingestion.loader import extract_text

if TYPE_CHECKING:
    from openai import OpenAI

    from storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class IndexReport:
    """Counts produced by one indexing run."""

    text_chunks: int = 0
    image_chunks: int = 0
    stored: int = 0


class Indexer:
    """Indexes one document into the vector store, replacing previous content.

    Image support is a startup capability: when ``enable_image_processing`` is
    off, no extractor or processor is ever built.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        openai_client: OpenAI | None = None,
        cfg: Settings | None = None,
        image_extractor: ImageExtractor | None = None,
        image_processor: ImageProcessor | None = None,
    ):
        self.vector_store = vector_store
        self.cfg = cfg or settings

        if openai_client is None:
            from core.clients import build_openai_client

            openai_client = build_openai_client(self.cfg)
        self.openai_client = openai_client

        self.enable_image_processing = self.cfg.enable_image_processing
        self.image_extractor = image_extractor
        self.image_processor = image_processor
        if self.enable_image_processing:
            self.image_extractor = image_extractor or ImageExtractor(self.cfg.temp_image_dir)
            self.image_processor = image_processor or ImageProcessor(
                self.openai_client, self.cfg
            )

    def build_image_chunks(self, pdf_path: str) -> list[IndexedChunk]:
        if not self.enable_image_processing or not pdf_path.lower().endswith(".pdf"):
            return []

        images = self.image_extractor.extract_images(pdf_path)
        if not images:
            logger.info("No images found in %s", pdf_path)
            return []

        processed = self.image_processor.process_images(images)
        logger.info("Image processing stats: %s", image_stats(processed))
        return [
            IndexedChunk(
                text=image.combined_description,
                content_type=ContentType.IMAGE,
                page_number=image.page_number,
                image_path=image.image_path,
                ocr_text=image.ocr_text,
                vision_description=image.vision_description,
            )
            for image in processed
        ]

    def index_document(self, file_path: str, use_gpu: bool = False) -> IndexReport:
        """Run the full pipeline for ``file_path``.

        Raises:
            FileNotFoundError: the document does not exist
        """
        logger.info("Indexing %s", file_path)
        text = extract_text(file_path, use_gpu=use_gpu)

        text_chunks = [
            IndexedChunk(text=chunk, content_type=ContentType.TEXT)
            for chunk in chunk_text(text, self.cfg.chunk_size, self.cfg.chunk_overlap)
        ]

        try:
            image_chunks = self.build_image_chunks(file_path)
        finally:
            if self.image_extractor is not None:
                self.image_extractor.cleanup()

        all_chunks = text_chunks + image_chunks
        logger.info(
            "Total chunks to index: %d text + %d image = %d",
            len(text_chunks),
            len(image_chunks),
            len(all_chunks),
        )

        embedded = embed_chunks(all_chunks, self.openai_client, self.cfg)
        stored = self.vector_store.replace_all(embedded)

        report = IndexReport(
            text_chunks=len(text_chunks), image_chunks=len(image_chunks), stored=stored
        )
        logger.info("Indexing completed: %s", report)
        return report
