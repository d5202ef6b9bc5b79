"""Document text extraction using Docling for PDF/DOCX/HTML."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

PLAIN_TEXT_SUFFIXES = (".txt", ".md")


def extract_text(file_path: str, use_gpu: bool = False) -> str:
    """Extract the text of a document.

    Plain text files are read directly; everything else (PDF, DOCX, HTML, ...)
    goes through Docling and comes back as markdown.

    Raises:
        FileNotFoundError: ``file_path`` does not exist
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    if path.suffix.lower() in PLAIN_TEXT_SUFFIXES:
        text = path.read_text(encoding="utf-8")
        logger.info("Read %d characters from %s", len(text), file_path)
        return text

    # Docling is heavy, import only when a binary document is loaded
    from docling.document_converter import DocumentConverter

    converter_kwargs: dict = {}
    if use_gpu and path.suffix.lower() == ".pdf":
        from docling.datamodel.accelerator_options import (
            AcceleratorDevice,
            AcceleratorOptions,
        )
        from docling.datamodel.base_models import InputFormat
        from docling.datamodel.pipeline_options import PdfPipelineOptions
        from docling.document_converter import PdfFormatOption

        pdf_opts = PdfPipelineOptions(
            accelerator_options=AcceleratorOptions(device=AcceleratorDevice.AUTO)
        )
        converter_kwargs["format_options"] = {
            InputFormat.PDF: PdfFormatOption(pipeline_options=pdf_opts)
        }
        logger.info("GPU acceleration enabled for PDF")

    logger.info("Extracting text via Docling: %s", file_path)
    result = DocumentConverter(**converter_kwargs).convert(file_path)
    document = result.document

    text = document.export_to_markdown()
    pages = getattr(document, "pages", None)
    logger.info(
        "PDF loaded: %s pages, %d characters extracted",
        len(pages) if pages is not None else "?",
        len(text),
    )
    return text
