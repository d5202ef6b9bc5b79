"""Image extraction from PDFs and image description via a vision model.

Images become retrievable chunks through their OCR transcription and a vision
description. OCR runs through the vision model itself (VLM OCR), so both
capabilities share one OpenAI-compatible client.
"""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import openai
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from core.config import Settings, settings
from core.models import ExtractedImage, ProcessedImage

if TYPE_CHECKING:
    from openai import OpenAI

logger = logging.getLogger(__name__)

NO_TEXT_MARKER = "NO_TEXT"

_OCR_PROMPT = (
    "Transcribe all legible text in this image exactly as written, preserving "
    f"line breaks. Output only the text. If the image contains no text, reply {NO_TEXT_MARKER}."
)

_VISION_PROMPT = (
    "Describe this image in detail, including any text, charts, diagrams, or visual "
    "elements. Focus on semantic information, concepts, relationships, and content "
    "that would be useful for document understanding and retrieval. Be specific "
    "about what the image shows."
)

_SIGNATURES = (
    (b"\xff\xd8", "jpg"),
    (b"\x89P", "png"),
    (b"GI", "gif"),
    (b"BM", "bmp"),
)

_MIME_TYPES = {"png": "image/png", "gif": "image/gif"}


def sniff_image_extension(data: bytes) -> str:
    """Guess an image file extension from its leading magic bytes."""
    for signature, extension in _SIGNATURES:
        if data.startswith(signature):
            return extension
    return "jpg"


class ImageExtractor:
    """Writes every decodable image of a PDF into a temporary directory."""

    def __init__(self, temp_dir: str | None = None):
        self.temp_dir = Path(temp_dir or settings.temp_image_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self._extracted: list[Path] = []

    def extract_images(self, pdf_path: str) -> list[ExtractedImage]:
        """Extract images page by page; undecodable images are skipped."""
        logger.info("Extracting images from PDF: %s", pdf_path)
        try:
            reader = PdfReader(pdf_path)
        except (PdfReadError, OSError) as e:
            logger.error("Could not open PDF for image extraction: %s", e)
            return []

        images: list[ExtractedImage] = []
        for page_number, page in enumerate(reader.pages, start=1):
            try:
                page_images = page.images
                count = len(page_images)
            except (PdfReadError, NotImplementedError, ValueError, KeyError) as e:
                logger.warning("Could not list images on page %d: %s", page_number, e)
                continue

            image_index = 0
            for i in range(count):
                try:
                    image_file = page_images[i]
                    data = image_file.data
                    extension = sniff_image_extension(data)
                    if extension not in ("jpg", "png"):
                        # Vision endpoints accept JPEG/PNG; re-encode the decoded image
                        buffer = io.BytesIO()
                        image_file.image.convert("RGB").save(buffer, format="PNG")
                        data, extension = buffer.getvalue(), "png"
                except (PdfReadError, NotImplementedError, ValueError, KeyError, OSError) as e:
                    logger.warning(
                        "Could not extract image %d from page %d: %s", i, page_number, e
                    )
                    continue

                path = self.temp_dir / f"page_{page_number}_image_{image_index}.{extension}"
                path.write_bytes(data)
                self._extracted.append(path)
                images.append(
                    ExtractedImage(
                        page_number=page_number,
                        image_index=image_index,
                        path=str(path),
                        extension=extension,
                        size=len(data),
                    )
                )
                logger.debug(
                    "Extracted image from page %d (%.2f KB)", page_number, len(data) / 1024
                )
                image_index += 1

        logger.info("Total images extracted: %d", len(images))
        return images

    def cleanup(self) -> int:
        """Delete the image files this extractor wrote. Returns the number removed."""
        removed = 0
        for path in self._extracted:
            try:
                path.unlink(missing_ok=True)
                removed += 1
            except OSError as e:
                logger.warning("Could not remove temporary image %s: %s", path, e)
        self._extracted.clear()
        logger.info("Cleaned up %d temporary image files", removed)
        return removed


class ImageProcessor:
    """Turns extracted images into searchable descriptions."""

    def __init__(self, openai_client: OpenAI | None = None, cfg: Settings | None = None):
        self.cfg = cfg or settings
        self.enable_ocr = self.cfg.use_ocr
        self.enable_vision = self.cfg.use_vision
        self.vision_model = self.cfg.vision_model

        if openai_client is None:
            from core.clients import build_openai_client

            openai_client = build_openai_client(self.cfg)
        self.openai_client = openai_client

    def _ask_vision_model(self, image_path: str, instruction: str) -> str:
        path = Path(image_path)
        encoded = base64.b64encode(path.read_bytes()).decode("ascii")
        mime_type = _MIME_TYPES.get(path.suffix.lower().lstrip("."), "image/jpeg")

        response = self.openai_client.chat.completions.create(
            model=self.vision_model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": instruction},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                        },
                    ],
                }
            ],
            max_tokens=self.cfg.vision_max_tokens,
        )
        return (response.choices[0].message.content or "").strip()

    def extract_text(self, image_path: str) -> str | None:
        """OCR: transcribe the text visible in the image, or None."""
        if not self.enable_ocr:
            return None
        try:
            text = self._ask_vision_model(image_path, _OCR_PROMPT)
        except (openai.OpenAIError, OSError) as e:
            logger.warning("OCR failed for %s: %s", image_path, e)
            return None

        if not text or text.upper().startswith(NO_TEXT_MARKER):
            return None
        return text

    def describe(self, image_path: str) -> str | None:
        """Vision description; falls back to a file-metadata description."""
        if not self.enable_vision:
            return None
        try:
            description = self._ask_vision_model(image_path, _VISION_PROMPT)
        except (openai.OpenAIError, OSError) as e:
            logger.warning("Vision model failed for %s: %s", image_path, e)
            return describe_from_file(image_path)
        return description or describe_from_file(image_path)

    def process_image(self, image_path: str, page_number: int) -> ProcessedImage:
        logger.debug("Processing image from page %d", page_number)
        ocr_text = self.extract_text(image_path)
        vision_description = self.describe(image_path)

        return ProcessedImage(
            page_number=page_number,
            image_path=image_path,
            ocr_text=ocr_text,
            vision_description=vision_description,
            combined_description=combine_descriptions(
                page_number, ocr_text, vision_description
            ),
        )

    def process_images(self, images: list[ExtractedImage]) -> list[ProcessedImage]:
        if not images:
            return []

        logger.info("Processing %d extracted images", len(images))
        results = [self.process_image(image.path, image.page_number) for image in images]
        logger.info("Processed %d/%d images", len(results), len(images))
        return results


def describe_from_file(image_path: str) -> str | None:
    """Generic description built from file metadata alone."""
    path = Path(image_path)
    try:
        size_kb = path.stat().st_size / 1024
    except OSError:
        return None
    extension = path.suffix.lstrip(".").upper() or "IMAGE"
    return (
        f"Image file ({extension}, {size_kb:.2f} KB). This image likely contains visual "
        "content such as diagrams, charts, screenshots, illustrations, or graphical "
        "elements. The image may contain text, data visualizations, UI elements, or "
        "other visual information relevant to the document context."
    )


def combine_descriptions(
    page_number: int, ocr_text: str | None, vision_description: str | None
) -> str:
    """Build the embeddable description of an image, OCR text first."""
    prefix = f"Image from page {page_number} of the document. "

    if ocr_text:
        visual = f"Visual context: {vision_description}. " if vision_description else ""
        return (
            f"{prefix}{ocr_text}. {visual}"
            "This image contains the above text content and visual information."
        )

    if vision_description:
        return (
            f"{prefix}Visual description: {vision_description}. This image contains "
            "visual information that may include diagrams, charts, screenshots, "
            "illustrations, or other graphical content relevant to the document."
        )

    return (
        f"{prefix}This image contains visual content that may include diagrams, charts, "
        "screenshots, illustrations, or other graphical elements. The image may contain "
        "information relevant to the document's content."
    )


def image_stats(processed: list[ProcessedImage]) -> dict[str, int]:
    stats = {"total": len(processed), "with_ocr": 0, "with_vision": 0, "with_both": 0}
    for image in processed:
        if image.ocr_text and image.vision_description:
            stats["with_both"] += 1
        elif image.ocr_text:
            stats["with_ocr"] += 1
        elif image.vision_description:
            stats["with_vision"] += 1
    return stats
