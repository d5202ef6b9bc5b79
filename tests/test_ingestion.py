"""Unit tests for ingestion pipeline (loader, chunker, images, embedder, indexer)."""

from __future__ import annotations

from unittest.mock import MagicMock, Mock, PropertyMock, patch

import openai
import pytest

from core.config import Settings
from core.models import ContentType, ExtractedImage, IndexedChunk, ProcessedImage
from ingestion.chunker import chunk_text
from ingestion.embedder import embed_chunks, embedding_text
from ingestion.images import (
    ImageExtractor,
    ImageProcessor,
    combine_descriptions,
    image_stats,
    sniff_image_extension,
)
from ingestion.indexer import Indexer
from ingestion.loader import extract_text

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16


def _fake_embeddings(model, input):
    return Mock(data=[Mock(embedding=[float(len(text)), 0.0]) for text in input])


class TestLoader:
    """Tests for document loader."""

    def test_extract_text_txt(self, tmp_path):
        """Test loading TXT file (no Docling needed)."""
        txt_file = tmp_path / "test.txt"
        txt_file.write_text("Test content\nLine 2", encoding="utf-8")

        assert extract_text(str(txt_file)) == "Test content\nLine 2"

    def test_extract_text_not_found(self):
        with pytest.raises(FileNotFoundError):
            extract_text("/nonexistent/file.pdf")

    @patch("docling.document_converter.DocumentConverter")
    def test_extract_text_docling(self, mock_converter_class, tmp_path):
        """Test loading PDF via Docling."""
        pdf_file = tmp_path / "test.pdf"
        pdf_file.write_bytes(b"fake pdf content")

        mock_result = Mock()
        mock_result.document.export_to_markdown.return_value = "# PDF Content"
        mock_result.document.pages = {1: Mock(), 2: Mock()}
        mock_converter_class.return_value.convert.return_value = mock_result

        result = extract_text(str(pdf_file))

        assert result == "# PDF Content"
        mock_converter_class.return_value.convert.assert_called_once_with(str(pdf_file))

    @patch("docling.document_converter.DocumentConverter")
    def test_extract_text_gpu_options_keyed_by_input_format(
        self, mock_converter_class, tmp_path
    ):
        from docling.datamodel.base_models import InputFormat

        pdf_file = tmp_path / "test.pdf"
        pdf_file.write_bytes(b"fake pdf content")
        mock_result = Mock()
        mock_result.document.export_to_markdown.return_value = "# PDF Content"
        mock_result.document.pages = {}
        mock_converter_class.return_value.convert.return_value = mock_result

        extract_text(str(pdf_file), use_gpu=True)

        format_options = mock_converter_class.call_args.kwargs["format_options"]
        assert list(format_options) == [InputFormat.PDF]


class TestChunker:
    """Tests for the sentence chunker."""

    def test_overlap_carries_last_words(self):
        text = "Alpha beta gamma. Delta epsilon zeta. Eta theta iota."

        chunks = chunk_text(text, chunk_size=30, chunk_overlap=20)

        assert chunks == [
            "Alpha beta gamma.",
            "beta gamma. Delta epsilon zeta",
            "epsilon zeta Eta theta iota.",
        ]

    def test_short_text_single_chunk(self):
        chunks = chunk_text("One sentence! Another one? Done", chunk_size=500, chunk_overlap=50)

        assert chunks == ["One sentence. Another one. Done."]

    def test_no_overlap(self):
        chunks = chunk_text("Aaaa bbbb. Cccc dddd. Eeee ffff", chunk_size=12, chunk_overlap=0)

        assert chunks[0] == "Aaaa bbbb."
        assert chunks[1].startswith("Cccc dddd")

    def test_oversized_sentence_is_its_own_chunk(self):
        long_sentence = "word " * 40
        chunks = chunk_text(f"Short. {long_sentence}", chunk_size=50, chunk_overlap=0)

        assert chunks[0] == "Short."
        assert chunks[1] == long_sentence.strip()

    @pytest.mark.parametrize("text", ["", "   \n "])
    def test_empty_text(self, text):
        assert chunk_text(text, chunk_size=100, chunk_overlap=10) == []


class TestImageHelpers:
    @pytest.mark.parametrize(
        "data, expected",
        [
            (JPEG_BYTES, "jpg"),
            (PNG_BYTES, "png"),
            (b"GIF89a", "gif"),
            (b"BM\x00\x00", "bmp"),
            (b"\x00\x01\x02", "jpg"),
        ],
    )
    def test_sniff_image_extension(self, data, expected):
        assert sniff_image_extension(data) == expected

    def test_combine_descriptions_prefers_ocr(self):
        text = combine_descriptions(4, "Quarterly revenue", "A bar chart")

        assert text.startswith("Image from page 4 of the document. Quarterly revenue. ")
        assert "Visual context: A bar chart. " in text

    def test_combine_descriptions_vision_only(self):
        text = combine_descriptions(2, None, "A network diagram")

        assert "Visual description: A network diagram." in text

    def test_combine_descriptions_fallback(self):
        text = combine_descriptions(9, None, None)

        assert text.startswith("Image from page 9 of the document. This image contains visual")

    def test_image_stats(self):
        processed = [
            ProcessedImage(page_number=1, image_path="a", ocr_text="t", vision_description="v"),
            ProcessedImage(page_number=1, image_path="b", ocr_text="t"),
            ProcessedImage(page_number=2, image_path="c", vision_description="v"),
            ProcessedImage(page_number=3, image_path="d"),
        ]

        assert image_stats(processed) == {
            "total": 4, "with_ocr": 1, "with_vision": 1, "with_both": 1,
        }


class TestImageExtractor:
    @patch("ingestion.images.PdfReader")
    def test_extract_images(self, mock_reader_class, tmp_path):
        page1 = Mock(images=[Mock(data=JPEG_BYTES), Mock(data=PNG_BYTES)])
        page2 = Mock(images=[])
        mock_reader_class.return_value.pages = [page1, page2]
        extractor = ImageExtractor(str(tmp_path / "imgs"))

        images = extractor.extract_images("doc.pdf")

        assert [(i.page_number, i.image_index, i.extension) for i in images] == [
            (1, 0, "jpg"),
            (1, 1, "png"),
        ]
        assert (tmp_path / "imgs" / "page_1_image_0.jpg").read_bytes() == JPEG_BYTES
        assert images[1].size == len(PNG_BYTES)

    @patch("ingestion.images.PdfReader")
    def test_undecodable_image_skipped(self, mock_reader_class, tmp_path):
        broken = Mock()
        type(broken).data = PropertyMock(side_effect=ValueError("bad"))
        page = Mock(images=[broken, Mock(data=PNG_BYTES)])
        mock_reader_class.return_value.pages = [page]

        images = ImageExtractor(str(tmp_path)).extract_images("doc.pdf")

        assert len(images) == 1
        assert images[0].image_index == 0
        assert images[0].extension == "png"

    @patch("ingestion.images.PdfReader", side_effect=OSError("no such file"))
    def test_unreadable_pdf(self, _mock_reader, tmp_path):
        assert ImageExtractor(str(tmp_path)).extract_images("missing.pdf") == []

    @patch("ingestion.images.PdfReader")
    def test_cleanup_removes_only_extracted_files(self, mock_reader_class, tmp_path):
        mock_reader_class.return_value.pages = [
            Mock(images=[Mock(data=PNG_BYTES), Mock(data=JPEG_BYTES)])
        ]
        unrelated = tmp_path / "notes.txt"
        unrelated.write_text("keep me", encoding="utf-8")
        extractor = ImageExtractor(str(tmp_path))
        extractor.extract_images("doc.pdf")

        assert extractor.cleanup() == 2
        assert list(tmp_path.iterdir()) == [unrelated]
        assert extractor.cleanup() == 0

    def test_cleanup_without_extraction(self, tmp_path):
        (tmp_path / "page_1_image_0.png").write_bytes(PNG_BYTES)
        extractor = ImageExtractor(str(tmp_path))

        assert extractor.cleanup() == 0
        assert (tmp_path / "page_1_image_0.png").exists()


class TestImageProcessor:
    @pytest.fixture
    def image_path(self, tmp_path):
        path = tmp_path / "page_3_image_0.png"
        path.write_bytes(PNG_BYTES)
        return str(path)

    @pytest.fixture
    def mock_client(self):
        return MagicMock()

    def _completion(self, content):
        return Mock(choices=[Mock(message=Mock(content=content))])

    def test_process_image(self, mock_client, image_path):
        mock_client.chat.completions.create.side_effect = [
            self._completion("Total: 42"),
            self._completion("A receipt"),
        ]
        processor = ImageProcessor(mock_client, Settings(vision_model="vlm"))

        result = processor.process_image(image_path, 3)

        assert result.ocr_text == "Total: 42"
        assert result.vision_description == "A receipt"
        assert result.combined_description.startswith("Image from page 3 of the document. Total: 42")
        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "vlm"
        image_part = call_kwargs["messages"][0]["content"][1]
        assert image_part["image_url"]["url"].startswith("data:image/png;base64,")

    def test_no_text_marker(self, mock_client, image_path):
        mock_client.chat.completions.create.return_value = self._completion("NO_TEXT")
        processor = ImageProcessor(mock_client, Settings(use_vision=False))

        assert processor.extract_text(image_path) is None

    def test_vision_failure_falls_back_to_file_description(self, mock_client, image_path):
        mock_client.chat.completions.create.side_effect = openai.OpenAIError("no vision")
        processor = ImageProcessor(mock_client, Settings(use_ocr=False))

        description = processor.describe(image_path)

        assert description.startswith("Image file (PNG,")

    def test_disabled_capabilities(self, mock_client, image_path):
        processor = ImageProcessor(mock_client, Settings(use_ocr=False, use_vision=False))

        result = processor.process_image(image_path, 1)

        mock_client.chat.completions.create.assert_not_called()
        assert result.ocr_text is None
        assert result.vision_description is None

    def test_process_images(self, mock_client, image_path):
        mock_client.chat.completions.create.return_value = self._completion("NO_TEXT")
        processor = ImageProcessor(mock_client, Settings(use_vision=False))
        images = [
            ExtractedImage(page_number=3, image_index=0, path=image_path, extension="png", size=24)
        ]

        results = processor.process_images(images)

        assert len(results) == 1
        assert results[0].page_number == 3
        assert processor.process_images([]) == []


class TestEmbedder:
    def test_text_chunk_embeds_text(self):
        assert embedding_text(IndexedChunk(text="plain")) == "plain"

    def test_image_chunk_prefers_ocr(self):
        chunk = IndexedChunk(
            text="combined",
            content_type=ContentType.IMAGE,
            page_number=5,
            ocr_text="Revenue grew",
            vision_description="A line chart",
        )

        assert embedding_text(chunk) == "Image from page 5: Revenue grew Visual context: A line chart"

    def test_image_chunk_falls_back_to_text(self):
        chunk = IndexedChunk(text="combined", content_type=ContentType.IMAGE, page_number=5)

        assert embedding_text(chunk) == "combined"

    def test_image_chunk_vision_only(self):
        chunk = IndexedChunk(
            text="", content_type=ContentType.IMAGE, page_number=2, vision_description="A map"
        )

        assert embedding_text(chunk) == "Image from page 2: A map"

    def test_image_chunk_generic(self):
        chunk = IndexedChunk(text="", content_type=ContentType.IMAGE)

        assert embedding_text(chunk).startswith("Visual content from page unknown")

    def test_batches(self):
        client = MagicMock()
        client.embeddings.create.side_effect = _fake_embeddings
        chunks = [IndexedChunk(text=f"chunk {i}") for i in range(45)]

        embedded = embed_chunks(chunks, client, Settings(embedding_batch_size=20))

        assert len(embedded) == 45
        sizes = [len(c.kwargs["input"]) for c in client.embeddings.create.call_args_list]
        assert sizes == [20, 20, 5]
        assert embedded[0].embedding == [7.0, 0.0]

    def test_blank_chunks_dropped(self):
        client = MagicMock()
        client.embeddings.create.side_effect = _fake_embeddings
        chunks = [IndexedChunk(text="keep"), IndexedChunk(text="   ")]

        embedded = embed_chunks(chunks, client, Settings())

        assert [c.text for c in embedded] == ["keep"]

    def test_embedding_error_propagates(self):
        client = MagicMock()
        client.embeddings.create.side_effect = openai.OpenAIError("down")

        with pytest.raises(openai.OpenAIError):
            embed_chunks([IndexedChunk(text="x")], client, Settings())


class TestIndexer:
    @pytest.fixture
    def mock_client(self):
        client = MagicMock()
        client.embeddings.create.side_effect = _fake_embeddings
        return client

    @pytest.fixture
    def mock_store(self):
        store = MagicMock()
        store.replace_all.side_effect = lambda chunks: len(chunks)
        return store

    def test_index_text_document(self, tmp_path, mock_client, mock_store):
        doc = tmp_path / "notes.txt"
        doc.write_text("First sentence here. Second sentence here.", encoding="utf-8")
        cfg = Settings(enable_image_processing=False, chunk_size=500, chunk_overlap=50)

        report = Indexer(mock_store, mock_client, cfg).index_document(str(doc))

        assert report.text_chunks == 1
        assert report.image_chunks == 0
        assert report.stored == 1
        stored = mock_store.replace_all.call_args.args[0]
        assert stored[0].embedding

    def test_images_disabled_builds_no_processor(self, mock_client, mock_store):
        indexer = Indexer(mock_store, mock_client, Settings(enable_image_processing=False))

        assert indexer.image_extractor is None
        assert indexer.image_processor is None
        assert indexer.build_image_chunks("doc.pdf") == []

    @patch("ingestion.indexer.extract_text", return_value="Body text of the report.")
    def test_index_pdf_with_images(self, _mock_extract, mock_client, mock_store):
        extractor = Mock()
        extractor.extract_images.return_value = [
            ExtractedImage(page_number=2, image_index=0, path="p.png", extension="png", size=10)
        ]
        processor = Mock()
        processor.process_images.return_value = [
            ProcessedImage(
                page_number=2,
                image_path="p.png",
                ocr_text="Q3 results",
                combined_description="Image from page 2 of the document. Q3 results.",
            )
        ]
        indexer = Indexer(
            mock_store,
            mock_client,
            Settings(enable_image_processing=True),
            image_extractor=extractor,
            image_processor=processor,
        )

        report = indexer.index_document("report.pdf")

        assert report.text_chunks == 1
        assert report.image_chunks == 1
        stored = mock_store.replace_all.call_args.args[0]
        assert stored[1].content_type is ContentType.IMAGE
        assert stored[1].page_number == 2
        assert stored[1].ocr_text == "Q3 results"
        extractor.cleanup.assert_called_once()

    @patch("ingestion.indexer.extract_text", return_value="Text.")
    def test_cleanup_runs_when_processing_fails(self, _mock_extract, mock_client, mock_store):
        extractor = Mock()
        extractor.extract_images.return_value = [
            ExtractedImage(page_number=1, image_index=0, path="p.png", extension="png", size=1)
        ]
        processor = Mock()
        processor.process_images.side_effect = RuntimeError("boom")
        indexer = Indexer(
            mock_store,
            mock_client,
            Settings(enable_image_processing=True),
            image_extractor=extractor,
            image_processor=processor,
        )

        with pytest.raises(RuntimeError):
            indexer.index_document("report.pdf")

        extractor.cleanup.assert_called_once()
        mock_store.replace_all.assert_not_called()

    def test_missing_document(self, mock_client, mock_store):
        indexer = Indexer(mock_store, mock_client, Settings(enable_image_processing=False))

        with pytest.raises(FileNotFoundError):
            indexer.index_document("/nonexistent/doc.pdf")
