#!/usr/bin/env python3
"""CLI for the Corrective RAG console: index documents, ask questions."""

import argparse
import logging
import sys

from core.config import Settings, settings

BANNER_WIDTH = 40


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )


def banner(*lines: str) -> None:
    print("\n" + "=" * BANNER_WIDTH)
    for line in lines:
        print(f"   {line}")
    print("=" * BANNER_WIDTH)


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Apply command-line capability flags on top of environment settings."""
    overrides = {}
    if getattr(args, "heuristic", False):
        overrides["quality_strategy"] = "heuristic"
    if getattr(args, "no_crag", False):
        overrides["enable_corrective_rag"] = False
    if getattr(args, "web_policy", None):
        overrides["web_search_policy"] = args.web_policy
    if getattr(args, "no_images", False):
        overrides["enable_image_processing"] = False
    if getattr(args, "top_k", None):
        overrides["session_top_k"] = args.top_k
    return settings.model_copy(update=overrides)


def cmd_index(args: argparse.Namespace, cfg: Settings) -> int:
    """Index a document into the vector store."""
    from ingestion.indexer import Indexer
    from storage.vector_store import VectorStore

    file_path = args.file or cfg.pdf_path
    banner("CRAG INDEXING PIPELINE")

    store = VectorStore(cfg=cfg)
    try:
        report = Indexer(store, cfg=cfg).index_document(file_path, use_gpu=args.gpu)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        print("Please provide a document in the correct location")
        return 1
    finally:
        store.close()

    print(f"  Text chunks:  {report.text_chunks}")
    print(f"  Image chunks: {report.image_chunks}")
    print(f"  Stored:       {report.stored}")
    print("\nYour documents are now indexed and ready for queries!")
    return 0


def _build_session_parts(cfg: Settings):
    from core.clients import build_openai_client
    from generation.generator import Generator
    from retrieval.corrective import build_corrective_retriever
    from storage.vector_store import VectorStore

    client = build_openai_client(cfg)
    store = VectorStore(cfg=cfg)
    retriever = build_corrective_retriever(store, client, cfg)
    return store, retriever, Generator(client, cfg)


def cmd_query(args: argparse.Namespace, cfg: Settings) -> int:
    """Start the interactive Q&A session."""
    from generation.augment import QASession

    banner("CRAG QUERY PIPELINE", "(Corrective RAG)")
    store, retriever, generator = _build_session_parts(cfg)
    try:
        if store.count() == 0:
            print("Error: vector index is empty")
            print("Please run indexing first: run_pipeline.py index <file>")
            return 1
        QASession(retriever, generator, top_k=cfg.session_top_k, stream=args.stream).run()
    finally:
        store.close()
    return 0


def cmd_ask(args: argparse.Namespace, cfg: Settings) -> int:
    """Answer a single question and exit."""
    from core.errors import GenerationError, RetrievalUnavailable
    from generation.augment import augment_query_with_context

    if not args.question.strip():
        print("Error: question must not be empty")
        return 1

    store, retriever, generator = _build_session_parts(cfg)
    try:
        outcome = retriever.retrieve_context(args.question, top_k=cfg.session_top_k)
        answer = generator.generate_answer(
            augment_query_with_context(args.question, outcome.context)
        )
    except (RetrievalUnavailable, GenerationError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.close()

    print(f"Query: {args.question}")
    if outcome.verdict is not None:
        print(
            f"Relevance: {outcome.verdict.relevance_score:.1f}/10 "
            f"(sufficient: {'yes' if outcome.verdict.is_sufficient else 'no'})"
        )
    if outcome.fused is not None and outcome.fused.search_query:
        print(f"Web search: {outcome.fused.search_query}")
    print(f"\nAnswer: {answer}")

    if outcome.chunks:
        print(f"\nSources ({len(outcome.chunks)}):")
        for i, chunk in enumerate(outcome.chunks[:5], 1):
            preview = chunk.text[:100].replace("\n", " ")
            page = f" p.{chunk.page_number}" if chunk.page_number else ""
            print(f"  {i}. [{chunk.distance:.3f}] ({chunk.content_type.value}{page}) {preview}...")
    return 0


def cmd_full(args: argparse.Namespace, cfg: Settings) -> int:
    status = cmd_index(args, cfg)
    if status:
        return status
    print("\nStarting query mode...\n")
    return cmd_query(args, cfg)


def cmd_clear(args: argparse.Namespace, cfg: Settings) -> int:
    """Clear all chunks from vector store."""
    from storage.vector_store import VectorStore

    store = VectorStore(cfg=cfg)
    try:
        count = store.delete_all()
        store.drop_index()
    finally:
        store.close()
    print(f"Deleted {count} chunks from vector store")
    return 0


def cmd_stats(args: argparse.Namespace, cfg: Settings) -> int:
    """Show vector store statistics."""
    from storage.vector_store import VectorStore

    store = VectorStore(cfg=cfg)
    try:
        total = store.count()
    finally:
        store.close()
    print(f"Total chunks in store: {total}")
    return 0


def cmd_inspect(args: argparse.Namespace, cfg: Settings) -> int:
    """Print stored samples and the raw search results for a test query."""
    import numpy as np

    from core.errors import RetrievalUnavailable
    from retrieval.retriever import Retriever
    from storage.vector_store import VectorStore

    store = VectorStore(cfg=cfg)
    try:
        samples = store.sample(args.limit)
        print("Sample chunks:")
        for i, row in enumerate(samples, 1):
            vector = np.asarray(row["embedding"] or [], dtype=np.float32)
            print(f"\nChunk {i}:")
            print(f"  Text: {(row['text'] or '')[:100]}...")
            print(f"  ContentType: {row['content_type'] or 'text'}")
            print(f"  Vector length: {vector.size}")
            if vector.size:
                print(f"  First 5 vector values: {', '.join(f'{v:.5f}' for v in vector[:5])}")
                print(f"  Norm: {np.linalg.norm(vector):.4f}")

        if len(samples) >= 2 and samples[0]["embedding"] and samples[1]["embedding"]:
            identical = np.array_equal(
                np.asarray(samples[0]["embedding"]), np.asarray(samples[1]["embedding"])
            )
            print(f"\nAre first two embeddings identical? {identical}")

        retriever = Retriever(store, cfg=cfg)
        print(f"\nTesting query: \"{args.query}\"")
        try:
            results = retriever.retrieve(args.query, top_k=3)
        except RetrievalUnavailable as e:
            print(f"Error: {e}")
            return 1
        for i, chunk in enumerate(results, 1):
            print(f"\nResult {i}:")
            print(f"  Distance: {chunk.distance:.4f}")
            print(f"  Text: {chunk.text[:100]}...")
            print(f"  ContentType: {chunk.content_type.value}")
    finally:
        store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CRAG Console - Corrective Retrieval-Augmented Generation"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    crag_flags = argparse.ArgumentParser(add_help=False)
    crag_flags.add_argument(
        "--heuristic", action="store_true",
        help="Use keyword heuristics instead of the LLM to judge retrieval quality"
    )
    crag_flags.add_argument(
        "--no-crag", action="store_true", help="Answer from local documents only"
    )
    crag_flags.add_argument(
        "--web-policy", choices=["always", "on_demand"],
        help="Search the web for every query, or only when local evidence is insufficient"
    )
    crag_flags.add_argument("--top-k", type=int, help="Local chunks per question")
    crag_flags.add_argument("--stream", action="store_true", help="Stream answers")

    index_flags = argparse.ArgumentParser(add_help=False)
    index_flags.add_argument("file", nargs="?", help="Document to index (default: PDF_PATH)")
    index_flags.add_argument("--no-images", action="store_true", help="Skip image processing")
    index_flags.add_argument("--gpu", action="store_true", help="GPU acceleration for Docling")

    subparsers.add_parser("index", parents=[index_flags], help="Index a document")
    subparsers.add_parser("query", parents=[crag_flags], help="Interactive Q&A")

    p_ask = subparsers.add_parser("ask", parents=[crag_flags], help="Ask one question")
    p_ask.add_argument("question", help="Question to ask")

    subparsers.add_parser(
        "full", parents=[index_flags, crag_flags], help="Index, then start Q&A"
    )
    subparsers.add_parser("clear", help="Clear all chunks")
    subparsers.add_parser("stats", help="Show store statistics")

    p_inspect = subparsers.add_parser("inspect", help="Debug stored embeddings")
    p_inspect.add_argument("--query", default="What is semantic AI?", help="Test query")
    p_inspect.add_argument("--limit", type=int, default=5, help="Samples to show")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "index": cmd_index,
        "query": cmd_query,
        "ask": cmd_ask,
        "full": cmd_full,
        "clear": cmd_clear,
        "stats": cmd_stats,
        "inspect": cmd_inspect,
    }
    sys.exit(commands[args.command](args, resolve_settings(args)))


if __name__ == "__main__":
    main()
