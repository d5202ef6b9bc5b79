"""Prompt augmentation and the interactive console Q&A session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from core.config import settings
from core.errors import GenerationError, RetrievalUnavailable

if TYPE_CHECKING:
    from generation.generator import Generator
    from retrieval.corrective import CorrectiveRetriever

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("exit", "quit")
RULE = "=" * 40


def augment_query_with_context(
    query: str, context: str, fallback_answer: str | None = None
) -> str:
    """Wrap the user question and retrieved context into the generation prompt."""
    if fallback_answer is None:
        fallback_answer = settings.fallback_answer

    return f"""You are a helpful assistant. Answer the user's question based on the following context. If the answer cannot be found in the context, say '{fallback_answer}'.

Context:
{context}

User Question: {query}

Answer:"""


class QASession:
    """Reads questions from the console until the user exits.

    Each question is answered independently; a failed question is reported and
    the loop continues.
    """

    def __init__(
        self,
        retriever: CorrectiveRetriever,
        generator: Generator,
        top_k: int | None = None,
        stream: bool = False,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[..., None] = print,
    ):
        self.retriever = retriever
        self.generator = generator
        self.top_k = top_k or settings.session_top_k
        self.stream = stream
        self.input_fn = input_fn
        self.output_fn = output_fn

    def get_user_query(self) -> str:
        return self.input_fn("Enter your question: ").strip()

    def answer(self, query: str) -> str:
        """Retrieve context, augment the prompt and generate one answer."""
        outcome = self.retriever.retrieve_context(query, top_k=self.top_k)
        if outcome.fused is not None and outcome.fused.search_query:
            self.output_fn(f"(web search: \"{outcome.fused.search_query}\")")

        prompt = augment_query_with_context(query, outcome.context)

        self.output_fn("\n=== ANSWER ===\n")
        if not self.stream:
            answer = self.generator.generate_answer(prompt)
            self.output_fn(answer)
            return answer

        parts = []
        for fragment in self.generator.generate_answer_streaming(prompt):
            parts.append(fragment)
            self.output_fn(fragment, end="", flush=True)
        self.output_fn()
        return "".join(parts)

    def run(self) -> int:
        """Run the loop. Returns the number of questions answered."""
        self.output_fn(f"\n{RULE}\n   CRAG Q&A System\n{RULE}")
        self.output_fn('Type your question or "exit" to quit\n')

        answered = 0
        while True:
            try:
                query = self.get_user_query()
            except (EOFError, KeyboardInterrupt):
                self.output_fn()
                break

            if query.lower() in EXIT_COMMANDS:
                break
            if not query:
                self.output_fn("Please enter a valid question.\n")
                continue

            try:
                self.answer(query)
                answered += 1
            except (RetrievalUnavailable, GenerationError) as e:
                logger.error("Error during Q&A session: %s", e)
                self.output_fn(f"Could not answer: {e}\nPlease try again.\n")
                continue

            self.output_fn(f"\n{RULE}\n")

        self.output_fn("\nGoodbye!\n")
        return answered
