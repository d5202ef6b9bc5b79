"""Exception hierarchy for the CRAG pipeline."""


class CragError(Exception):
    """Base class for pipeline errors."""


class RetrievalUnavailable(CragError):
    """Embedding service or vector index failed; the query cannot proceed."""


class EmbeddingDimensionMismatch(RetrievalUnavailable):
    """Query embedding length differs from the vector index dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding dimension {actual} does not match index dimension {expected}"
        )
        self.expected = expected
        self.actual = actual


class AnalysisDegraded(CragError):
    """Quality analysis failed; callers fall back to the safe default verdict."""


class WebSearchDegraded(CragError):
    """Web search produced nothing usable; fusion proceeds without it."""


class WebSearchError(WebSearchDegraded):
    """The web search provider could not be queried."""


class GenerationError(CragError):
    """The language model did not produce an answer."""
