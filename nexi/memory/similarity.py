"""Relevance scoring and the retrieval fallback chain.

Retrieval is an ordered list of strategies. Each strategy returns a list of
records, or None when it has no confident answer, in which case the next
strategy is tried:

    semantic (embeddings) -> keyword overlap -> important regardless of content
"""
import inspect
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set

import numpy as np
from loguru import logger

from .embedding import EmbeddingFn, embed_or_none
from .records import MemoryRecord

# Minimum cosine similarity for a semantic match
SEMANTIC_THRESHOLD = 0.3
# Importance floor for the content-independent fallback
IMPORTANT_MIN_IMPORTANCE = 6

_PUNCTUATION = re.compile(r"[^\w\s]")


def _normalized_words(text: str) -> List[str]:
    return _PUNCTUATION.sub("", (text or "").lower()).split()


def tokenize(text: str) -> List[str]:
    """Keywords for relevance search: lowercase, no punctuation, longer than 3 chars."""
    return [word for word in _normalized_words(text) if len(word) > 3]


def word_set(text: str) -> Set[str]:
    """Words used for duplicate detection: lowercase, no punctuation, longer than 2 chars."""
    return {word for word in _normalized_words(text) if len(word) > 2}


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns 0.0 for empty, mismatched or zero-magnitude input.
    """
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def jaccard_similarity(a: Set[str], b: Set[str]) -> float:
    """|a & b| / |a | b|; two empty sets are identical."""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def text_similarity(text_a: str, text_b: str) -> float:
    """Jaccard similarity of the word sets of two texts."""
    return jaccard_similarity(word_set(text_a), word_set(text_b))


@dataclass
class ScoredRecord:
    """A record paired with its similarity to a query."""
    record: MemoryRecord
    score: float


class KeywordStrategy:
    """Records mentioning any query keyword, by ``importance * 2 + access_count``."""

    name = "keyword"

    def __init__(self, store):
        self.store = store

    def retrieve(self, text: str, limit: int) -> Optional[List[MemoryRecord]]:
        tokens = tokenize(text)
        if not tokens:
            return None
        return self.store.search_keywords(tokens, limit)


class ImportantStrategy:
    """The most important records, regardless of the query."""

    name = "important"

    def __init__(self, store, min_importance: int = IMPORTANT_MIN_IMPORTANCE):
        self.store = store
        self.min_importance = min_importance

    def retrieve(self, text: str, limit: int) -> Optional[List[MemoryRecord]]:
        return self.store.query_filtered(min_importance=self.min_importance, limit=limit)


class SemanticStrategy:
    """Records whose stored embedding is close to the query's embedding.

    The embedding generator is looked up through ``get_embedding_fn`` on every
    call, so it can be installed or swapped after construction.
    """

    name = "semantic"

    def __init__(
        self,
        store,
        get_embedding_fn: Callable[[], Optional[EmbeddingFn]],
        threshold: float = SEMANTIC_THRESHOLD,
    ):
        self.store = store
        self.get_embedding_fn = get_embedding_fn
        self.threshold = threshold

    def rank(self, query_vector: List[float], limit: int) -> List[ScoredRecord]:
        """Score every embedded record against ``query_vector``."""
        scored = []
        for record in self.store.embedded_records():
            score = cosine_similarity(query_vector, record.embedding)
            if score > self.threshold:
                scored.append(ScoredRecord(record=record, score=score))

        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[:limit]

    async def retrieve(self, text: str, limit: int) -> Optional[List[MemoryRecord]]:
        embedding_fn = self.get_embedding_fn()
        if embedding_fn is None:
            return None

        query_vector = await embed_or_none(embedding_fn, text)
        if query_vector is None:
            return None

        scored = self.rank(query_vector, limit)
        if not scored:
            logger.debug("No memory cleared the semantic threshold")
            return None

        self.store.touch([item.record.id for item in scored])
        logger.debug(
            "Semantic matches: "
            + ", ".join(f"{item.record.id}={item.score:.3f}" for item in scored)
        )
        return [item.record for item in scored]


class FallbackChain:
    """Try strategies in order; the first non-None answer wins."""

    def __init__(self, strategies: Sequence):
        self.strategies = list(strategies)

    def retrieve(self, text: str, limit: int) -> List[MemoryRecord]:
        """Run a chain made only of synchronous strategies."""
        for strategy in self.strategies:
            result = strategy.retrieve(text, limit)
            if inspect.isawaitable(result):
                result.close()
                raise TypeError(f"Strategy '{strategy.name}' is async; use aretrieve()")
            if result is not None:
                logger.debug(f"Retrieved {len(result)} memories via {strategy.name}")
                return result
        return []

    async def aretrieve(self, text: str, limit: int) -> List[MemoryRecord]:
        """Run a chain that may contain asynchronous strategies."""
        for strategy in self.strategies:
            result = strategy.retrieve(text, limit)
            if inspect.isawaitable(result):
                result = await result
            if result is not None:
                logger.debug(f"Retrieved {len(result)} memories via {strategy.name}")
                return result
        return []


def keyword_chain(store) -> FallbackChain:
    """keyword -> important."""
    return FallbackChain([KeywordStrategy(store), ImportantStrategy(store)])


def semantic_chain(
    store,
    get_embedding_fn: Callable[[], Optional[EmbeddingFn]],
    threshold: float = SEMANTIC_THRESHOLD,
) -> FallbackChain:
    """semantic -> keyword -> important."""
    return FallbackChain([
        SemanticStrategy(store, get_embedding_fn, threshold),
        KeywordStrategy(store),
        ImportantStrategy(store),
    ])


def find_relevant(store, text: str, limit: int = 5) -> List[MemoryRecord]:
    """Keyword relevance, falling back to important memories."""
    return keyword_chain(store).retrieve(text, limit)


async def find_relevant_semantic(
    store,
    text: str,
    limit: int = 5,
    embedding_fn: Optional[EmbeddingFn] = None,
    threshold: float = SEMANTIC_THRESHOLD,
) -> List[MemoryRecord]:
    """Embedding relevance, falling back to keyword relevance."""
    return await semantic_chain(store, lambda: embedding_fn, threshold).aretrieve(text, limit)
