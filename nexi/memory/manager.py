"""Memory manager: the public face of Nexi's memory system.

Composes the record store, the relevance engine and the maintenance
policies, and owns the (optional) embedding generator.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from . import maintenance
from .embedding import EmbeddingFn
from .models import MemoryType
from .records import MemoryDraft, MemoryRecord
from .similarity import SEMANTIC_THRESHOLD, keyword_chain, semantic_chain
from .store import MemoryStore


class MemoryManager:
    """Manages Nexi's long-term memory."""

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        db_url: Optional[str] = None,
        embedding_generator: Optional[EmbeddingFn] = None,
        semantic_threshold: float = SEMANTIC_THRESHOLD,
        duplicate_threshold: float = maintenance.DEFAULT_DUPLICATE_THRESHOLD,
        store: Optional[MemoryStore] = None,
    ):
        """Initialize the memory manager.

        Args:
            data_dir: Directory for the SQLite database
            db_url: SQLAlchemy database URL, overrides ``data_dir``
            embedding_generator: Optional text -> vector function; can also
                be installed later with :meth:`set_embedding_generator`
            semantic_threshold: Minimum cosine similarity for semantic matches
            duplicate_threshold: Minimum word overlap for duplicates
            store: Pre-built store (data_dir and db_url are ignored)
        """
        self.store = store or MemoryStore(data_dir=data_dir, db_url=db_url)
        self.semantic_threshold = semantic_threshold
        self.duplicate_threshold = duplicate_threshold
        self._embedding_generator = embedding_generator

    def set_embedding_generator(self, generator: Optional[EmbeddingFn]) -> None:
        """Install, replace or (with None) remove the embedding generator."""
        self._embedding_generator = generator
        logger.info("Embedding generator " + ("installed" if generator else "removed"))

    def get_embedding_generator(self) -> Optional[EmbeddingFn]:
        return self._embedding_generator

    @property
    def has_embeddings(self) -> bool:
        return self._embedding_generator is not None

    @staticmethod
    def _draft(
        content: str,
        memory_type: Union[MemoryType, str],
        importance: Any,
        emotional_weight: Any,
        context: Optional[str],
        tags: Optional[List[str]],
        related_user: Optional[str],
    ) -> MemoryDraft:
        return MemoryDraft(
            type=memory_type,
            content=content,
            context=context,
            importance=importance,
            emotional_weight=emotional_weight,
            tags=list(tags or []),
            related_user=related_user,
        )

    def remember(
        self,
        content: str,
        memory_type: Union[MemoryType, str] = MemoryType.FACT,
        importance: Any = 5,
        emotional_weight: Any = 0,
        context: Optional[str] = None,
        tags: Optional[List[str]] = None,
        related_user: Optional[str] = None,
    ) -> MemoryRecord:
        """Store a memory without an embedding."""
        draft = self._draft(content, memory_type, importance, emotional_weight, context, tags, related_user)
        return self.store.create(draft)

    async def remember_with_embedding(
        self,
        content: str,
        memory_type: Union[MemoryType, str] = MemoryType.FACT,
        importance: Any = 5,
        emotional_weight: Any = 0,
        context: Optional[str] = None,
        tags: Optional[List[str]] = None,
        related_user: Optional[str] = None,
    ) -> MemoryRecord:
        """Store a memory, embedding it with the current generator if one is set."""
        draft = self._draft(content, memory_type, importance, emotional_weight, context, tags, related_user)
        return await self.store.create_with_embedding(draft, self._embedding_generator)

    def search(self, query: str, limit: int = 5) -> List[MemoryRecord]:
        """Keyword search, falling back to important memories."""
        return keyword_chain(self.store).retrieve(query, limit)

    async def search_semantic(self, query: str, limit: int = 5) -> List[MemoryRecord]:
        """Embedding search, falling back to keyword search."""
        chain = semantic_chain(self.store, self.get_embedding_generator, self.semantic_threshold)
        return await chain.aretrieve(query, limit)

    def get(self, memory_id: str) -> Optional[MemoryRecord]:
        return self.store.read(memory_id)

    def update(self, memory_id: str, **changes) -> bool:
        return self.store.update(memory_id, **changes)

    def forget(self, memory_id: str) -> bool:
        return self.store.delete(memory_id)

    def query(self, **criteria) -> List[MemoryRecord]:
        return self.store.query_filtered(**criteria)

    def save_state(self, key: str, value: Any) -> None:
        self.store.save_blob(key, value)

    def load_state(self, key: str) -> Optional[Any]:
        return self.store.load_blob(key)

    def get_stats(self) -> Dict[str, Any]:
        """Totals, counts per type and average importance."""
        return self.store.statistics()

    def run_decay(
        self,
        max_age_days: int = maintenance.DEFAULT_DECAY_DAYS,
        max_importance: int = maintenance.DEFAULT_DECAY_MAX_IMPORTANCE,
    ) -> int:
        """Forget stale, unimportant memories. Returns how many were removed."""
        return self.store.run(lambda session: maintenance.decay(session, max_age_days, max_importance))

    def find_duplicates(self, threshold: Optional[float] = None) -> List[maintenance.DuplicatePair]:
        threshold = self.duplicate_threshold if threshold is None else threshold
        return self.store.run(lambda session: maintenance.find_duplicates(session, threshold))

    def deduplicate(self, threshold: Optional[float] = None) -> int:
        """Merge near-identical memories. Returns how many were removed."""
        threshold = self.duplicate_threshold if threshold is None else threshold
        return self.store.run(lambda session: maintenance.deduplicate(session, threshold))

    def close(self) -> None:
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
