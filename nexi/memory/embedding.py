"""Embedding providers and the guard that makes them optional."""
import asyncio
import inspect
import math
import numbers
from typing import Any, Awaitable, Callable, List, Optional, Union

import numpy as np
from loguru import logger

# Try to import sentence_transformers, but make it optional
try:
    from sentence_transformers import SentenceTransformer
    SENTENCE_TRANSFORMERS_AVAILABLE = True
except ImportError:
    SENTENCE_TRANSFORMERS_AVAILABLE = False

# text -> vector, either a coroutine function or a plain function
EmbeddingFn = Callable[[str], Union[Awaitable[Any], Any]]


def _as_vector(raw: Any) -> Optional[List[float]]:
    if isinstance(raw, np.ndarray):
        raw = raw.tolist()
    if not isinstance(raw, (list, tuple)) or not raw:
        return None
    vector = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            return None
        value = float(value)
        if not math.isfinite(value):
            return None
        vector.append(value)
    return vector


async def embed_or_none(embedding_fn: Optional[EmbeddingFn], text: str) -> Optional[List[float]]:
    """Embed ``text``, returning None instead of raising.

    Args:
        embedding_fn: The current embedding generator, or None if unset
        text: Text to embed

    Returns:
        The vector as a list of floats, or None if no generator is set, it
        failed, or it produced something that is not a numeric vector
    """
    if embedding_fn is None:
        return None

    try:
        result = embedding_fn(text)
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        logger.warning(f"Embedding unavailable, continuing without it: {e}")
        return None

    vector = _as_vector(result)
    if vector is None:
        logger.warning("Embedding generator returned an unusable vector, ignoring it")
    return vector


class EmbeddingModel:
    """Local embedding provider backed by sentence-transformers."""

    # Default model configuration
    DEFAULT_MODEL_NAME = "all-MiniLM-L6-v2"  # Small but effective model

    def __init__(
        self,
        model_name: Optional[str] = None,
        cache_dir: Optional[str] = None,
        device: Optional[str] = None,
    ):
        """Initialize the embedding model.

        Args:
            model_name: Name of the sentence-transformers model
            cache_dir: Directory to cache the model
            device: Device to run the model on ('cpu', 'cuda', etc.)
        """
        if not SENTENCE_TRANSFORMERS_AVAILABLE:
            raise ImportError(
                "sentence-transformers is required for local embeddings. "
                "Install with: pip install 'nexi[local]'"
            )

        self.model_name = model_name or self.DEFAULT_MODEL_NAME
        self.cache_dir = cache_dir
        self.device = device or "cpu"

        logger.info(f"Loading embedding model: {self.model_name}")
        self._model = SentenceTransformer(
            self.model_name,
            cache_folder=self.cache_dir,
            device=self.device
        )

    def encode(self, text: str) -> List[float]:
        """Encode a single text into a normalized embedding."""
        embedding = self._model.encode(
            text,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return embedding.tolist()

    async def embed(self, text: str) -> List[float]:
        """Embed without blocking the event loop."""
        return await asyncio.to_thread(self.encode, text)
