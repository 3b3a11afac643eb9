"""
Memory System.

Persistent storage and retrieval of Nexi's memories using SQLite, with
optional embedding-based search.
"""

from .manager import MemoryManager
from .models import MemoryType
from .records import MemoryDraft, MemoryRecord
from .store import MemoryStore, StoreClosedError
from .embedding import EmbeddingModel

__all__ = [
    'MemoryManager',
    'MemoryStore',
    'StoreClosedError',
    'MemoryRecord',
    'MemoryDraft',
    'MemoryType',
    'EmbeddingModel',
]
