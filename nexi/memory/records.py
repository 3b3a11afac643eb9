"""Typed memory records and the row <-> record boundary.

Everything above the store works with :class:`MemoryRecord`; only this
module knows that tags and embeddings are JSON text in the database.
"""
import json
import math
import numbers
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from .models import MemoryRow, MemoryType

IMPORTANCE_RANGE = (1, 10)
EMOTIONAL_WEIGHT_RANGE = (-5, 5)
DEFAULT_IMPORTANCE = 5
DEFAULT_EMOTIONAL_WEIGHT = 0


def utcnow() -> datetime:
    """Current time as naive UTC, the form SQLite round-trips."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _clamp_round(value: Any, low: int, high: int, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return default
    if value != value:
        return default
    # Clamp before float() so huge ints don't overflow
    if value <= low:
        return low
    if value >= high:
        return high
    # Half rounds up, so 2.5 -> 3 and -2.5 -> -2
    return int(math.floor(float(value) + 0.5))


def clamp_importance(value: Any) -> int:
    """Clamp to 1..10 and round; anything non-numeric becomes 5."""
    return _clamp_round(value, *IMPORTANCE_RANGE, DEFAULT_IMPORTANCE)


def clamp_emotional_weight(value: Any) -> int:
    """Clamp to -5..5 and round; anything non-numeric becomes 0."""
    return _clamp_round(value, *EMOTIONAL_WEIGHT_RANGE, DEFAULT_EMOTIONAL_WEIGHT)


def coerce_memory_type(memory_type: Union[MemoryType, str]) -> MemoryType:
    """Accept an enum member or its string value.

    Raises:
        ValueError: If the string is not a known memory type.
    """
    if isinstance(memory_type, MemoryType):
        return memory_type
    return MemoryType(str(memory_type).strip().lower())


@dataclass
class MemoryDraft:
    """Caller-supplied fields of a memory that does not exist yet."""
    type: Union[MemoryType, str]
    content: str
    context: Optional[str] = None
    importance: Any = DEFAULT_IMPORTANCE
    emotional_weight: Any = DEFAULT_EMOTIONAL_WEIGHT
    tags: List[str] = field(default_factory=list)
    related_user: Optional[str] = None


@dataclass
class MemoryRecord:
    """A durable fact the agent has learned."""
    id: str
    type: MemoryType
    content: str
    importance: int
    emotional_weight: int
    created_at: datetime
    last_accessed: datetime
    access_count: int = 1
    context: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    related_user: Optional[str] = None
    embedding: Optional[List[float]] = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def to_dict(self, include_embedding: bool = False) -> Dict[str, Any]:
        """Convert the record to a JSON-friendly dictionary."""
        result = {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "context": self.context,
            "importance": self.importance,
            "emotional_weight": self.emotional_weight,
            "created_at": self.created_at.isoformat(),
            "last_accessed": self.last_accessed.isoformat(),
            "access_count": self.access_count,
            "tags": list(self.tags),
            "related_user": self.related_user,
        }
        if include_embedding:
            result["embedding"] = self.embedding
        return result


def encode_tags(tags: Optional[List[str]]) -> str:
    return json.dumps([str(t) for t in (tags or [])])


def decode_tags(raw: Optional[str]) -> List[str]:
    return json.loads(raw) if raw else []


def encode_embedding(embedding: Optional[List[float]]) -> Optional[str]:
    if not embedding:
        return None
    return json.dumps([float(x) for x in embedding])


def decode_embedding(raw: Optional[str]) -> Optional[List[float]]:
    if not raw:
        return None
    values = json.loads(raw)
    return values or None


def row_to_record(row: MemoryRow) -> MemoryRecord:
    """Map a database row to a :class:`MemoryRecord` snapshot."""
    return MemoryRecord(
        id=row.id,
        type=MemoryType(row.type),
        content=row.content,
        context=row.context,
        importance=row.importance,
        emotional_weight=row.emotional_weight,
        created_at=row.created_at,
        last_accessed=row.last_accessed,
        access_count=row.access_count,
        tags=decode_tags(row.tags),
        related_user=row.related_user,
        embedding=decode_embedding(row.embedding),
    )


def record_to_row(record: MemoryRecord) -> MemoryRow:
    """Inverse of :func:`row_to_record`."""
    return MemoryRow(
        id=record.id,
        type=record.type.value,
        content=record.content,
        context=record.context,
        importance=record.importance,
        emotional_weight=record.emotional_weight,
        created_at=record.created_at,
        last_accessed=record.last_accessed,
        access_count=record.access_count,
        tags=encode_tags(record.tags),
        related_user=record.related_user,
        embedding=encode_embedding(record.embedding),
    )
