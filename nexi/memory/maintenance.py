"""Maintenance policies for the memory database: decay and deduplication.

These functions work on an open SQLAlchemy session and never count as an
access to the memories they look at.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import List

from loguru import logger
from sqlalchemy.orm import Session

from .models import PROTECTED_TYPES, MemoryRow
from .records import decode_tags, encode_tags, utcnow
from .similarity import jaccard_similarity, word_set

DEFAULT_DECAY_DAYS = 30
DEFAULT_DECAY_MAX_IMPORTANCE = 3
DEFAULT_DUPLICATE_THRESHOLD = 0.8


@dataclass
class DuplicatePair:
    """Two memories whose wording overlaps enough to count as duplicates.

    ``original`` was created before ``duplicate``.
    """
    original_id: str
    duplicate_id: str
    similarity: float


def decay(
    session: Session,
    max_age_days: int = DEFAULT_DECAY_DAYS,
    max_importance: int = DEFAULT_DECAY_MAX_IMPORTANCE,
) -> int:
    """Forget stale, unimportant memories.

    Args:
        session: Database session
        max_age_days: Memories not accessed for longer than this are stale
        max_importance: Only memories at most this important are removed

    Returns:
        Number of memories deleted. Milestones and explicit requests are
        never removed.
    """
    cutoff = utcnow() - timedelta(days=max_age_days)

    deleted = session.query(MemoryRow).filter(
        MemoryRow.last_accessed < cutoff,
        MemoryRow.importance <= max_importance,
        MemoryRow.type.notin_(sorted(PROTECTED_TYPES)),
    ).delete(synchronize_session=False)

    if deleted:
        logger.info(f"Decayed {deleted} memories older than {max_age_days} days")
    return deleted


def _rows_by_age(session: Session) -> List[MemoryRow]:
    return session.query(MemoryRow).order_by(MemoryRow.created_at.asc(), MemoryRow.id.asc()).all()


def _pairs(rows: List[MemoryRow], threshold: float) -> List[DuplicatePair]:
    words = [word_set(row.content) for row in rows]
    pairs = []
    for i in range(len(rows)):
        for j in range(i + 1, len(rows)):
            similarity = jaccard_similarity(words[i], words[j])
            if similarity >= threshold:
                pairs.append(DuplicatePair(rows[i].id, rows[j].id, similarity))
    return pairs


def find_duplicates(session: Session, threshold: float = DEFAULT_DUPLICATE_THRESHOLD) -> List[DuplicatePair]:
    """Find every pair of memories with word-set similarity of at least ``threshold``.

    Compares all pairs, oldest first; fine for a single user's few thousand
    memories.
    """
    return _pairs(_rows_by_age(session), threshold)


def merge_tags(survivor: List[str], other: List[str]) -> List[str]:
    """Union of two tag lists, survivor's order first, no repeats."""
    merged: List[str] = []
    for tag in list(survivor) + list(other):
        if tag not in merged:
            merged.append(tag)
    return merged


def _loser(original: MemoryRow, duplicate: MemoryRow) -> MemoryRow:
    # Equal importance: the later one goes
    if original.importance < duplicate.importance:
        return original
    return duplicate


def deduplicate(session: Session, threshold: float = DEFAULT_DUPLICATE_THRESHOLD) -> int:
    """Merge duplicate memories.

    For each duplicate pair the less important memory is deleted (the newer
    one on a tie) and its tags are folded into the survivor.

    Returns:
        Number of memories deleted
    """
    rows = _rows_by_age(session)
    by_id = {row.id: row for row in rows}
    removed = set()

    for pair in _pairs(rows, threshold):
        if pair.original_id in removed or pair.duplicate_id in removed:
            continue

        original = by_id[pair.original_id]
        duplicate = by_id[pair.duplicate_id]
        loser = _loser(original, duplicate)
        survivor = duplicate if loser is original else original

        survivor.tags = encode_tags(merge_tags(decode_tags(survivor.tags), decode_tags(loser.tags)))
        session.delete(loser)
        removed.add(loser.id)

        logger.debug(
            f"Merged duplicate memory {loser.id} into {survivor.id} "
            f"(similarity {pair.similarity:.2f})"
        )

    if removed:
        session.flush()
        logger.info(f"Removed {len(removed)} duplicate memories")
    return len(removed)
