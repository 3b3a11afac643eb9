"""Persistent record store for Nexi's memories.

Handles durable CRUD for memory records and state blobs on top of SQLite
through SQLAlchemy. All access goes through one lock per store instance so
that touch updates (read-then-increment) stay atomic.
"""
import json
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from loguru import logger
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .embedding import EmbeddingFn, embed_or_none
from .models import MemoryRow, MemoryType, StateRow, create_session_factory, get_engine, init_db
from .records import (
    MemoryDraft,
    MemoryRecord,
    clamp_emotional_weight,
    clamp_importance,
    coerce_memory_type,
    decode_tags,
    encode_tags,
    record_to_row,
    row_to_record,
    utcnow,
)


class StoreClosedError(RuntimeError):
    """Raised when a closed store is used."""


class MemoryStore:
    """SQLite-backed store of memory records and state blobs."""

    DB_FILENAME = "nexi_memory.db"

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        db_url: Optional[str] = None,
    ):
        """Open (and create if needed) the memory database.

        Args:
            data_dir: Directory holding ``nexi_memory.db``; created if missing
            db_url: SQLAlchemy database URL, overrides ``data_dir``
        """
        if db_url is None:
            if data_dir is None:
                raise ValueError("Either data_dir or db_url is required")
            data_path = Path(data_dir)
            data_path.mkdir(parents=True, exist_ok=True)
            db_url = f"sqlite:///{data_path / self.DB_FILENAME}"

        self.db_url = db_url
        self.engine = get_engine(db_url)
        self.Session = create_session_factory(self.engine)
        init_db(self.engine)

        self._lock = threading.RLock()
        self._closed = False

        logger.info(f"Opened memory store at {db_url}")

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError("Memory store is closed")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run a unit of work under the store lock.

        Commits on success. Storage errors are logged, rolled back and
        re-raised to the caller.
        """
        with self._lock:
            self._ensure_open()
            session = self.Session()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Memory store transaction failed: {e}")
                raise
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @staticmethod
    def _touch_rows(rows: Iterable[MemoryRow], now: datetime) -> None:
        for row in rows:
            row.access_count = (row.access_count or 0) + 1
            row.last_accessed = max(now, row.created_at)

    @staticmethod
    def _build_record(draft: MemoryDraft, embedding: Optional[List[float]] = None) -> MemoryRecord:
        if not isinstance(draft.content, str) or not draft.content.strip():
            raise ValueError("Memory content must be a non-empty string")

        now = utcnow()
        return MemoryRecord(
            id=str(uuid.uuid4()),
            type=coerce_memory_type(draft.type),
            content=draft.content,
            context=draft.context,
            importance=clamp_importance(draft.importance),
            emotional_weight=clamp_emotional_weight(draft.emotional_weight),
            created_at=now,
            last_accessed=now,
            access_count=1,
            tags=list(draft.tags or []),
            related_user=draft.related_user,
            embedding=embedding,
        )

    def create(self, draft: MemoryDraft, embedding: Optional[List[float]] = None) -> MemoryRecord:
        """Store a new memory.

        Args:
            draft: Fields supplied by the caller
            embedding: Optional precomputed embedding vector

        Returns:
            The stored record with generated id and timestamps
        """
        record = self._build_record(draft, embedding)

        with self.transaction() as session:
            session.add(record_to_row(record))

        logger.debug(
            f"Stored memory {record.id} ({record.type.value}, importance {record.importance}"
            f"{', with embedding' if record.embedding else ''})"
        )
        return record

    async def create_with_embedding(
        self,
        draft: MemoryDraft,
        embedding_fn: Optional[EmbeddingFn],
    ) -> MemoryRecord:
        """Store a new memory, embedding its content first.

        A failing or missing embedding function never blocks the write; the
        record is stored without an embedding instead.
        """
        self._ensure_open()
        # Validate before spending a network round trip
        self._build_record(draft)

        embedding = await embed_or_none(embedding_fn, draft.content)
        return self.create(draft, embedding=embedding)

    def read(self, memory_id: str) -> Optional[MemoryRecord]:
        """Get a memory by ID, counting the read as an access.

        The returned record holds the values from before this access.
        """
        with self.transaction() as session:
            row = session.get(MemoryRow, memory_id)
            if row is None:
                return None

            record = row_to_record(row)
            self._touch_rows([row], utcnow())
            return record

    def update(
        self,
        memory_id: str,
        content: Optional[str] = None,
        context: Optional[str] = None,
        importance: Any = None,
        emotional_weight: Any = None,
        tags: Optional[List[str]] = None,
    ) -> bool:
        """Apply the provided fields to an existing memory.

        Returns:
            False when nothing was provided or the memory does not exist
        """
        changes: Dict[str, Any] = {}
        if content is not None:
            if not isinstance(content, str) or not content.strip():
                raise ValueError("Memory content must be a non-empty string")
            changes["content"] = content
        if context is not None:
            changes["context"] = context
        if importance is not None:
            changes["importance"] = clamp_importance(importance)
        if emotional_weight is not None:
            changes["emotional_weight"] = clamp_emotional_weight(emotional_weight)
        if tags is not None:
            changes["tags"] = encode_tags(tags)

        if not changes:
            return False

        with self.transaction() as session:
            row = session.get(MemoryRow, memory_id)
            if row is None:
                return False
            for name, value in changes.items():
                setattr(row, name, value)

        logger.debug(f"Updated memory {memory_id}: {sorted(changes)}")
        return True

    def delete(self, memory_id: str) -> bool:
        """Delete a memory by ID.

        Returns:
            True if the memory existed
        """
        with self.transaction() as session:
            deleted = session.query(MemoryRow).filter(MemoryRow.id == memory_id).delete(
                synchronize_session=False
            )

        if deleted:
            logger.info(f"Deleted memory {memory_id}")
        return deleted > 0

    def query_filtered(
        self,
        memory_type: Optional[Union[MemoryType, str]] = None,
        min_importance: Optional[int] = None,
        search_text: Optional[str] = None,
        tags: Optional[List[str]] = None,
        limit: Optional[int] = None,
    ) -> List[MemoryRecord]:
        """Query memories matching all of the given criteria.

        Args:
            memory_type: Only memories of this type
            min_importance: Only memories at least this important
            search_text: Case-insensitive substring of content or context
            tags: Memories carrying any of these tags
            limit: Maximum number of results (no cap when omitted)

        Returns:
            Records ordered by importance, then most recently accessed.
            Every returned memory is counted as accessed.
        """
        with self.transaction() as session:
            query = session.query(MemoryRow)

            if memory_type is not None:
                query = query.filter(MemoryRow.type == coerce_memory_type(memory_type).value)

            if min_importance is not None:
                query = query.filter(MemoryRow.importance >= min_importance)

            if search_text:
                needle = search_text
                query = query.filter(or_(
                    MemoryRow.content.icontains(needle, autoescape=True),
                    MemoryRow.context.icontains(needle, autoescape=True),
                ))

            if tags:
                # Coarse match on the encoded list, confirmed after decoding
                query = query.filter(or_(*[
                    MemoryRow.tags.contains(json.dumps(str(tag)), autoescape=True)
                    for tag in tags
                ]))

            query = query.order_by(
                MemoryRow.importance.desc(),
                MemoryRow.last_accessed.desc(),
                MemoryRow.created_at.asc(),
            )

            if limit is not None and not tags:
                query = query.limit(limit)

            rows = query.all()

            if tags:
                wanted = {str(tag) for tag in tags}
                rows = [row for row in rows if wanted.intersection(decode_tags(row.tags))]
                if limit is not None:
                    rows = rows[:max(0, limit)]

            records = [row_to_record(row) for row in rows]
            self._touch_rows(rows, utcnow())
            return records

    def search_keywords(self, tokens: List[str], limit: int) -> List[MemoryRecord]:
        """Rank memories containing any token by ``importance * 2 + access_count``.

        Tokens are expected to be lowercase already. Returned memories are
        counted as accessed.
        """
        if not tokens:
            return []

        conditions = []
        for token in tokens:
            conditions.append(MemoryRow.content.icontains(token, autoescape=True))
            conditions.append(MemoryRow.context.icontains(token, autoescape=True))

        relevance = MemoryRow.importance * 2 + MemoryRow.access_count

        with self.transaction() as session:
            rows = (
                session.query(MemoryRow)
                .filter(or_(*conditions))
                .order_by(
                    relevance.desc(),
                    MemoryRow.last_accessed.desc(),
                    MemoryRow.created_at.asc(),
                )
                .limit(limit)
                .all()
            )

            records = [row_to_record(row) for row in rows]
            self._touch_rows(rows, utcnow())
            return records

    def embedded_records(self) -> List[MemoryRecord]:
        """All memories that carry an embedding. Not counted as an access."""
        with self.transaction() as session:
            rows = session.query(MemoryRow).filter(MemoryRow.embedding.isnot(None)).all()
            return [row_to_record(row) for row in rows]

    def touch(self, memory_ids: List[str]) -> None:
        """Count an access for each of the given memories."""
        if not memory_ids:
            return

        with self.transaction() as session:
            rows = session.query(MemoryRow).filter(MemoryRow.id.in_(memory_ids)).all()
            self._touch_rows(rows, utcnow())

    def run(self, operation: Callable[[Session], Any]) -> Any:
        """Run ``operation(session)`` as one locked transaction."""
        with self.transaction() as session:
            return operation(session)

    def save_blob(self, key: str, value: Any) -> None:
        """Save a JSON-serializable value under ``key``, replacing any previous one."""
        encoded = json.dumps(value)

        with self.transaction() as session:
            session.merge(StateRow(key=key, value=encoded, updated_at=utcnow()))

        logger.debug(f"Saved state blob '{key}'")

    def load_blob(self, key: str) -> Optional[Any]:
        """Load the value saved under ``key``, or None if there is none."""
        with self.transaction() as session:
            row = session.get(StateRow, key)
            if row is None:
                return None
            return json.loads(row.value)

    def statistics(self) -> Dict[str, Any]:
        """Get aggregate statistics over all memories."""
        with self.transaction() as session:
            total = session.query(func.count(MemoryRow.id)).scalar() or 0

            by_type = {
                memory_type: count
                for memory_type, count in session.query(MemoryRow.type, func.count(MemoryRow.id))
                .group_by(MemoryRow.type)
                .all()
            }

            avg_importance = session.query(func.avg(MemoryRow.importance)).scalar()

            with_embedding = (
                session.query(func.count(MemoryRow.id))
                .filter(MemoryRow.embedding.isnot(None))
                .scalar()
                or 0
            )

        return {
            "total": total,
            "by_type": by_type,
            "average_importance": float(avg_importance) if avg_importance is not None else 0.0,
            "with_embedding": with_embedding,
        }

    def close(self) -> None:
        """Release the database. Any later call raises :class:`StoreClosedError`."""
        with self._lock:
            if self._closed:
                return
            self.engine.dispose()
            self._closed = True
        logger.info(f"Closed memory store at {self.db_url}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
