"""Database models for the memory system."""
import sqlite3
from enum import Enum

from loguru import logger
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, create_engine, event, inspect, text
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

# SQLAlchemy base class
Base = declarative_base()


class MemoryType(str, Enum):
    """Types of memories Nexi can hold."""
    FACT = "fact"              # Learned information about the user or world
    PREFERENCE = "preference"  # "likes X", "dislikes Y"
    EVENT = "event"            # Something that happened
    MILESTONE = "milestone"    # Relationship milestone
    REFLECTION = "reflection"  # Nexi's own thoughts
    REQUEST = "request"        # User explicitly asked to remember something
    PATTERN = "pattern"        # Recurring theme noticed


# Never removed by decay
PROTECTED_TYPES = frozenset({MemoryType.MILESTONE.value, MemoryType.REQUEST.value})


class MemoryRow(Base):
    """Row in the memories table.

    ``tags`` and ``embedding`` hold JSON-encoded text; conversion to and
    from :class:`nexi.memory.records.MemoryRecord` lives in ``records.py``.
    """
    __tablename__ = "memories"

    id = Column(String(36), primary_key=True)
    type = Column(String(32), nullable=False, index=True)
    content = Column(Text, nullable=False)
    context = Column(Text, nullable=True)
    importance = Column(Integer, default=5, nullable=False, index=True)
    emotional_weight = Column(Integer, default=0, nullable=False)

    # Timestamps (naive UTC)
    created_at = Column(DateTime, nullable=False)
    last_accessed = Column(DateTime, nullable=False)
    access_count = Column(Integer, default=1, nullable=False)

    tags = Column(Text, default="[]", nullable=False)
    related_user = Column(String(128), nullable=True)
    embedding = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<MemoryRow(id={self.id}, type={self.type}, content='{self.content[:50]}...')>"


class StateRow(Base):
    """Opaque JSON state blob, keyed by a caller-defined name."""
    __tablename__ = "state"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<StateRow(key={self.key}, updated_at={self.updated_at})>"


def get_engine(db_url: str = "sqlite:///:memory:", **kwargs) -> Engine:
    """Get a SQLAlchemy engine with the specified configuration."""
    if db_url.startswith("sqlite"):
        kwargs.update({
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool
        })

    return create_engine(db_url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory for the given engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables and bring older databases up to date."""
    Base.metadata.create_all(bind=engine)
    migrate_schema(engine)


def migrate_schema(engine: Engine) -> None:
    """Add columns introduced after the first schema version.

    Databases written before semantic search existed have no ``embedding``
    column; it is added in place and left NULL for existing rows.
    """
    columns = {c["name"] for c in inspect(engine).get_columns(MemoryRow.__tablename__)}
    if "embedding" not in columns:
        with engine.begin() as conn:
            conn.execute(text("ALTER TABLE memories ADD COLUMN embedding TEXT"))
        logger.info("Migrated memories table: added embedding column")


# SQLite specific optimizations
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints and WAL journaling for SQLite connections."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()
