# storage.py
"""Key-value persistence for leads, projects and messages.

Every logical table ("google_maps_leads", "codeur_projects", "leads",
"messages") is stored in a single SQLAlchemy table of JSON records,
unique on (table_name, record_key). The key is the record's external
identifier, which makes it the dedup boundary of a run.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import config
from .logging_utils import get_logger
from .models import utcnow

GOOGLE_MAPS_LEADS = "google_maps_leads"
CODEUR_PROJECTS = "codeur_projects"
LEADS = "leads"
MESSAGES = "messages"


class StorageError(Exception):
    """Raised when a persistence operation fails."""

    pass


class Base(DeclarativeBase):
    """Base class for Lead Radar SQLAlchemy models."""

    pass


class StoredRecord(Base):
    """One JSON record of a logical table.

    Attributes:
        id: Surrogate primary key, increasing with insertion.
        table_name: Logical table the record belongs to.
        record_key: Value of the record's conflict key.
        data: The record itself.
        created_at: First insertion time.
        updated_at: Last upsert time.
    """

    __tablename__ = "records"
    __table_args__ = (
        UniqueConstraint("table_name", "record_key", name="uq_records_table_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    record_key: Mapped[str] = mapped_column(String(512), nullable=False)
    data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<StoredRecord(table={self.table_name!r}, key={self.record_key!r})>"


class LeadStore:
    """Upsert/read key-value store over SQLAlchemy.

    Example:
        >>> store = LeadStore("sqlite://")
        >>> store.upsert("codeur_projects", {"url": "https://..."}, "url")
        >>> store.exists("codeur_projects", "https://...")
        True
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        """Initialize the store and create its table.

        Args:
            database_url: SQLAlchemy URL. Defaults to config.DATABASE_URL.
            engine: Preconfigured engine, used instead of the URL.
        """
        self.logger = get_logger(__name__)

        if engine is None:
            url = database_url or config.DATABASE_URL
            kwargs: Dict[str, Any] = {}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # Share the single in-memory database across sessions
                kwargs = {
                    "connect_args": {"check_same_thread": False},
                    "poolclass": StaticPool,
                }
            engine = create_engine(url, **kwargs)

        self.engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)
        Base.metadata.create_all(engine)

        self.logger.debug(
            "LeadStore initialized", extra={"dialect": engine.dialect.name}
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session committed on success, rolled back and wrapped on error.

        Raises:
            StorageError: On any database error.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Database operation failed: {e}") from e
        finally:
            session.close()

    def _find(self, session: Session, table: str, key: str) -> Optional[StoredRecord]:
        return session.scalar(
            select(StoredRecord).where(
                StoredRecord.table_name == table,
                StoredRecord.record_key == key,
            )
        )

    def exists(self, table: str, key: Any) -> bool:
        """Check whether a record with this key was already persisted."""
        with self.session() as session:
            return self._find(session, table, str(key)) is not None

    def get(self, table: str, key: Any) -> Optional[Dict[str, Any]]:
        """Return the record stored under a key, if any."""
        with self.session() as session:
            record = self._find(session, table, str(key))
            return dict(record.data) if record is not None else None

    def upsert(
        self, table: str, record: Dict[str, Any], conflict_key: str
    ) -> Dict[str, Any]:
        """Insert a record or replace the one sharing its conflict key.

        Raises:
            StorageError: If the conflict key is missing or the write fails.
        """
        key = record.get(conflict_key)
        if key is None or key == "":
            raise StorageError(f"Record has no value for conflict key {conflict_key!r}")

        with self.session() as session:
            existing = self._find(session, table, str(key))
            if existing is None:
                session.add(
                    StoredRecord(table_name=table, record_key=str(key), data=dict(record))
                )
            else:
                existing.data = dict(record)

        self.logger.debug("Record upserted", extra={"table": table, "key": str(key)})
        return dict(record)

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record under a generated ``id`` and return it."""
        stored = {"id": str(uuid.uuid4()), **record}
        return self.upsert(table, stored, "id")

    def query(self, table: str, **filters: Any) -> List[Dict[str, Any]]:
        """Return the records of a table whose fields equal the filters.

        Records come back in insertion order.
        """
        with self.session() as session:
            rows = session.scalars(
                select(StoredRecord)
                .where(StoredRecord.table_name == table)
                .order_by(StoredRecord.id)
            ).all()
            records = [dict(row.data) for row in rows]

        return [
            record
            for record in records
            if all(record.get(name) == value for name, value in filters.items())
        ]

    def close(self) -> None:
        """Dispose of the engine's connections."""
        self.engine.dispose()
