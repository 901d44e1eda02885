"""Relational photo index – one row per photo stored in the bucket."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from photo_sync.errors import CommitError

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "migratedphotos"


def normalize_url(database_url: str) -> str:
    """SQLAlchemy only accepts the ``postgresql://`` scheme."""
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://"):]
    return database_url


def photo_table(metadata: MetaData, name: str = DEFAULT_TABLE) -> Table:
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("creator", String(255)),
        Column("address", Text),
        Column("timestamp", DateTime),
        Column("r2_key", Text, nullable=False),
        Column("created_at", DateTime(timezone=True)),
        Column("google_file_id", String(255)),
        Column("customer", String(255)),
        Column("project", String(255)),
        Column("job", String(255)),
        Column("category", String(255)),
        Column("filename", String(512), nullable=False, unique=True),
        Column("cloudflare_link", Text, nullable=False),
        Column("lat1", Float),
        Column("lon1", Float),
        Column("googlejobfolderid", String(768)),
    )


class PhotoIndex:
    """Keyed lookups and transactional batch inserts against the photo table."""

    def __init__(
        self,
        database_url: str | None = None,
        table_name: str = DEFAULT_TABLE,
        engine: Engine | None = None,
    ):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_engine(normalize_url(database_url), pool_pre_ping=True)
        self._engine = engine
        self._metadata = MetaData()
        self.table = photo_table(self._metadata, table_name)

    def create_schema(self) -> None:
        """Create the photo table if it does not exist yet."""
        self._metadata.create_all(self._engine, checkfirst=True)
        logger.info("Photo index table ready: %s", self.table.name)

    def exists_by_filename(self, filename: str) -> bool:
        query = select(self.table.c.id).where(self.table.c.filename == filename).limit(1)
        with self._engine.connect() as conn:
            return conn.execute(query).first() is not None

    def insert_batch(self, job: str, rows: Sequence[dict]) -> int:
        """Insert *rows* in one transaction: all of them land or none does."""
        created_at = datetime.now(timezone.utc)
        try:
            with self._engine.begin() as conn:
                for row in rows:
                    conn.execute(
                        self.table.insert().values(
                            creator=None, address=None, created_at=created_at, **row
                        )
                    )
        except SQLAlchemyError as exc:
            raise CommitError(job, str(exc.__cause__ or exc)) from exc
        return len(rows)

    def count(self) -> int:
        with self._engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(self.table)).scalar_one()

    def filenames(self) -> set[str]:
        with self._engine.connect() as conn:
            return set(conn.execute(select(self.table.c.filename)).scalars())

    def close(self) -> None:
        self._engine.dispose()

    def __enter__(self) -> PhotoIndex:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
