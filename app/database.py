"""Engine, session factory and schema upkeep for the catalog database."""

from __future__ import annotations

from sqlalchemy import MetaData, event, inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


_MEDIA_FILE_PROBE_COLUMNS = (
    ("duration", "INTEGER"),
    ("original_resolution", "VARCHAR(32)"),
)


class Base(DeclarativeBase):
    """Declarative base shared by every catalog table."""

    metadata = MetaData()


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the async engine and the session factory handed to the catalog store."""

    def __init__(self, database_url: str):
        self._engine: AsyncEngine = create_async_engine(database_url, future=True)
        if self._engine.dialect.name == "sqlite":
            # Cascading deletes of seasons, episodes and progress rely on it.
            event.listen(
                self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys
            )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_all(self) -> None:
        """Create missing tables and bring older catalogs up to date."""

        from . import db_models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
            await connection.run_sync(self._apply_schema_migrations)

    @staticmethod
    def _apply_schema_migrations(sync_connection) -> None:
        """Add probe columns to media_files tables created by older releases."""

        inspector = inspect(sync_connection)
        if "media_files" not in inspector.get_table_names():
            return

        present = {column["name"] for column in inspector.get_columns("media_files")}
        # NULL in a backfilled column means the file was never probed.
        for name, column_type in _MEDIA_FILE_PROBE_COLUMNS:
            if name not in present:
                sync_connection.execute(
                    text(f"ALTER TABLE media_files ADD COLUMN {name} {column_type}")
                )

    async def dispose(self) -> None:
        """Close every pooled connection."""

        await self._engine.dispose()
