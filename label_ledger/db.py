"""
Ledger Store: engine, session factory and the transaction boundary.

Every mutating ledger operation runs inside ``LedgerStore.transaction()``.
Atomicity comes from the database, not from in-process locks. On SQLite
each transaction is opened with ``BEGIN IMMEDIATE`` so the write lock is
taken up front and concurrent writers queue on the busy timeout instead of
failing mid-transaction.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings
from .schema import Base

logger = logging.getLogger(__name__)


class LedgerStore:
    def __init__(self, url: str, busy_timeout: float = 30.0, wal: bool = True):
        self.url = make_url(url)
        self._busy_timeout = busy_timeout
        self._wal = wal
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self.open()

    @classmethod
    def in_memory(cls) -> "LedgerStore":
        return cls("sqlite://")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerStore":
        return cls(
            settings.DATABASE_URL,
            busy_timeout=settings.SQLITE_BUSY_TIMEOUT_SEC,
            wal=settings.SQLITE_WAL,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and self.url.database in (None, "", ":memory:")

    @property
    def database_path(self) -> Optional[Path]:
        if not self.is_sqlite or self.is_memory:
            return None
        return Path(self.url.database)

    def open(self) -> None:
        if self.is_memory:
            # One connection shared by every session, otherwise each
            # connection would see its own empty database.
            engine = create_engine(
                self.url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        elif self.is_sqlite:
            engine = create_engine(
                self.url,
                connect_args={"timeout": self._busy_timeout, "check_same_thread": False},
            )
        else:
            engine = create_engine(self.url, pool_pre_ping=True)

        if self.is_sqlite:
            self._install_sqlite_hooks(engine)

        Base.metadata.create_all(engine)
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
        logger.info("Ledger store opened at %s", self.url.render_as_string(hide_password=True))

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self._session_factory = None

    def _install_sqlite_hooks(self, engine: Engine) -> None:
        use_wal = self._wal and not self.is_memory

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            # pysqlite's own transaction handling is switched off so the
            # "begin" hook below decides how transactions start.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if use_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session whose work commits on exit or rolls back on error."""
        if self._session_factory is None:
            raise RuntimeError("Ledger store is closed")
        try:
            with self._session_factory.begin() as session:
                yield session
        except Exception:
            logger.debug("Ledger transaction rolled back", exc_info=True)
            raise

    def checkpoint(self) -> None:
        """Flush the WAL into the main database file."""
        if self.database_path is None or self.engine is None:
            return
        raw = self.engine.raw_connection()
        try:
            cursor = raw.cursor()
            cursor.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            cursor.close()
        finally:
            raw.close()
        logger.info("Checkpointed %s", self.database_path)
