"""
Relational store access.

A single Database object owns the SQLAlchemy engine (and therefore the
connection pool) for the lifetime of the process. The engine is created on
first use and disposed by close() at shutdown.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from unimark_admin.config.settings import Settings
from unimark_admin.database.base import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or url.startswith("sqlite:///:memory:")


class Database:
    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_timeout: int = 10,
        echo: bool = False,
    ):
        self.url = url
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_timeout = pool_timeout
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            echo=settings.db_echo,
        )

    def _ensure_engine(self) -> Engine:
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    self._engine = self._create_engine()
                    self._session_factory = sessionmaker(
                        bind=self._engine, autoflush=False, expire_on_commit=False
                    )
        return self._engine

    @property
    def engine(self) -> Engine:
        return self._ensure_engine()

    @property
    def session_factory(self) -> sessionmaker:
        self._ensure_engine()
        return self._session_factory

    def _create_engine(self) -> Engine:
        safe_url = make_url(self.url).render_as_string(hide_password=True)
        logger.info("Creating database engine for %s", safe_url)

        if self.url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if _is_memory_sqlite(self.url):
                kwargs["poolclass"] = StaticPool
            engine = create_engine(self.url, echo=self.echo, **kwargs)

            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            return engine

        return create_engine(
            self.url,
            echo=self.echo,
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
            pool_timeout=self.pool_timeout,
            pool_pre_ping=True,
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only unit of work; the connection returns to the pool on exit."""
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """BEGIN/COMMIT around the block, ROLLBACK on any exception."""
        session = self.session_factory()
        try:
            session.begin()
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_schema(self) -> None:
        # Model modules register their tables on Base.metadata when imported
        from unimark_admin.modules.roles import models as _roles  # noqa: F401
        from unimark_admin.modules.profiles import models as _profiles  # noqa: F401
        from unimark_admin.modules.permission_sets import models as _permission_sets  # noqa: F401
        from unimark_admin.modules.users import models as _users  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema ensured")

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("Database ping failed")
            return False

    def close(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
                logger.info("Database engine disposed")
            self._engine = None
            self._session_factory = None
