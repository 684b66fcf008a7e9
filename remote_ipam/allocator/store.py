"""SQLAlchemy-backed reservation store shared by all scopes of one server."""

from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import DateTime, Engine, Integer, String, Text, create_engine, event, func, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from remote_ipam.errors import ConfigError

STORE_FILENAME = "allocations.db"


class Base(DeclarativeBase):
    pass


class IpReservation(Base):
    __tablename__ = "ip_reservation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    container_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class AllocationStore:
    """Serializes reservation transactions behind a process-wide lock."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )
        self._lock = threading.Lock()
        Base.metadata.create_all(engine)

    @classmethod
    def from_data_dir(cls, data_dir: str | Path) -> AllocationStore:
        directory = Path(data_dir)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(f"failed to create data directory {str(directory)!r}: {exc}") from exc
        return cls(create_store_engine(f"sqlite+pysqlite:///{directory / STORE_FILENAME}"))

    @contextmanager
    def transaction(self) -> Generator[Session]:
        with self._lock:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def reserved_addresses(self, session: Session) -> set[str]:
        return set(session.execute(select(IpReservation.address)).scalars())

    def addresses_for_key(self, session: Session, container_key: str) -> list[str]:
        statement = select(IpReservation.address).where(
            IpReservation.container_key == container_key
        )
        return list(session.execute(statement).scalars())

    def count_reservations(self) -> int:
        with self.transaction() as session:
            return int(session.execute(select(func.count(IpReservation.id))).scalar_one())

    def close(self) -> None:
        self._engine.dispose()


def create_store_engine(database_url: str) -> Engine:
    engine = create_engine(database_url, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine
