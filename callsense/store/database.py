"""
callsense/store/database.py
============================
Database Engine — CallSense

Responsibility:
    - Create the SQLAlchemy engine from DATABASE_URL
    - Define the declarative base and the single ``documents`` table
      that backs every collection (users, callReports, settings, ...)

Each row is one JSON document addressed by (collection, id), so the
application keeps a document-database shape on top of any SQL backend.

This module does NOT:
    - Implement queries (see document_store.py)
    - Know about domain records (see callsense.models)
"""

import logging
from datetime import datetime

from sqlalchemy import JSON, DateTime, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from callsense import config
from callsense.models import utcnow

logger = logging.getLogger("callsense.store.database")


class Base(DeclarativeBase):
    pass


class Document(Base):
    """One JSON document in a named collection."""

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"Document({self.collection}/{self.id})"


def create_db_engine(url: str | None = None) -> Engine:
    """
    Create an engine and make sure the schema exists.

    In-memory SQLite is shared across threads through a single static
    connection so that request handlers and worker threads see the same data.
    """
    url = url or config.DATABASE_URL
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)
    Base.metadata.create_all(engine)
    logger.info("Document store ready (%s).", engine.url.render_as_string(hide_password=True))
    return engine
