"""
callsense/store/document_store.py
==================================
Document Store — CallSense

Responsibility:
    - Document CRUD over the ``documents`` table: set (optionally merged),
      get, update, delete
    - Simple queries: equality filters, ordering by one field, limit

Documents are plain JSON dicts. The document id is not part of the body;
``query`` returns ``(id, body)`` pairs.

This module does NOT:
    - Map documents to domain records (see repository.py)
    - Enforce access rules
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from callsense.models import new_id, utcnow
from callsense.store.database import Document, create_db_engine

logger = logging.getLogger("callsense.store.document_store")


class DocumentNotFound(Exception):
    """Raised when updating a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"No document {collection}/{doc_id}")


class DocumentStore:
    """JSON document collections stored through SQLAlchemy."""

    def __init__(self, engine: Engine | None = None):
        self.engine = engine or create_db_engine()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session committed on success, rolled back on error."""
        session = Session(self.engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def new_id() -> str:
        return new_id()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def set(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False) -> None:
        """Create or replace a document; ``merge`` keeps keys not in ``data``."""
        with self._session() as session:
            row = session.get(Document, (collection, doc_id))
            if row is None:
                session.add(Document(collection=collection, id=doc_id, data=dict(data)))
                return
            body = {**row.data, **data} if merge else dict(data)
            row.data = body
            row.updated_at = utcnow()

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._session() as session:
            row = session.get(Document, (collection, doc_id))
            return dict(row.data) if row is not None else None

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """
        Merge ``fields`` into an existing document.

        Raises:
            DocumentNotFound: If the document does not exist.
        """
        with self._session() as session:
            row = session.get(Document, (collection, doc_id))
            if row is None:
                raise DocumentNotFound(collection, doc_id)
            row.data = {**row.data, **fields}
            row.updated_at = utcnow()

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document; returns False if it was already gone."""
        with self._session() as session:
            row = session.get(Document, (collection, doc_id))
            if row is None:
                return False
            session.delete(row)
            return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        """
        Return ``(id, body)`` pairs of a collection.

        ``where`` holds field equality filters. Ordering compares field
        values as strings, so ISO timestamps sort chronologically; documents
        missing the field sort first (last when descending).
        """
        with self._session() as session:
            rows = session.scalars(
                select(Document).where(Document.collection == collection).order_by(Document.created_at)
            ).all()
            docs = [(row.id, dict(row.data)) for row in rows]

        if where:
            docs = [
                (doc_id, body)
                for doc_id, body in docs
                if all(body.get(key) == value for key, value in where.items())
            ]

        if order_by:
            docs.sort(
                key=lambda item: (item[1].get(order_by) is not None, str(item[1].get(order_by) or "")),
                reverse=descending,
            )

        if limit is not None:
            docs = docs[:limit]

        logger.debug("Query %s where=%s -> %d document(s).", collection, where, len(docs))
        return docs
