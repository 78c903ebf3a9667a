"""
callsense/api/deps.py
======================
Request dependencies — CallSense API

Responsibility:
    - Provide the shared DocumentStore (overridable in tests)
    - Resolve the signed-in user from the ``token`` cookie or a bearer header
    - Gate admin-only routes
"""

import logging
from functools import lru_cache

from fastapi import Depends, HTTPException, Request

from callsense import auth
from callsense.models import User, UserRole
from callsense.store.document_store import DocumentStore

logger = logging.getLogger("callsense.api.deps")

SESSION_COOKIE = "token"


@lru_cache(maxsize=1)
def get_store() -> DocumentStore:
    return DocumentStore()


def get_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


def current_user(request: Request, store: DocumentStore = Depends(get_store)) -> User:
    user = auth.resolve_session(store, get_token(request))
    if user is None:
        raise HTTPException(status_code=401, detail="Not signed in.")
    return user


def require_admin(user: User = Depends(current_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required.")
    return user
