"""
callsense/auth.py
==================
Authentication — CallSense

Responsibility:
    - Email/password sign-up and sign-in with bcrypt password hashes
    - Opaque session tokens stored in the document store
    - Role and approval rules: admins are active immediately, responders
      wait for an admin to verify them

Collections:
    credentials  keyed by lower-cased email → {userId, email, passwordHash}
    sessions     keyed by token             → {userId, createdAt}

This module does NOT:
    - Read cookies or headers (see callsense.api.deps)
    - Manage report or knowledge data
"""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from urllib.parse import quote

import bcrypt

from callsense import config
from callsense.models import User, UserRole, UserStatus, parse_timestamp, utcnow
from callsense.store import repository
from callsense.store.document_store import DocumentStore

logger = logging.getLogger("callsense.auth")

CREDENTIALS = "credentials"
SESSIONS = "sessions"

MIN_PASSWORD_LENGTH = 6
AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"

PENDING_APPROVAL_SIGNUP_MESSAGE = (
    "Account created. Please wait for admin approval before logging in."
)


class AuthError(Exception):
    """Authentication failure carrying the user-facing message and HTTP status."""

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class AuthResult:
    user: User
    token: str | None = None
    message: str | None = None


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def _prehash(password: str) -> bytes:
    # bcrypt only reads 72 bytes; the base64 SHA-256 digest is 44
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_prehash(password), password_hash.encode("utf-8"))


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# ---------------------------------------------------------------------------
# Sign-up / sign-in
# ---------------------------------------------------------------------------


def sign_up(store: DocumentStore, email: str, password: str, full_name: str, role: UserRole) -> AuthResult:
    """
    Create an account and its profile.

    Admins are created VERIFIED and receive a session. Responders are
    created UNVERIFIED and receive no session until an admin approves them.

    Raises:
        AuthError: 400 for missing/weak input, 409 for an existing email.
    """
    if not (full_name or "").strip():
        raise AuthError("Full name is required.", 400)
    key = _normalize_email(email)
    if "@" not in key:
        raise AuthError("Please enter a valid email address.", 400)
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise AuthError("Password should be at least 6 characters.", 400)
    if store.get(CREDENTIALS, key) is not None:
        raise AuthError("User already exists. Please sign in", 409)

    name = full_name.strip()
    user = User(
        id=secrets.token_hex(16),
        email=email.strip(),
        name=name,
        role=role,
        avatar=AVATAR_URL.format(seed=quote(name)),
        status=UserStatus.VERIFIED if role == UserRole.ADMIN else UserStatus.UNVERIFIED,
    )
    store.set(
        CREDENTIALS,
        key,
        {"userId": user.id, "email": key, "passwordHash": hash_password(password)},
    )
    repository.save_user(store, user)
    logger.info("Account created for %s (role=%s, status=%s).", key, role.value, user.status.value)

    if user.status == UserStatus.UNVERIFIED:
        return AuthResult(user=user, message=PENDING_APPROVAL_SIGNUP_MESSAGE)
    return AuthResult(user=user, token=_create_session(store, user))


def sign_in(store: DocumentStore, email: str, password: str, role: UserRole) -> AuthResult:
    """
    Check credentials and open a session.

    Raises:
        AuthError: 401 for bad credentials or a missing profile,
                   403 for unapproved accounts or a role mismatch.
    """
    key = _normalize_email(email)
    credential = store.get(CREDENTIALS, key)
    if credential is None or not check_password(password or "", credential["passwordHash"]):
        logger.info("Failed sign-in for %s.", key)
        raise AuthError("Email or password is incorrect", 401)

    user = repository.get_user(store, credential["userId"])
    if user is None:
        raise AuthError("Your profile data is missing. Please sign up again.", 401)
    if user.status == UserStatus.UNVERIFIED:
        raise AuthError("Account pending admin approval.", 403)
    if user.role != role:
        raise AuthError("Invalid credentials", 403)

    logger.info("User %s signed in as %s.", user.id, role.value)
    return AuthResult(user=user, token=_create_session(store, user))


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def _create_session(store: DocumentStore, user: User) -> str:
    token = secrets.token_hex(32)
    store.set(SESSIONS, token, {"userId": user.id, "createdAt": utcnow().isoformat()})
    return token


def resolve_session(store: DocumentStore, token: str | None) -> User | None:
    """
    Return the signed-in user for ``token``.

    Expired sessions are removed. A session whose profile was deleted or
    is no longer verified resolves to nobody.
    """
    if not token:
        return None
    session = store.get(SESSIONS, token)
    if session is None:
        return None

    if config.SESSION_TTL_HOURS > 0:
        created = parse_timestamp(session.get("createdAt"))
        if created is None or utcnow() - created > timedelta(hours=config.SESSION_TTL_HOURS):
            store.delete(SESSIONS, token)
            return None

    user = repository.get_user(store, session.get("userId", ""))
    if user is None or user.status != UserStatus.VERIFIED:
        return None
    return user


def sign_out(store: DocumentStore, token: str | None) -> None:
    if token:
        store.delete(SESSIONS, token)
