"""
callsense/api/routes/auth.py
=============================
Sign-up, sign-in, sign-out and the current profile.

The session token is returned in the body and set as the ``token``
cookie; either may be used on later requests.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from callsense import auth
from callsense.api.deps import SESSION_COOKIE, current_user, get_store, get_token
from callsense.api.schemas import SignInRequest, SignUpRequest
from callsense.models import User
from callsense.store.document_store import DocumentStore

logger = logging.getLogger("callsense.api.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _respond(result: auth.AuthResult, response: Response) -> dict:
    if result.token:
        response.set_cookie(SESSION_COOKIE, result.token, httponly=True, samesite="lax")
    return {
        "user": result.user.to_document(),
        "token": result.token,
        "message": result.message,
    }


@router.post("/signup", status_code=201)
def sign_up(body: SignUpRequest, response: Response, store: DocumentStore = Depends(get_store)):
    try:
        result = auth.sign_up(store, body.email, body.password, body.fullName, body.role)
    except auth.AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return _respond(result, response)


@router.post("/signin")
def sign_in(body: SignInRequest, response: Response, store: DocumentStore = Depends(get_store)):
    try:
        result = auth.sign_in(store, body.email, body.password, body.role)
    except auth.AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return _respond(result, response)


@router.post("/signout")
def sign_out(request: Request, response: Response, store: DocumentStore = Depends(get_store)):
    auth.sign_out(store, get_token(request))
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@router.get("/me")
def me(user: User = Depends(current_user)):
    return user.to_document()
