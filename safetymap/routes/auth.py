"""
auth.py — Anonymous identity routes.

Routes:
  POST /auth/anonymous  — mint an anonymous author ID and a JWT for it
  GET  /auth/me         — echo the author ID behind the current token

Reporters never register. The token only proves "I am the author who
submitted this", which is all owner-only deletion needs.

All errors use HTTPException so FastAPI serialises them as:
  { "detail": "..." }
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from safetymap.core.security import create_access_token, decode_access_token, new_anonymous_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Reusable bearer extractor (does NOT auto-raise on missing token)
_bearer = HTTPBearer(auto_error=False)
CredDep = Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)]


class AnonymousToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    author_id: str


class Identity(BaseModel):
    author_id: str


# ── Dependencies ──────────────────────────────────────────────────────────────

def _current_author_id(credentials: CredDep) -> str:
    """Raises 401 if the token is missing or invalid."""
    cred_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not credentials:
        raise cred_error
    author_id = decode_access_token(credentials.credentials)
    if not author_id:
        raise cred_error
    return author_id


# Re-export so other routes can depend on it
CurrentAuthor = Annotated[str, Depends(_current_author_id)]


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post("/anonymous", response_model=AnonymousToken, status_code=status.HTTP_201_CREATED)
async def sign_in_anonymously():
    """Create a fresh anonymous identity."""
    author_id = new_anonymous_id()
    logger.info("Issued anonymous identity %s", author_id)
    return AnonymousToken(access_token=create_access_token(author_id), author_id=author_id)


@router.get("/me", response_model=Identity)
async def me(author_id: CurrentAuthor):
    return Identity(author_id=author_id)
