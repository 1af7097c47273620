"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens and the FastAPI
dependencies `get_current_user` (validates the bearer token and returns
the `User` row) and `require_admin` (additionally checks admin rights).

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies. The user is loaded through the
request's own database session so services can modify it safely.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session
from .services import JWT_SECRET, JWT_ALGORITHM, is_admin
from .database import get_session
from . import models, repositories

bearer_scheme = HTTPBearer()


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    Raises HTTPException(401) for any authentication issue.
    """
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    return user


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    """Dependency for admin-only routes; 403 for everyone else."""
    if not is_admin(user):
        raise HTTPException(status_code=403, detail='Access denied. Admin privileges required.')
    return user
