"""
Access control: password hashing, bearer tokens and role checks.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from errors import Forbidden, Unauthenticated
from schemas import CurrentUser, Task
from stores import UserStore, get_user_store

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_token(user_id: str, expires_delta: timedelta = None) -> str:
    to_encode = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + (expires_delta or timedelta(days=config.TOKEN_EXPIRE_DAYS)),
    }
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def is_admin_invite(token: Optional[str]) -> bool:
    expected = config.ADMIN_INVITE_TOKEN
    if not token or not expected:
        return False
    return secrets.compare_digest(token.encode(), expected.encode())


async def authenticate(token: Optional[str], users: UserStore) -> CurrentUser:
    """Resolve a bearer token to the current user record, minus credential."""
    if not token:
        raise Unauthenticated("Not authorized, token missing")
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError as exc:
        raise Unauthenticated(f"Token failed: {exc}")
    user_id = payload.get("sub")
    if not isinstance(user_id, str):
        raise Unauthenticated("Token failed: missing subject")
    user = await users.get(user_id)
    if user is None:
        raise Unauthenticated("User not found")
    return CurrentUser(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        profile_image_url=user.profile_image_url,
    )


def authorize_admin(identity: CurrentUser) -> None:
    if identity.role != "admin":
        logger.warning("Admin access refused for user %s", identity.id)
        raise Forbidden("Access denied, admins only")


def authorize_assignee_or_admin(identity: CurrentUser, task: Task) -> None:
    if identity.role == "admin" or identity.id in task.assigned_to:
        return
    logger.warning("User %s is not assigned to task %s", identity.id, task.id)
    raise Forbidden("Not authorized")


# FastAPI dependencies

async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    users: UserStore = Depends(get_user_store),
) -> CurrentUser:
    if not authorization:
        raise Unauthenticated("Not authorized, token missing")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        raise Unauthenticated("Invalid authorization header")
    return await authenticate(token.strip(), users)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    authorize_admin(user)
    return user
