# tests/test_access.py

from __future__ import annotations

import time
from datetime import timedelta

import pytest
from jose import jwt

import config
from access import (
    authenticate,
    authorize_admin,
    authorize_assignee_or_admin,
    create_token,
    hash_password,
    is_admin_invite,
    verify_password,
)
from errors import Forbidden, Unauthenticated

from .conftest import identity, make_task


@pytest.mark.asyncio
async def test_authenticate_resolves_current_user(user_store, member) -> None:
    who = await authenticate(create_token(member.id), user_store)

    assert who.id == member.id
    assert who.role == "member"
    assert not hasattr(who, "password_hash")


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
async def test_authenticate_rejects_missing_or_malformed_tokens(user_store, token) -> None:
    with pytest.raises(Unauthenticated):
        await authenticate(token, user_store)


@pytest.mark.asyncio
async def test_authenticate_rejects_expired_token(user_store, member) -> None:
    token = create_token(member.id, expires_delta=timedelta(seconds=-5))

    with pytest.raises(Unauthenticated):
        await authenticate(token, user_store)


@pytest.mark.asyncio
async def test_authenticate_rejects_foreign_signature(user_store, member) -> None:
    token = jwt.encode({"sub": member.id}, "someone-else", algorithm=config.JWT_ALGORITHM)

    with pytest.raises(Unauthenticated):
        await authenticate(token, user_store)


@pytest.mark.asyncio
async def test_authenticate_rejects_deleted_user(user_store, member) -> None:
    token = create_token(member.id)
    await user_store.delete(member.id)

    with pytest.raises(Unauthenticated, match="User not found"):
        await authenticate(token, user_store)


def test_token_expires_after_seven_days(member) -> None:
    claims = jwt.get_unverified_claims(create_token(member.id))

    assert claims["sub"] == member.id
    assert abs(claims["exp"] - time.time() - 7 * 24 * 3600) <= 5


def test_authorize_admin(admin, member) -> None:
    authorize_admin(identity(admin))
    with pytest.raises(Forbidden):
        authorize_admin(identity(member))


def test_authorize_assignee_or_admin(admin, member, outsider) -> None:
    task = make_task(member)

    authorize_assignee_or_admin(identity(member), task)
    authorize_assignee_or_admin(identity(admin), task)
    with pytest.raises(Forbidden):
        authorize_assignee_or_admin(identity(outsider), task)


@pytest.mark.parametrize(
    "configured, supplied, expected",
    [
        ("let-me-in", "let-me-in", True),
        ("let-me-in", "nope", False),
        ("let-me-in", None, False),
        (None, "let-me-in", False),
        (None, None, False),
    ],
)
def test_admin_invite_token(monkeypatch, configured, supplied, expected) -> None:
    monkeypatch.setattr(config, "ADMIN_INVITE_TOKEN", configured)
    assert is_admin_invite(supplied) is expected


def test_password_hashing() -> None:
    hashed = hash_password("s3cret")

    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret", "")
