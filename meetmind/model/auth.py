"""Email/password accounts and database-backed sessions.

A signed-in browser carries only the session token (inside the signed
cookie); the ``session`` row is the source of truth for expiry.
"""
from __future__ import annotations
import secrets
from typing import Optional

import bcrypt
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from .db import User, Account, Session
from .users import create_user, get_user_by_email
from ..helpers import now_ts, DAY_SECONDS

SESSION_TTL_SECONDS = 7 * DAY_SECONDS
CREDENTIAL_PROVIDER = "credential"


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    # longer inputs cannot have been hashed
    if len(plain.encode("utf-8")) > 72:
        return False
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


async def sign_up(
    db: AsyncSession, name: str, email: str, password: str
) -> User:
    # raises IntegrityError when the email is taken
    user = await create_user(db, name, email, commit=False)
    ts = now_ts()
    db.add(Account(
        account_id=user.id,
        provider_id=CREDENTIAL_PROVIDER,
        user_id=user.id,
        password=hash_password(password),
        created_at=ts,
        updated_at=ts,
    ))
    await db.commit()
    return user


async def sign_in(
    db: AsyncSession, email: str, password: str,
    ip_address: Optional[str] = None, user_agent: Optional[str] = None,
) -> Optional[Session]:
    user = await get_user_by_email(db, email)
    if user is None:
        return None
    result = await db.execute(
        select(Account).where(
            Account.user_id == user.id,
            Account.provider_id == CREDENTIAL_PROVIDER,
        )
    )
    account = result.scalars().first()
    if account is None or not account.password:
        return None
    if not verify_password(password, account.password):
        return None

    ts = now_ts()
    session = Session(
        token=secrets.token_urlsafe(32),
        expires_at=ts + SESSION_TTL_SECONDS,
        created_at=ts,
        updated_at=ts,
        ip_address=ip_address,
        user_agent=user_agent,
        user_id=user.id,
    )
    db.add(session)
    await db.commit()
    return session


async def get_session_user(
    db: AsyncSession, token: Optional[str]
) -> Optional[User]:
    if not token:
        return None
    result = await db.execute(
        select(User)
        .join(Session, Session.user_id == User.id)
        .where(Session.token == token, Session.expires_at > now_ts())
    )
    return result.scalars().first()


async def sign_out(db: AsyncSession, token: Optional[str]) -> None:
    if not token:
        return
    await db.execute(delete(Session).where(Session.token == token))
    await db.commit()
