from __future__ import annotations
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .db import User
from ..helpers import now_ts, to_iso


def user_to_dict(u: User) -> Dict[str, Any]:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "emailVerified": bool(u.email_verified),
        "image": u.image,
        "createdAt": to_iso(u.created_at),
        "updatedAt": to_iso(u.updated_at),
    }


async def get_users(
    db: AsyncSession, search: Optional[str] = None
) -> List[User]:
    q = select(User).order_by(User.created_at.desc())
    if search:
        term = search.strip().lower()
        q = q.where(or_(
            func.lower(User.name).contains(term, autoescape=True),
            func.lower(User.email).contains(term, autoescape=True),
        ))
    result = await db.execute(q)
    return list(result.scalars().all())


async def get_user_stats(db: AsyncSession) -> Dict[str, int]:
    total = await db.scalar(select(func.count()).select_from(User))
    verified = await db.scalar(
        select(func.count()).select_from(User)
        .where(User.email_verified.is_(True))
    )
    total = int(total or 0)
    verified = int(verified or 0)
    return {
        "total": total,
        "verified": verified,
        "unverified": total - verified,
    }


async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(User.email == email.strip().lower())
    )
    return result.scalars().first()


async def create_user(
    db: AsyncSession, name: str, email: str, image: Optional[str] = None,
    *, commit: bool = True,
) -> User:
    # raises IntegrityError on duplicate email
    ts = now_ts()
    user = User(
        name=name.strip(),
        email=email.strip().lower(),
        email_verified=False,
        image=image or None,
        created_at=ts,
        updated_at=ts,
    )
    db.add(user)
    if commit:
        await db.commit()
    else:
        await db.flush()
    return user


async def update_user(
    db: AsyncSession, user_id: str, fields: Dict[str, Any]
) -> Optional[User]:
    user = await db.get(User, user_id)
    if user is None:
        return None
    if fields.get("name") is not None:
        user.name = fields["name"].strip()
    if fields.get("email") is not None:
        user.email = fields["email"].strip().lower()
    if fields.get("email_verified") is not None:
        user.email_verified = bool(fields["email_verified"])
    if "image" in fields:
        user.image = fields["image"] or None
    user.updated_at = now_ts()
    await db.commit()
    return user


async def delete_user(db: AsyncSession, user_id: str) -> bool:
    # sessions, accounts, agents and meetings go with it (FK cascade)
    result = await db.execute(delete(User).where(User.id == user_id))
    await db.commit()
    return result.rowcount > 0
