"""
Database helper functions — account lookups and notification queries.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Notification, User


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


def notification_to_dict(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "channel": n.channel,
        "metadata": n.metadata_ or {},
        "isRead": n.is_read,
        "createdAt": n.created_at.isoformat() if n.created_at else None,
    }


async def list_notifications(
    session: AsyncSession,
    user_id: str,
    *,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """Newest first."""
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
    result = await session.execute(stmt)
    return [notification_to_dict(n) for n in result.scalars().all()]


async def count_unread_notifications(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return int(result.scalar_one())


async def mark_notification_read(session: AsyncSession, user_id: str, notification_id: str) -> bool:
    result = await session.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        return False
    notification.is_read = True
    await session.flush()
    return True
