# crud/post.py
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crud.base import RecordNotFound, get_by, insert, update
from models import Post
from schemas import PostCreate

logger = logging.getLogger(__name__)


async def get_active_posts(db: AsyncSession, bid: int) -> List[Post]:
    """Active posts for a book, cheapest first, with their owners loaded."""
    result = await db.execute(
        select(Post)
        .options(selectinload(Post.user))
        .where(Post.bid == bid, Post.active.is_(True))
        .order_by(Post.price.asc(), Post.pid.asc())
    )
    return list(result.scalars().all())


async def get_min_price(db: AsyncSession, bid: int) -> Optional[Decimal]:
    result = await db.execute(
        select(func.min(Post.price)).where(Post.bid == bid, Post.active.is_(True))
    )
    return result.scalar_one_or_none()


async def get_user_posts(db: AsyncSession, uid: int) -> List[Post]:
    result = await db.execute(
        select(Post)
        .options(selectinload(Post.book), selectinload(Post.user))
        .where(Post.uid == uid, Post.active.is_(True))
        .order_by(Post.created.desc(), Post.pid.desc())
    )
    return list(result.scalars().all())


async def get_user_post(db: AsyncSession, uid: int, pid: int) -> Post:
    post = await get_by(db, Post, pid=pid, uid=uid, active=True)
    if post is None:
        raise RecordNotFound(f"post {pid} not found for user {uid}")
    return post


async def create_post(db: AsyncSession, uid: int, bid: int, post_data: PostCreate) -> int:
    """Create a post, or reprice the user's existing active post for the same book."""
    existing = await get_by(db, Post, uid=uid, bid=bid, active=True)
    if existing is not None:
        pid = existing.pid
        await update_post(db, uid, pid, post_data)
        return pid
    pid = await insert(db, Post, {
        "uid": uid,
        "bid": bid,
        "price": post_data.price,
        "notes": post_data.notes,
        "active": True,
    })
    logger.info("User %s listed book %s for %s (post %s)", uid, bid, post_data.price, pid)
    return pid


async def update_post(db: AsyncSession, uid: int, pid: int, post_data: PostCreate) -> None:
    await get_user_post(db, uid, pid)
    await update(db, Post, {
        "pid": pid,
        "price": post_data.price,
        "notes": post_data.notes,
        "updated": datetime.now(),
    })


async def deactivate_post(db: AsyncSession, uid: int, pid: int) -> None:
    """Posts are never deleted, only taken off the market."""
    await get_user_post(db, uid, pid)
    await update(db, Post, {"pid": pid, "active": False, "updated": datetime.now()})
    logger.info("User %s deactivated post %s", uid, pid)
