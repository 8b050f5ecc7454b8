# crud/user.py
#
# NOTE: authenticate() does NO password checking. It is only suitable for
# development and must be replaced with real credential verification before
# this runs anywhere that matters.
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crud.base import get_by, insert
from models import User

logger = logging.getLogger(__name__)

PLACEHOLDER_PROFILE = {
    "email": "john@example.edu",
    "first_name": "John",
}


async def get_user_by_netid(db: AsyncSession, netid: str) -> Optional[User]:
    return await get_by(db, User, netid=netid)


async def add_user(db: AsyncSession, user_data: dict) -> int:
    return await insert(db, User, user_data)


async def authenticate(db: AsyncSession, netid: Optional[str]) -> Optional[User]:
    """Resolve the submitted netid to a user, creating one on first login."""
    netid = (netid or "").strip()
    if not netid:
        return None

    user = await get_user_by_netid(db, netid)
    if user is None:
        await add_user(db, {"netid": netid, **PLACEHOLDER_PROFILE})
        logger.warning("Created placeholder user %s without credential check", netid)
        user = await get_user_by_netid(db, netid)
    return user
