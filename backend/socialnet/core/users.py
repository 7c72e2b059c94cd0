import logging
from typing import Optional
from ..store import Kind, RecordStore
from .content import post_views
from .errors import AlreadyExists, InvalidOperation
from .paging import DEFAULT_LIMIT, Page, offset
from .relations import expand_users, require, summary
from .social import follow_counts

logger = logging.getLogger(__name__)

PROFILE_POSTS = 10


def public_user(user: dict) -> dict:
    followers, following = follow_counts(user)
    return {
        **summary(user),
        "email": user["email"],
        "role": user["role"],
        "follower_count": followers,
        "following_count": following,
        "created_at": user["created_at"],
    }


async def find_by_email(store: RecordStore, email: str) -> Optional[dict]:
    matches = await store.find(Kind.USER, email=email.strip().lower())
    return matches[0] if matches else None


async def register_user(store: RecordStore, name: str, email: str, password_hash: str) -> dict:
    email = email.strip().lower()
    async with store.transaction():
        if await find_by_email(store, email):
            raise AlreadyExists("user already exists")
        user = await store.insert(Kind.USER, {"name": name.strip(), "email": email, "password_hash": password_hash})

    logger.info("registered user %s", user["id"])
    return user


async def get_profile(store: RecordStore, user_id: int) -> dict:
    user = await require(store, Kind.USER, user_id)
    posts = await store.find(Kind.POST, newest_first=True, limit=PROFILE_POSTS, author_id=user_id)
    return {
        "user": {
            **public_user(user),
            "followers": await expand_users(store, user["followers"]),
            "following": await expand_users(store, user["following"]),
        },
        "posts": await post_views(store, posts),
    }


async def update_profile(store: RecordStore, user_id: int, name: Optional[str] = None, bio: Optional[str] = None) -> dict:
    changes = {}
    if name:
        name = name.strip()
        if not 2 <= len(name) <= 50:
            raise InvalidOperation("name must be between 2 and 50 characters")
        changes["name"] = name
    if bio is not None:
        bio = bio.strip()
        if len(bio) > 200:
            raise InvalidOperation("bio cannot exceed 200 characters")
        changes["bio"] = bio

    async with store.transaction():
        await require(store, Kind.USER, user_id, for_update=True)
        user = await store.update(Kind.USER, user_id, changes)
    return user


# Everyone except the viewer, newest first
async def list_users(store: RecordStore, viewer_id: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> Page:
    skip = offset(page, limit)
    users = await store.find(Kind.USER, newest_first=True, skip=skip, limit=limit, exclude_id=viewer_id)
    total = await store.count(Kind.USER, exclude_id=viewer_id)
    return Page([public_user(u) for u in users], total, page, limit)
