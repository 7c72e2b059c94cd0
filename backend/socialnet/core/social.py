import logging
from ..store import Kind, RecordStore
from .errors import AlreadyExists, InvalidOperation
from .relations import expand_users, link_paired, require, unlink_paired

logger = logging.getLogger(__name__)


def follow_counts(user: dict) -> tuple[int, int]:
    # Always derived from the sets, never kept as separate counters
    return len(user["followers"]), len(user["following"])


async def follow(store: RecordStore, actor_id: int, target_id: int) -> None:
    if actor_id == target_id:
        raise InvalidOperation("you cannot follow yourself")

    async with store.transaction():
        actor = await require(store, Kind.USER, actor_id, for_update=True)
        await require(store, Kind.USER, target_id, for_update=True)
        if target_id in actor["following"]:
            raise AlreadyExists("you are already following this user")

        await link_paired(store, Kind.USER, actor_id, "following", Kind.USER, target_id, "followers")

    logger.info("user %s followed user %s", actor_id, target_id)


async def unfollow(store: RecordStore, actor_id: int, target_id: int) -> None:
    async with store.transaction():
        actor = await require(store, Kind.USER, actor_id, for_update=True)
        if target_id not in actor["following"]:
            raise InvalidOperation("you are not following this user")

        await unlink_paired(store, Kind.USER, actor_id, "following", Kind.USER, target_id, "followers")

    logger.info("user %s unfollowed user %s", actor_id, target_id)


async def list_followers(store: RecordStore, user_id: int) -> list[dict]:
    user = await require(store, Kind.USER, user_id)
    return await expand_users(store, user["followers"])


async def list_following(store: RecordStore, user_id: int) -> list[dict]:
    user = await require(store, Kind.USER, user_id)
    return await expand_users(store, user["following"])
