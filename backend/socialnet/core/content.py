import logging
from typing import NamedTuple, Optional
from ..models import ADMIN_ROLE
from ..store import Kind, RecordStore
from .errors import Forbidden, InvalidOperation, NotFound
from .paging import DEFAULT_LIMIT, Page, offset
from .relations import add_reference, cascade_delete, remove_reference, require, summary

logger = logging.getLogger(__name__)

POST_MAX_LENGTH = 1000
COMMENT_MAX_LENGTH = 500
FEEDS = ("all", "following")


class LikeState(NamedTuple):
    liked: bool
    like_count: int


def clean_content(content: str, max_length: int, what: str) -> str:
    content = (content or "").strip()
    if len(content) == 0 or len(content) > max_length:
        raise InvalidOperation(f"{what} content must be between 1 and {max_length} characters")
    return content


# One get_many for every author and liker across the batch
async def _summaries(store: RecordStore, records: list[dict]) -> dict[int, dict]:
    ids = [r["author_id"] for r in records] + [u for r in records for u in r["likes"]]
    users = await store.get_many(Kind.USER, list(dict.fromkeys(ids)))
    return {u["id"]: summary(u) for u in users}


def _view(record: dict, users: dict[int, dict]) -> dict:
    return {
        **record,
        "author": users.get(record["author_id"]),
        "likes": [users[u] for u in record["likes"] if u in users],
        "like_count": len(record["likes"]),
    }


async def post_views(store: RecordStore, posts: list[dict]) -> list[dict]:
    users = await _summaries(store, posts)
    return [{**_view(p, users), "comment_count": len(p["comments"])} for p in posts]


async def comment_views(store: RecordStore, comments: list[dict], with_replies: bool = False) -> list[dict]:
    replies: dict[int, dict] = {}
    if with_replies:
        reply_ids = [r for c in comments for r in c["replies"]]
        replies = {r["id"]: r for r in await store.get_many(Kind.COMMENT, reply_ids)}

    users = await _summaries(store, comments + list(replies.values()))
    views = []
    for comment in comments:
        view = {**_view(comment, users), "reply_count": len(comment["replies"])}
        if with_replies:
            view["replies"] = [
                {**_view(replies[r], users), "reply_count": len(replies[r]["replies"])}
                for r in comment["replies"] if r in replies
            ]
        views.append(view)
    return views


# --- Posts ---
async def create_post(store: RecordStore, author_id: int, content: str, image: str = "") -> dict:
    content = clean_content(content, POST_MAX_LENGTH, "post")
    async with store.transaction():
        await require(store, Kind.USER, author_id)
        post = await store.insert(Kind.POST, {"author_id": author_id, "content": content, "image": image or ""})

    logger.info("user %s created post %s", author_id, post["id"])
    return post


async def get_post(store: RecordStore, post_id: int) -> dict:
    post = await require(store, Kind.POST, post_id)
    view = (await post_views(store, [post]))[0]
    view["comments"] = await comment_views(store, await store.get_many(Kind.COMMENT, post["comments"]))
    return view


async def update_post(store: RecordStore, actor_id: int, post_id: int, content: str) -> dict:
    content = clean_content(content, POST_MAX_LENGTH, "post")
    async with store.transaction():
        post = await require(store, Kind.POST, post_id, for_update=True)
        if post["author_id"] != actor_id:
            raise Forbidden("not authorized to update this post")
        # is_edited only ever goes from False to True
        return await store.update(Kind.POST, post_id, {"content": content, "is_edited": True})


async def delete_post(store: RecordStore, actor_id: int, post_id: int) -> list[tuple[Kind, int]]:
    async with store.transaction():
        post = await require(store, Kind.POST, post_id, for_update=True)
        actor = await require(store, Kind.USER, actor_id)
        if post["author_id"] != actor_id and actor["role"] != ADMIN_ROLE:
            raise Forbidden("not authorized to delete this post")
        deleted = await cascade_delete(store, Kind.POST, post_id)

    logger.info("user %s deleted post %s (%d records removed)", actor_id, post_id, len(deleted))
    return deleted


async def _post_page(store: RecordStore, page: int, limit: int, **filters) -> Page:
    skip = offset(page, limit)
    posts = await store.find(Kind.POST, newest_first=True, skip=skip, limit=limit, **filters)
    total = await store.count(Kind.POST, **filters)
    return Page(await post_views(store, posts), total, page, limit)


async def list_posts(store: RecordStore, viewer_id: int, feed: str = "all", page: int = 1, limit: int = DEFAULT_LIMIT) -> Page:
    if feed not in FEEDS:
        raise InvalidOperation(f"unknown feed {feed!r}")

    filters = {}
    if feed == "following":
        viewer = await require(store, Kind.USER, viewer_id)
        filters["author_id"] = viewer["following"] # an empty list matches nothing
    return await _post_page(store, page, limit, **filters)


async def list_user_posts(store: RecordStore, user_id: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> Page:
    return await _post_page(store, page, limit, author_id=user_id)


# --- Comments ---
async def create_comment(store: RecordStore, author_id: int, post_id: int, content: str, parent_comment_id: Optional[int] = None) -> dict:
    # A reply (parent_comment_id given) must target a top-level comment of the same post,
    # nesting is limited to one level
    content = clean_content(content, COMMENT_MAX_LENGTH, "comment")

    async with store.transaction():
        await require(store, Kind.USER, author_id)
        await require(store, Kind.POST, post_id, for_update=True)
        if parent_comment_id is not None:
            parent = await require(store, Kind.COMMENT, parent_comment_id, for_update=True)
            if parent["post_id"] != post_id:
                raise InvalidOperation("parent comment belongs to a different post")
            if parent["parent_comment_id"] is not None:
                raise InvalidOperation("cannot reply to a reply")

        comment = await store.insert(Kind.COMMENT, {
            "author_id": author_id,
            "post_id": post_id,
            "content": content,
            "parent_comment_id": parent_comment_id,
        })
        await add_reference(store, Kind.POST, post_id, "comments", comment["id"])
        if parent_comment_id is not None:
            await add_reference(store, Kind.COMMENT, parent_comment_id, "replies", comment["id"])

    logger.info("user %s commented %s on post %s", author_id, comment["id"], post_id)
    return comment


async def get_comment(store: RecordStore, comment_id: int) -> dict:
    comment = await require(store, Kind.COMMENT, comment_id)
    return (await comment_views(store, [comment], with_replies=True))[0]


async def update_comment(store: RecordStore, actor_id: int, comment_id: int, content: str) -> dict:
    content = clean_content(content, COMMENT_MAX_LENGTH, "comment")
    async with store.transaction():
        comment = await require(store, Kind.COMMENT, comment_id, for_update=True)
        if comment["author_id"] != actor_id:
            raise Forbidden("not authorized to update this comment")
        return await store.update(Kind.COMMENT, comment_id, {"content": content, "is_edited": True})


async def delete_comment(store: RecordStore, actor_id: int, comment_id: int) -> list[tuple[Kind, int]]:
    async with store.transaction():
        comment = await require(store, Kind.COMMENT, comment_id, for_update=True)
        if comment["author_id"] != actor_id:
            raise Forbidden("not authorized to delete this comment")
        deleted = await cascade_delete(store, Kind.COMMENT, comment_id)

    logger.info("user %s deleted comment %s (%d records removed)", actor_id, comment_id, len(deleted))
    return deleted


# Top-level comments of a post, newest first, with their replies
async def list_comments(store: RecordStore, post_id: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> Page:
    skip = offset(page, limit)
    await require(store, Kind.POST, post_id)
    filters = {"post_id": post_id, "parent_comment_id": None}
    comments = await store.find(Kind.COMMENT, newest_first=True, skip=skip, limit=limit, **filters)
    total = await store.count(Kind.COMMENT, **filters)
    return Page(await comment_views(store, comments, with_replies=True), total, page, limit)


# Replies of a comment, oldest first
async def list_replies(store: RecordStore, comment_id: int, page: int = 1, limit: int = DEFAULT_LIMIT) -> Page:
    skip = offset(page, limit)
    await require(store, Kind.COMMENT, comment_id)
    replies = await store.find(Kind.COMMENT, skip=skip, limit=limit, parent_comment_id=comment_id)
    total = await store.count(Kind.COMMENT, parent_comment_id=comment_id)
    return Page(await comment_views(store, replies), total, page, limit)


# --- Likes ---
# Likes the target, or unlikes it when actor_id already likes it
async def toggle_like(store: RecordStore, actor_id: int, target_id: int, target_kind: Kind) -> LikeState:
    if target_kind not in (Kind.POST, Kind.COMMENT):
        raise InvalidOperation(f"cannot like a {target_kind.value}")

    async with store.transaction():
        await require(store, Kind.USER, actor_id)
        target = await require(store, target_kind, target_id, for_update=True)
        if actor_id in target["likes"]:
            await remove_reference(store, target_kind, target_id, "likes", actor_id)
        else:
            await add_reference(store, target_kind, target_id, "likes", actor_id)
        target = await store.get(target_kind, target_id)
        if target is None:
            raise NotFound(f"{target_kind.value} {target_id} not found")

    state = LikeState(liked=actor_id in target["likes"], like_count=len(target["likes"]))
    logger.info("user %s %s %s %s", actor_id, "liked" if state.liked else "unliked", target_kind.value, target_id)
    return state
