# Primitives for keeping denormalized back-references consistent.
# Every relationship is an id list on one or both records involved; higher-level operations
# only change those lists through these helpers so both sides move together. None of them
# opens a transaction, callers wrap the whole logical operation in store.transaction().
import logging
from typing import Optional
from ..store import Kind, RecordStore
from .errors import NotFound

logger = logging.getLogger(__name__)

# kind -> [(child kind, foreign key on the child)] deleted along with the record
CASCADES: dict[Kind, list[tuple[Kind, str]]] = {
    Kind.POST: [(Kind.COMMENT, "post_id")],
    Kind.COMMENT: [(Kind.COMMENT, "parent_comment_id")],
}

# kind -> [(foreign key on the record, parent kind, parent list field)] that list the record's id
BACK_REFERENCES: dict[Kind, list[tuple[str, Kind, str]]] = {
    Kind.COMMENT: [
        ("post_id", Kind.POST, "comments"),
        ("parent_comment_id", Kind.COMMENT, "replies"),
    ],
}


async def require(store: RecordStore, kind: Kind, record_id: int, for_update: bool = False) -> dict:
    record = await store.get(kind, record_id, for_update=for_update)
    if record is None:
        raise NotFound(f"{kind.value} {record_id} not found")
    return record


async def add_reference(store: RecordStore, kind: Kind, record_id: int, field: str, value: int) -> None:
    if not await store.add_to_set(kind, record_id, field, value):
        raise NotFound(f"{kind.value} {record_id} not found")
    logger.debug("added %s to %s %s.%s", value, kind.value, record_id, field)


async def remove_reference(store: RecordStore, kind: Kind, record_id: int, field: str, value: int) -> bool:
    removed = await store.pull(kind, record_id, field, value)
    logger.debug("pulled %s from %s %s.%s", value, kind.value, record_id, field)
    return removed


# Ensures id_b is in a.field_a and id_a is in b.field_b. Both records are looked up (and locked)
# before either side is written, so a missing record raises NotFound without a one-sided link.
# Linking an already linked pair is a no-op.
async def link_paired(store: RecordStore, kind_a: Kind, id_a: int, field_a: str, kind_b: Kind, id_b: int, field_b: str) -> None:
    await require(store, kind_a, id_a, for_update=True)
    await require(store, kind_b, id_b, for_update=True)
    await add_reference(store, kind_a, id_a, field_a, id_b)
    await add_reference(store, kind_b, id_b, field_b, id_a)


# Symmetric removal; unlinking a pair that is not linked does nothing
async def unlink_paired(store: RecordStore, kind_a: Kind, id_a: int, field_a: str, kind_b: Kind, id_b: int, field_b: str) -> None:
    await remove_reference(store, kind_a, id_a, field_a, id_b)
    await remove_reference(store, kind_b, id_b, field_b, id_a)


# Deletes a record together with everything that references it: children (per CASCADES)
# depth-first, then its id is pulled from every parent list (per BACK_REFERENCES), then the
# record itself. Returns (kind, id) for every deleted record, children first.
async def cascade_delete(store: RecordStore, kind: Kind, record_id: int, _seen: Optional[set] = None) -> list[tuple[Kind, int]]:
    seen = _seen if _seen is not None else set()
    if (kind, record_id) in seen:
        return []
    seen.add((kind, record_id))

    record = await store.get(kind, record_id, for_update=True)
    if record is None:
        return []

    deleted: list[tuple[Kind, int]] = []
    for child_kind, foreign_key in CASCADES.get(kind, []):
        for child in await store.find(child_kind, **{foreign_key: record_id}):
            deleted.extend(await cascade_delete(store, child_kind, child["id"], seen))

    for foreign_key, parent_kind, field in BACK_REFERENCES.get(kind, []):
        parent_id = record.get(foreign_key)
        if parent_id is not None:
            await remove_reference(store, parent_kind, parent_id, field, record_id)

    await store.delete(kind, record_id)
    deleted.append((kind, record_id))
    return deleted


# Reduced projection of a user embedded in other responses
def summary(user: dict) -> dict:
    return {
        "id": user["id"],
        "name": user["name"],
        "profile_picture": user.get("profile_picture", ""),
        "bio": user.get("bio", ""),
    }


async def expand_users(store: RecordStore, user_ids: list[int]) -> list[dict]:
    return [summary(u) for u in await store.get_many(Kind.USER, user_ids)]
