# Record store used by the relationship layer.
# Records are plain dicts ("documents") keyed by field name; socialnet.core only talks
# to a RecordStore passed in explicitly, so the same code runs against the database
# (SqlStore) or an in-process fake (MemoryStore).
import copy
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Iterable, Optional
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from .models import Base, Comment, Post, User, utcnow

logger = logging.getLogger(__name__)

class Kind(str, Enum):
    USER = "user"
    POST = "post"
    COMMENT = "comment"

# Fields (and their defaults) every document of a kind carries
DEFAULTS: dict[Kind, dict[str, Any]] = {
    Kind.USER: {"bio": "", "profile_picture": "", "role": 0, "followers": [], "following": []},
    Kind.POST: {"image": "", "likes": [], "comments": [], "is_edited": False},
    Kind.COMMENT: {"parent_comment_id": None, "replies": [], "likes": [], "is_edited": False},
}

Document = dict[str, Any]


# CRUD + set-mutation interface over users, posts and comments
class RecordStore(ABC):

    # Returns the record or None; for_update locks the row until the transaction ends
    @abstractmethod
    async def get(self, kind: Kind, record_id: int, for_update: bool = False) -> Optional[Document]:
        pass

    # Records in the order of ids, missing ones skipped
    @abstractmethod
    async def get_many(self, kind: Kind, ids: Iterable[int]) -> list[Document]:
        pass

    # Equality filters (a list/tuple/set value matches any of its members), ordered by id,
    # optionally leaving out exclude_id and windowed by skip/limit
    @abstractmethod
    async def find(self, kind: Kind, newest_first: bool = False, skip: int = 0, limit: Optional[int] = None,
                   exclude_id: Optional[int] = None, **filters: Any) -> list[Document]:
        pass

    # Number of records find() would return without skip/limit
    @abstractmethod
    async def count(self, kind: Kind, exclude_id: Optional[int] = None, **filters: Any) -> int:
        pass

    @abstractmethod
    async def insert(self, kind: Kind, doc: Document) -> Document:
        pass

    @abstractmethod
    async def update(self, kind: Kind, record_id: int, changes: Document) -> Optional[Document]:
        pass

    @abstractmethod
    async def delete(self, kind: Kind, record_id: int) -> bool:
        pass

    # Appends value to a list field unless present; False if the record is missing
    @abstractmethod
    async def add_to_set(self, kind: Kind, record_id: int, field: str, value: int) -> bool:
        pass

    # Removes value from a list field; False if the record is missing
    @abstractmethod
    async def pull(self, kind: Kind, record_id: int, field: str, value: int) -> bool:
        pass

    # Async context manager; nested use joins the outermost transaction
    @abstractmethod
    def transaction(self):
        pass


def _matches(doc: Document, filters: dict[str, Any], exclude_id: Optional[int]) -> bool:
    if exclude_id is not None and doc["id"] == exclude_id:
        return False
    for field, wanted in filters.items():
        if isinstance(wanted, (list, tuple, set, frozenset)):
            if doc.get(field) not in wanted:
                return False
        elif doc.get(field) != wanted:
            return False
    return True


# Dict-backed store for tests and local experiments.
# transaction() snapshots every table and restores it when the block raises.
class MemoryStore(RecordStore):

    def __init__(self):
        self.tables: dict[Kind, dict[int, Document]] = {kind: {} for kind in Kind}
        self._next_id = {kind: 1 for kind in Kind}
        self._depth = 0

    async def get(self, kind, record_id, for_update=False):
        doc = self.tables[kind].get(record_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def get_many(self, kind, ids):
        table = self.tables[kind]
        return [copy.deepcopy(table[i]) for i in ids if i in table]

    def _select(self, kind, newest_first, exclude_id, filters):
        table = self.tables[kind]
        return [table[i] for i in sorted(table, reverse=newest_first) if _matches(table[i], filters, exclude_id)]

    async def find(self, kind, newest_first=False, skip=0, limit=None, exclude_id=None, **filters):
        matched = self._select(kind, newest_first, exclude_id, filters)
        end = None if limit is None else skip + limit
        return [copy.deepcopy(doc) for doc in matched[skip:end]]

    async def count(self, kind, exclude_id=None, **filters):
        return len(self._select(kind, False, exclude_id, filters))

    async def insert(self, kind, doc):
        record_id = self._next_id[kind]
        self._next_id[kind] += 1
        now = utcnow()
        stored = {**copy.deepcopy(DEFAULTS[kind]), **copy.deepcopy(doc), "id": record_id, "created_at": now, "updated_at": now}
        self.tables[kind][record_id] = stored
        return copy.deepcopy(stored)

    async def update(self, kind, record_id, changes):
        doc = self.tables[kind].get(record_id)
        if doc is None:
            return None
        doc.update(copy.deepcopy(changes))
        doc["updated_at"] = utcnow()
        return copy.deepcopy(doc)

    async def delete(self, kind, record_id):
        return self.tables[kind].pop(record_id, None) is not None

    async def add_to_set(self, kind, record_id, field, value):
        doc = self.tables[kind].get(record_id)
        if doc is None:
            return False
        if value not in doc[field]:
            doc[field].append(value)
        return True

    async def pull(self, kind, record_id, field, value):
        doc = self.tables[kind].get(record_id)
        if doc is None:
            return False
        doc[field] = [v for v in doc[field] if v != value]
        return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["MemoryStore"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = (copy.deepcopy(self.tables), dict(self._next_id))
        self._depth = 1
        try:
            yield self
        except BaseException:
            self.tables, self._next_id = snapshot
            raise
        finally:
            self._depth = 0


MODELS: dict[Kind, type[Base]] = {Kind.USER: User, Kind.POST: Post, Kind.COMMENT: Comment}

def to_document(obj: Base) -> Document:
    doc = {column.name: getattr(obj, column.name) for column in obj.__table__.columns}
    # Hand out copies so callers never mutate ORM-tracked lists in place
    for key, value in doc.items():
        if isinstance(value, list):
            doc[key] = list(value)
    return doc


# Store backed by an SQLAlchemy AsyncSession. Writes are flushed immediately and committed
# when the outermost transaction() block exits; any exception rolls the session back.
class SqlStore(RecordStore):

    def __init__(self, session: AsyncSession):
        self.session = session
        self._depth = 0

    async def _load(self, kind: Kind, record_id: int, for_update: bool = False):
        return await self.session.get(MODELS[kind], record_id, with_for_update=for_update or None)

    async def get(self, kind, record_id, for_update=False):
        obj = await self._load(kind, record_id, for_update)
        return to_document(obj) if obj is not None else None

    async def get_many(self, kind, ids):
        ids = list(ids)
        if not ids:
            return []
        model = MODELS[kind]
        rows = (await self.session.scalars(select(model).where(model.id.in_(ids)))).all()
        by_id = {row.id: row for row in rows}
        return [to_document(by_id[i]) for i in ids if i in by_id]

    def _where(self, stmt, model, exclude_id, filters):
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        for field, wanted in filters.items():
            column = getattr(model, field)
            if isinstance(wanted, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(wanted)))
            else:
                stmt = stmt.where(column == wanted) # "== None" renders as IS NULL
        return stmt

    async def find(self, kind, newest_first=False, skip=0, limit=None, exclude_id=None, **filters):
        model = MODELS[kind]
        stmt = self._where(select(model), model, exclude_id, filters)
        stmt = stmt.order_by(model.id.desc() if newest_first else model.id.asc())
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [to_document(row) for row in (await self.session.scalars(stmt)).all()]

    async def count(self, kind, exclude_id=None, **filters):
        model = MODELS[kind]
        stmt = self._where(select(func.count()).select_from(model), model, exclude_id, filters)
        return await self.session.scalar(stmt)

    async def insert(self, kind, doc):
        fields = {**DEFAULTS[kind], **doc}
        obj = MODELS[kind](**{k: (list(v) if isinstance(v, list) else v) for k, v in fields.items()})
        self.session.add(obj)
        await self.session.flush()
        return to_document(obj)

    async def update(self, kind, record_id, changes):
        obj = await self._load(kind, record_id)
        if obj is None:
            return None
        for field, value in changes.items():
            setattr(obj, field, value)
        obj.updated_at = utcnow()
        await self.session.flush()
        return to_document(obj)

    async def delete(self, kind, record_id):
        obj = await self._load(kind, record_id)
        if obj is None:
            return False
        await self.session.delete(obj)
        await self.session.flush()
        return True

    async def add_to_set(self, kind, record_id, field, value):
        obj = await self._load(kind, record_id)
        if obj is None:
            return False
        current = getattr(obj, field)
        if value not in current:
            # Assign a new list, in-place mutation of a JSON column is not tracked
            setattr(obj, field, [*current, value])
            await self.session.flush()
        return True

    async def pull(self, kind, record_id, field, value):
        obj = await self._load(kind, record_id)
        if obj is None:
            return False
        current = getattr(obj, field)
        if value in current:
            setattr(obj, field, [v for v in current if v != value])
            await self.session.flush()
        return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlStore"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield self
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            logger.debug("transaction rolled back")
            raise
        finally:
            self._depth = 0
