from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import JSON, ForeignKey, String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ADMIN_ROLE = 1

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

# Base class for all Sqlalchemy models
class Base(DeclarativeBase):
    pass

# Id lists (followers, likes, replies, ...) are stored denormalized as JSON arrays,
# the store keeps both sides of each relationship in sync
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(254), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    bio: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    profile_picture: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    role: Mapped[int] = mapped_column(nullable=False, default=0)
    followers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    following: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    likes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    comments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_edited: Mapped[bool] = mapped_column(nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # No DB-level cascade here: deletes go through the relationship layer so back-references get cleaned up
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id"), index=True, nullable=False)
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    parent_comment_id: Mapped[Optional[int]] = mapped_column(ForeignKey("comments.id"), index=True, nullable=True, default=None)
    replies: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    likes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_edited: Mapped[bool] = mapped_column(nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
