import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
    Enum as SqlEnum,
)
from forumcore.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TopicStatus(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    DELETED = "deleted"


class PostStatus(enum.Enum):
    VISIBLE = "visible"
    DELETED = "deleted"


def _status_enum(enum_cls, name: str) -> SqlEnum:
    # stored as the lowercase value, portable across Postgres and SQLite
    return SqlEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda e: [m.value for m in e],
    )


class Category(Base):
    __tablename__ = "forum_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)


class Tag(Base):
    __tablename__ = "forum_tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), nullable=False, unique=True)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    color_classes = Column(String(120), nullable=True)  # display hint only


class Topic(Base):
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)

    # authorship survives account removal as NULL
    author_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    category_id = Column(
        Integer,
        ForeignKey("forum_categories.id"),
        nullable=False,
        index=True,
    )
    status = Column(_status_enum(TopicStatus, "topic_status"), nullable=False, default=TopicStatus.OPEN)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_activity_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    last_activity_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # mirrors the initial post's like_count
    like_count = Column(Integer, nullable=False, default=0, server_default="0")


class Post(Base):
    __tablename__ = "forum_posts"
    __table_args__ = (
        Index("ix_forum_posts_topic_created", "topic_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # no ON DELETE CASCADE: topic removal is done explicitly, children first
    topic_id = Column(
        Integer,
        ForeignKey("topics.id"),
        nullable=False,
        index=True,
    )
    # NULL marks the initial post of the topic
    parent_post_id = Column(
        Integer,
        ForeignKey("forum_posts.id"),
        nullable=True,
        index=True,
    )
    author_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    content = Column(Text, nullable=False)
    status = Column(_status_enum(PostStatus, "post_status"), nullable=False, default=PostStatus.VISIBLE)
    like_count = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class TopicTag(Base):
    __tablename__ = "forum_topic_tags"
    __table_args__ = (
        UniqueConstraint("topic_id", "tag_id", name="uq_forum_topic_tag"),
    )

    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False, index=True)
    tag_id = Column(Integer, ForeignKey("forum_tags.id"), nullable=False, index=True)


class PostLike(Base):
    __tablename__ = "forum_post_likes"
    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_forum_post_like"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("forum_posts.id"), nullable=False, index=True)
