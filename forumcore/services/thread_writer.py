# forumcore/services/thread_writer.py
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from forumcore.errors import Forbidden, NotFound, ValidationError
from forumcore.models.forum_model import Category, Post, PostStatus, Topic, TopicStatus, utcnow
from forumcore.models.user_model import User
from forumcore.schemas.forum_schemas import AuthorOut, PostOut
from forumcore.services.association_manager import coerce_tag_ids, replace_topic_tags, require_tags
from forumcore.services.counter_ledger import touch_topic_activity
from forumcore.services.thread_reader import post_to_out
from forumcore.store import ForumStore

TITLE_MAX = 200


def _require_text(value: Optional[str], field_name: str, max_length: Optional[int] = None) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required")
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return text


class ThreadWriter:
    """Creates topics (with their initial post) and replies."""

    def __init__(self, store: ForumStore, logger: Optional[logging.Logger] = None) -> None:
        self.store = store
        self.log = logger or logging.getLogger(__name__)

    async def create_topic(
        self,
        author_id: int,
        category_id: Optional[int],
        title: Optional[str],
        content: Optional[str],
        tag_ids: Any = None,
    ) -> int:
        title = _require_text(title, "title", TITLE_MAX)
        content = _require_text(content, "content")
        if category_id is None:
            raise ValidationError("category_id is required")
        ids = coerce_tag_ids(tag_ids if tag_ids is not None else [])

        async def work(session: AsyncSession):
            if await session.get(Category, category_id) is None:
                raise NotFound("Category not found")
            if await session.get(User, author_id) is None:
                raise NotFound("Author not found")
            await require_tags(session, ids)

            now = utcnow()
            topic = Topic(
                title=title,
                author_id=author_id,
                category_id=category_id,
                status=TopicStatus.OPEN,
                created_at=now,
                last_activity_at=now,
                last_activity_user_id=author_id,
                like_count=0,
            )
            session.add(topic)
            await session.flush()  # get topic.id

            session.add(Post(topic_id=topic.id, author_id=author_id, content=content, parent_post_id=None, created_at=now))
            if ids:
                await replace_topic_tags(session, topic.id, ids)
            await session.flush()
            return topic.id

        topic_id = await self.store.write("create_topic", work)
        self.log.info("topic=%s created author=%s category=%s tags=%s", topic_id, author_id, category_id, ids)
        return topic_id

    async def create_reply(
        self,
        topic_id: int,
        author_id: int,
        content: Optional[str],
        parent_post_id: Optional[int] = None,
    ) -> PostOut:
        content = _require_text(content, "content")

        async def work(session: AsyncSession):
            topic = await session.get(Topic, topic_id)
            if topic is None or topic.status == TopicStatus.DELETED:
                raise NotFound("Topic not found")
            if topic.status != TopicStatus.OPEN:
                raise Forbidden("Topic is closed for replies")

            if parent_post_id is not None:
                parent = await session.get(Post, parent_post_id)
                if parent is None or parent.topic_id != topic_id:
                    raise NotFound("Parent post not found in this topic")

            author = await session.get(User, author_id)
            if author is None:
                raise NotFound("Author not found")

            now = utcnow()
            post = Post(
                topic_id=topic_id,
                author_id=author_id,
                content=content,
                parent_post_id=parent_post_id,
                status=PostStatus.VISIBLE,
                like_count=0,
                created_at=now,
            )
            session.add(post)
            await session.flush()
            await touch_topic_activity(session, topic_id, author_id, now)

            return post_to_out(
                post,
                AuthorOut(id=author.id, username=author.username, avatar=author.avatar),
                user_liked=False,
            )

        out = await self.store.write("create_reply", work)
        self.log.info("reply=%s created topic=%s author=%s parent=%s", out.id, topic_id, author_id, parent_post_id)
        return out

    async def set_topic_status(self, topic_id: int, status: str) -> str:
        """Moderation: open or close a topic. Deletion goes through the cascade deleter."""
        try:
            new_status = TopicStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown topic status '{status}'")
        if new_status == TopicStatus.DELETED:
            raise ValidationError("Use topic deletion to remove a topic")

        async def work(session: AsyncSession):
            topic = await session.get(Topic, topic_id)
            if topic is None or topic.status == TopicStatus.DELETED:
                raise NotFound("Topic not found")
            topic.status = new_status
            await session.flush()
            return topic.status.value

        out = await self.store.write("set_topic_status", work)
        self.log.info("topic=%s status=%s", topic_id, out)
        return out
