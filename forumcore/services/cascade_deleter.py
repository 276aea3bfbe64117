# forumcore/services/cascade_deleter.py
"""
Ordered, single-transaction removals.

The schema has no ON DELETE CASCADE on the forum tables, so children are removed
explicitly before their parents. Any failure rolls the whole unit back.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from forumcore.config import DELETED_POST_PLACEHOLDER
from forumcore.errors import Conflict, Forbidden, NotFound
from forumcore.models.forum_model import Post, PostLike, PostStatus, Topic, TopicStatus, TopicTag
from forumcore.models.user_model import User
from forumcore.schemas.forum_schemas import AccountPurgeOut
from forumcore.services.counter_ledger import mirror_topic_like_count, recount_post_likes
from forumcore.store import ForumStore


class CascadeDeleter:
    def __init__(
        self,
        store: ForumStore,
        placeholder: str = DELETED_POST_PLACEHOLDER,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.placeholder = placeholder
        self.log = logger or logging.getLogger(__name__)

    # ==================== Topic ====================

    async def delete_topic(self, topic_id: int, requester_id: int, as_admin: bool = False) -> None:
        """
        Hard-delete a topic: likes on its posts, its posts, its tag links, then the row.
        Only the author may do this (moderators pass `as_admin=True`).
        """
        async def work(session: AsyncSession):
            topic = await session.get(Topic, topic_id)
            if topic is None or topic.status == TopicStatus.DELETED:
                raise NotFound("Topic not found")
            if not as_admin and topic.author_id != requester_id:
                self.log.warning(
                    "delete topic=%s refused requester=%s author=%s", topic_id, requester_id, topic.author_id
                )
                raise Forbidden("Only the topic author may delete this topic")

            likes = await self._delete_topic_likes(session, topic_id)
            posts = await self._delete_topic_posts(session, topic_id)
            tags = await self._delete_topic_tags(session, topic_id)
            await self._delete_topic_row(session, topic_id)
            self.log.info(
                "topic=%s deleted by=%s likes=%d posts=%d tags=%d", topic_id, requester_id, likes, posts, tags
            )

        await self.store.write("delete_topic", work)

    async def _delete_topic_likes(self, session: AsyncSession, topic_id: int) -> int:
        post_ids = select(Post.id).where(Post.topic_id == topic_id)
        res = await session.execute(
            delete(PostLike)
            .where(PostLike.post_id.in_(post_ids))
            .execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)

    async def _delete_topic_posts(self, session: AsyncSession, topic_id: int) -> int:
        res = await session.execute(
            delete(Post).where(Post.topic_id == topic_id).execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)

    async def _delete_topic_tags(self, session: AsyncSession, topic_id: int) -> int:
        res = await session.execute(
            delete(TopicTag).where(TopicTag.topic_id == topic_id).execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)

    async def _delete_topic_row(self, session: AsyncSession, topic_id: int) -> None:
        await session.execute(delete(Topic).where(Topic.id == topic_id))

    # ==================== Account ====================

    async def delete_user_content(self, user_id: int) -> AccountPurgeOut:
        """
        Remove an account while keeping thread shape for everyone else:
        posts are soft-deleted with placeholder text, likes in both directions
        are dropped (counters recomputed from what remains), authored topics are
        hidden, then the user row goes. A missing user is a logged no-op.
        """
        async def work(session: AsyncSession):
            user = await session.get(User, user_id)
            if user is None:
                self.log.warning("account purge user=%s: no such user, nothing to do", user_id)
                return AccountPurgeOut(
                    user_id=user_id,
                    posts_soft_deleted=0,
                    likes_given_removed=0,
                    likes_received_removed=0,
                    topics_hidden=0,
                    user_deleted=False,
                )

            own_post_ids: List[int] = list(
                (await session.execute(select(Post.id).where(Post.author_id == user_id))).scalars().all()
            )

            # 1) soft-delete the user's visible posts
            per_topic = (
                await session.execute(
                    select(Post.topic_id, func.count(Post.id))
                    .where(Post.author_id == user_id, Post.status == PostStatus.VISIBLE)
                    .group_by(Post.topic_id)
                )
            ).all()
            soft = await session.execute(
                update(Post)
                .where(Post.author_id == user_id, Post.status == PostStatus.VISIBLE)
                .values(status=PostStatus.DELETED, content=self.placeholder)
                .execution_options(synchronize_session=False)
            )

            # 2) reply counts are computed live; nothing cached to decrement
            for topic_id, n in per_topic:
                self.log.info("account purge user=%s topic=%s replies_hidden=%d", user_id, topic_id, n)

            # 3) likes the user gave, anywhere
            liked_post_ids: List[int] = list(
                (await session.execute(select(PostLike.post_id).where(PostLike.user_id == user_id))).scalars().all()
            )
            given = await session.execute(
                delete(PostLike).where(PostLike.user_id == user_id).execution_options(synchronize_session=False)
            )

            # 4) likes others gave to the user's posts
            received = await session.execute(
                delete(PostLike)
                .where(PostLike.post_id.in_(select(Post.id).where(Post.author_id == user_id)))
                .execution_options(synchronize_session=False)
            )

            touched = set(own_post_ids) | set(liked_post_ids)
            await recount_post_likes(session, touched)
            if touched:
                topic_ids = (
                    await session.execute(select(Post.topic_id).where(Post.id.in_(touched)).distinct())
                ).scalars().all()
                for tid in topic_ids:
                    await mirror_topic_like_count(session, tid)

            # 5) hide the user's topics
            hidden = await session.execute(
                update(Topic)
                .where(Topic.author_id == user_id, Topic.status != TopicStatus.DELETED)
                .values(status=TopicStatus.DELETED)
                .execution_options(synchronize_session=False)
            )

            # 6) the account row itself
            try:
                async with session.begin_nested():
                    await session.execute(
                        delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
                    )
            except IntegrityError as e:
                self.log.error("account purge user=%s blocked by a remaining reference: %s", user_id, e.orig)
                raise Conflict("Account is still referenced by other records and cannot be removed")

            out = AccountPurgeOut(
                user_id=user_id,
                posts_soft_deleted=int(soft.rowcount or 0),
                likes_given_removed=int(given.rowcount or 0),
                likes_received_removed=int(received.rowcount or 0),
                topics_hidden=int(hidden.rowcount or 0),
                user_deleted=True,
            )
            self.log.info("account purge user=%s done %s", user_id, out.model_dump())
            return out

        return await self.store.write("delete_user_content", work)
