# forumcore/services/like_toggle.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from forumcore.errors import NotFound
from forumcore.models.forum_model import Post, PostLike, PostStatus
from forumcore.schemas.forum_schemas import LikeOut
from forumcore.services.counter_ledger import adjust_post_like_count, mirror_topic_like_count
from forumcore.services.thread_reader import initial_post_id_stmt
from forumcore.store import ForumStore


async def _visible_post(session: AsyncSession, post_id: int) -> Post:
    post = await session.get(Post, post_id)
    if post is None or post.status != PostStatus.VISIBLE:
        raise NotFound("Post not found")
    return post


async def _like_exists(session: AsyncSession, user_id: int, post_id: int) -> bool:
    found = await session.execute(
        select(PostLike.id).where(PostLike.user_id == user_id, PostLike.post_id == post_id).limit(1)
    )
    return found.scalar_one_or_none() is not None


async def _mirror_if_initial(session: AsyncSession, post: Post) -> None:
    initial_id = (await session.execute(initial_post_id_stmt(post.topic_id))).scalar_one_or_none()
    if initial_id == post.id:
        await mirror_topic_like_count(session, post.topic_id)


class LikeToggle:
    """
    Per-(user, post) like state. The PostLike row *is* the state; like_count
    moves in the same transaction as the row insert/delete, by exactly one.
    Repeating either call is a successful no-op.
    """

    def __init__(self, store: ForumStore, logger: Optional[logging.Logger] = None) -> None:
        self.store = store
        self.log = logger or logging.getLogger(__name__)

    async def like(self, user_id: int, post_id: int) -> LikeOut:
        async def work(session: AsyncSession):
            post = await _visible_post(session, post_id)

            if await _like_exists(session, user_id, post_id):
                self.log.info("like no-op user=%s post=%s (already liked)", user_id, post_id)
                return LikeOut(post_id=post_id, liked=True, like_count=int(post.like_count or 0))

            try:
                async with session.begin_nested():
                    session.add(PostLike(user_id=user_id, post_id=post_id))
                    await session.flush()
            except IntegrityError:
                # a concurrent like won the unique (user_id, post_id) race
                if not await _like_exists(session, user_id, post_id):
                    raise
                self.log.info("like no-op user=%s post=%s (lost race)", user_id, post_id)
                count = (await session.execute(select(Post.like_count).where(Post.id == post_id))).scalar_one()
                return LikeOut(post_id=post_id, liked=True, like_count=int(count))

            count = await adjust_post_like_count(session, post_id, +1)
            await _mirror_if_initial(session, post)
            self.log.info("liked user=%s post=%s like_count=%d", user_id, post_id, count)
            return LikeOut(post_id=post_id, liked=True, like_count=count)

        return await self.store.write("like", work)

    async def unlike(self, user_id: int, post_id: int) -> LikeOut:
        async def work(session: AsyncSession):
            post = await _visible_post(session, post_id)

            removed = await session.execute(
                delete(PostLike).where(PostLike.user_id == user_id, PostLike.post_id == post_id)
            )
            if not removed.rowcount:
                self.log.info("unlike no-op user=%s post=%s (not liked)", user_id, post_id)
                return LikeOut(post_id=post_id, liked=False, like_count=int(post.like_count or 0))

            count = await adjust_post_like_count(session, post_id, -1)
            await _mirror_if_initial(session, post)
            self.log.info("unliked user=%s post=%s like_count=%d", user_id, post_id, count)
            return LikeOut(post_id=post_id, liked=False, like_count=count)

        return await self.store.write("unlike", work)
