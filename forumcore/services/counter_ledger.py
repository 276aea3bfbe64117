# forumcore/services/counter_ledger.py
"""
Counter updates. Every helper here runs on the caller's session, inside the
caller's transaction, right next to the row change that causes it.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from forumcore.models.forum_model import Post, PostLike, Topic
from forumcore.services.thread_reader import initial_post_id_stmt


async def adjust_post_like_count(session: AsyncSession, post_id: int, delta: int) -> int:
    """Add `delta` to the post's like_count, clamped at 0. Returns the stored value."""
    bumped = Post.like_count + delta
    await session.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(like_count=case((bumped < 0, 0), else_=bumped))
        .execution_options(synchronize_session=False)
    )
    return int((await session.execute(select(Post.like_count).where(Post.id == post_id))).scalar_one())


async def recount_post_likes(session: AsyncSession, post_ids: Iterable[int]) -> None:
    ids = sorted(set(post_ids))
    if not ids:
        return
    live = (
        select(func.count(PostLike.id))
        .where(PostLike.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )
    await session.execute(
        update(Post)
        .where(Post.id.in_(ids))
        .values(like_count=live)
        .execution_options(synchronize_session=False)
    )


async def mirror_topic_like_count(session: AsyncSession, topic_id: int) -> int:
    """Copy the initial post's like_count onto the topic row (0 without an initial post)."""
    initial_id = (await session.execute(initial_post_id_stmt(topic_id))).scalar_one_or_none()
    count = 0
    if initial_id is not None:
        count = int((await session.execute(select(Post.like_count).where(Post.id == initial_id))).scalar_one())
    await session.execute(
        update(Topic)
        .where(Topic.id == topic_id)
        .values(like_count=count)
        .execution_options(synchronize_session=False)
    )
    return count


async def touch_topic_activity(
    session: AsyncSession,
    topic_id: int,
    user_id: Optional[int],
    at: datetime,
) -> None:
    await session.execute(
        update(Topic)
        .where(Topic.id == topic_id)
        .values(last_activity_at=at, last_activity_user_id=user_id)
        .execution_options(synchronize_session=False)
    )
