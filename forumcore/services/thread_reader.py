# forumcore/services/thread_reader.py
"""
Read side of the forum.

Nothing here trusts a cached reply counter: the initial post and the reply
count are derived from `forum_posts` on every call.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from forumcore.config import MAX_PAGE_SIZE, TOPIC_SNIPPET_LENGTH
from forumcore.errors import NotFound, ValidationError
from forumcore.models.forum_model import (
    Category, Post, PostLike, PostStatus, Tag, Topic, TopicStatus, TopicTag,
)
from forumcore.models.user_model import User
from forumcore.schemas.forum_schemas import (
    AuthorOut, CategoryOut, PostOut, TagOut, TopicDetailOut, TopicSummaryOut,
)
from forumcore.services.pagination import Page, PaginationGate, check_window
from forumcore.store import ForumStore

SORT_KEYS = ("activity", "created", "replies", "likes")


# ------------------------------
# query building blocks (shared with the write side)
# ------------------------------
def initial_post_id_stmt(topic_id: int):
    # earliest null-parent post wins; id breaks created_at ties
    return (
        select(Post.id)
        .where(Post.topic_id == topic_id, Post.parent_post_id.is_(None))
        .order_by(Post.created_at.asc(), Post.id.asc())
        .limit(1)
    )


def reply_count_expr(topic_id_col):
    """Correlated live reply count, usable in ORDER BY of a topic query."""
    first = aliased(Post)
    initial_id = (
        select(first.id)
        .where(first.topic_id == topic_id_col, first.parent_post_id.is_(None))
        .order_by(first.created_at.asc(), first.id.asc())
        .limit(1)
        .correlate_except(first)
        .scalar_subquery()
    )
    return (
        select(func.count(Post.id))
        .where(
            Post.topic_id == topic_id_col,
            Post.status == PostStatus.VISIBLE,
            Post.id != func.coalesce(initial_id, -1),
        )
        .correlate_except(Post)
        .scalar_subquery()
    )


async def load_initial_post(session: AsyncSession, topic_id: int) -> Optional[Post]:
    initial_id = (await session.execute(initial_post_id_stmt(topic_id))).scalar_one_or_none()
    if initial_id is None:
        return None
    return await session.get(Post, initial_id)


async def count_replies(session: AsyncSession, topic_id: int, initial_id: Optional[int]) -> int:
    stmt = select(func.count(Post.id)).where(
        Post.topic_id == topic_id,
        Post.status == PostStatus.VISIBLE,
    )
    if initial_id is not None:
        stmt = stmt.where(Post.id != initial_id)
    return int((await session.execute(stmt)).scalar_one() or 0)


async def require_live_topic(session: AsyncSession, topic_id: int) -> Topic:
    topic = await session.get(Topic, topic_id)
    if topic is None or topic.status == TopicStatus.DELETED:
        raise NotFound("Topic not found")
    return topic


@dataclass
class TopicFilter:
    category_id: Optional[int] = None
    tag_id: Optional[int] = None
    search: Optional[str] = None
    author_id: Optional[int] = None
    statuses: Tuple[TopicStatus, ...] = (TopicStatus.OPEN,)


# ------------------------------
# Mappers
# ------------------------------
async def _authors(session: AsyncSession, user_ids: Iterable[Optional[int]]) -> Dict[int, AuthorOut]:
    ids = {uid for uid in user_ids if uid is not None}
    if not ids:
        return {}
    rows = (await session.execute(select(User).where(User.id.in_(ids)))).scalars().all()
    return {u.id: AuthorOut(id=u.id, username=u.username, avatar=u.avatar) for u in rows}


async def _liked_post_ids(session: AsyncSession, viewer_id: Optional[int], post_ids: Sequence[int]) -> Set[int]:
    if not viewer_id or not post_ids:
        return set()
    rows = await session.execute(
        select(PostLike.post_id).where(PostLike.user_id == viewer_id, PostLike.post_id.in_(post_ids))
    )
    return set(rows.scalars().all())


async def tags_for_topic(session: AsyncSession, topic_id: int) -> List[TagOut]:
    rows = await session.execute(
        select(Tag)
        .join(TopicTag, TopicTag.tag_id == Tag.id)
        .where(TopicTag.topic_id == topic_id)
        .order_by(Tag.name.asc())
    )
    return [
        TagOut(id=t.id, name=t.name, slug=t.slug, color_classes=t.color_classes)
        for t in rows.scalars().all()
    ]


async def _category_for(session: AsyncSession, category_id: int) -> Optional[CategoryOut]:
    c = await session.get(Category, category_id)
    if c is None:
        return None
    return CategoryOut(id=c.id, name=c.name, slug=c.slug, description=c.description)


def post_to_out(p: Post, author: Optional[AuthorOut], user_liked: bool) -> PostOut:
    return PostOut(
        id=p.id,
        topic_id=p.topic_id,
        parent_post_id=p.parent_post_id,
        content=p.content,
        status=p.status.value,
        like_count=int(p.like_count or 0),
        created_at=p.created_at.isoformat(),
        author=author,
        user_liked=bool(user_liked),
    )


class ThreadReader:
    """
    Topic/reply projections, re-derived from the store on every call.

    Usage:
        reader = ThreadReader(store)
        page = await reader.list_replies(topic_id, page=1, limit=10, viewer_id=user.id)
    """

    def __init__(
        self,
        store: ForumStore,
        pagination: Optional[PaginationGate] = None,
        snippet_length: int = TOPIC_SNIPPET_LENGTH,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.pagination = pagination or PaginationGate(max_limit=MAX_PAGE_SIZE)
        self.snippet_length = snippet_length
        self.log = logger or logging.getLogger(__name__)

    # ==================== Initial post / counts ====================

    async def find_initial_post(self, topic_id: int) -> Optional[Post]:
        """The topic body, or None when the topic has no null-parent post."""
        async def work(session: AsyncSession):
            await require_live_topic(session, topic_id)
            post = await load_initial_post(session, topic_id)
            if post is None:
                self.log.warning("topic=%s has no initial post", topic_id)
            return post

        return await self.store.read("find_initial_post", work)

    async def reply_count(self, topic_id: int) -> int:
        async def work(session: AsyncSession):
            await require_live_topic(session, topic_id)
            initial_id = (await session.execute(initial_post_id_stmt(topic_id))).scalar_one_or_none()
            return await count_replies(session, topic_id, initial_id)

        return await self.store.read("reply_count", work)

    # ==================== Replies ====================

    async def list_replies(
        self,
        topic_id: int,
        page: int = 1,
        limit: int = 10,
        viewer_id: Optional[int] = None,
    ) -> Page[PostOut]:
        check_window(page, limit, self.pagination.max_limit)

        async def work(session: AsyncSession):
            await require_live_topic(session, topic_id)
            initial_id = (await session.execute(initial_post_id_stmt(topic_id))).scalar_one_or_none()

            base = select(Post).where(
                Post.topic_id == topic_id,
                Post.status == PostStatus.VISIBLE,
            )
            if initial_id is not None:
                base = base.where(Post.id != initial_id)

            window = await self.pagination.page(
                session, base, [Post.created_at.asc()], Post.id.asc(), page, limit
            )
            posts: List[Post] = window.items
            authors = await _authors(session, (p.author_id for p in posts))
            liked = await _liked_post_ids(session, viewer_id, [p.id for p in posts])
            items = [post_to_out(p, authors.get(p.author_id), p.id in liked) for p in posts]
            return window.replace_items(items)

        result = await self.store.read("list_replies", work)
        self.log.info("listed replies topic=%s page=%d total=%d", topic_id, page, result.total_count)
        return result

    # ==================== Topics ====================

    async def list_topics(
        self,
        filters: Optional[TopicFilter] = None,
        sort: str = "activity",
        page: int = 1,
        limit: int = 15,
        viewer_id: Optional[int] = None,
    ) -> Page[TopicSummaryOut]:
        filters = filters or TopicFilter()
        order_by = self._topic_order(sort)
        predicates = self._topic_predicates(filters)
        check_window(page, limit, self.pagination.max_limit)

        async def work(session: AsyncSession):
            base = select(Topic).where(*predicates)
            window = await self.pagination.page(session, base, order_by, Topic.id.desc(), page, limit)
            items = [await self._topic_summary(session, t, viewer_id) for t in window.items]
            return window.replace_items(items)

        result = await self.store.read("list_topics", work)
        self.log.info(
            "listed topics sort=%s page=%d returned=%d total=%d",
            sort, page, len(result.items), result.total_count,
        )
        return result

    async def get_topic(self, topic_id: int, viewer_id: Optional[int] = None) -> TopicDetailOut:
        async def work(session: AsyncSession):
            t = await require_live_topic(session, topic_id)
            initial = await load_initial_post(session, topic_id)
            replies = await count_replies(session, topic_id, initial.id if initial else None)

            authors = await _authors(session, [t.author_id, initial.author_id if initial else None])
            initial_out = None
            if initial is not None:
                liked = await _liked_post_ids(session, viewer_id, [initial.id])
                initial_out = post_to_out(initial, authors.get(initial.author_id), initial.id in liked)

            return TopicDetailOut(
                id=t.id,
                title=t.title,
                status=t.status.value,
                reply_count=replies,
                like_count=int(t.like_count or 0),
                created_at=t.created_at.isoformat(),
                last_activity_at=t.last_activity_at.isoformat(),
                last_activity_user_id=t.last_activity_user_id,
                author=authors.get(t.author_id),
                category=await _category_for(session, t.category_id),
                tags=await tags_for_topic(session, t.id),
                initial_post=initial_out,
            )

        return await self.store.read("get_topic", work)

    async def list_categories(self) -> List[CategoryOut]:
        async def work(session: AsyncSession):
            rows = await session.execute(select(Category).order_by(Category.name.asc()))
            return [
                CategoryOut(id=c.id, name=c.name, slug=c.slug, description=c.description)
                for c in rows.scalars().all()
            ]

        return await self.store.read("list_categories", work)

    # ------------------------------
    # helpers
    # ------------------------------
    def _topic_predicates(self, f: TopicFilter) -> list:
        statuses = [s for s in (f.statuses or ()) if s != TopicStatus.DELETED]
        if not statuses:
            raise ValidationError("At least one listable topic status is required")

        predicates = [Topic.status.in_(statuses)]
        if f.category_id is not None:
            predicates.append(Topic.category_id == f.category_id)
        if f.author_id is not None:
            predicates.append(Topic.author_id == f.author_id)
        if f.search and f.search.strip():
            predicates.append(Topic.title.ilike(f"%{f.search.strip()}%"))
        if f.tag_id is not None:
            # EXISTS instead of a join: no row multiplication, same predicate for the count
            predicates.append(
                exists().where(TopicTag.topic_id == Topic.id, TopicTag.tag_id == f.tag_id)
            )
        return predicates

    def _topic_order(self, sort: str) -> list:
        if sort == "activity":
            return [Topic.last_activity_at.desc()]
        if sort == "created":
            return [Topic.created_at.desc()]
        if sort == "replies":
            return [reply_count_expr(Topic.id).desc(), Topic.last_activity_at.desc()]
        if sort == "likes":
            return [Topic.like_count.desc(), Topic.last_activity_at.desc()]
        raise ValidationError(f"Unknown sort key '{sort}', expected one of {', '.join(SORT_KEYS)}")

    async def _topic_summary(
        self, session: AsyncSession, t: Topic, viewer_id: Optional[int]
    ) -> TopicSummaryOut:
        initial = await load_initial_post(session, t.id)
        replies = await count_replies(session, t.id, initial.id if initial else None)
        authors = await _authors(session, [t.author_id])

        snippet = None
        user_liked = False
        if initial is not None:
            snippet = (initial.content or "")[: self.snippet_length]
            user_liked = initial.id in await _liked_post_ids(session, viewer_id, [initial.id])

        return TopicSummaryOut(
            id=t.id,
            title=t.title,
            status=t.status.value,
            reply_count=replies,
            like_count=int(t.like_count or 0),
            created_at=t.created_at.isoformat(),
            last_activity_at=t.last_activity_at.isoformat(),
            content_snippet=snippet,
            author=authors.get(t.author_id),
            category=await _category_for(session, t.category_id),
            tags=await tags_for_topic(session, t.id),
            user_liked=user_liked,
        )
