# forumcore/services/association_manager.py
from __future__ import annotations

import logging
import time
from typing import Any, Iterable, List, Optional

from slugify import slugify
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from forumcore.errors import Conflict, Forbidden, ValidationError
from forumcore.models.forum_model import Tag, TopicTag
from forumcore.schemas.forum_schemas import TagOut
from forumcore.services.thread_reader import require_live_topic, tags_for_topic
from forumcore.store import ForumStore

TAG_NAME_MAX = 60
TAG_COLOR_MAX = 120
TAG_SLUG_MAX = 120


def make_tag_slug(name: str) -> str:
    """
    URL-safe slug; non-ASCII scripts are transliterated (e.g. "中文" -> "zhong-wen").
    Names that leave nothing behind (pure symbols) get a time-based slug.
    """
    slug = slugify(name, max_length=TAG_SLUG_MAX)
    if not slug:
        slug = f"tag-{int(time.time() * 1000)}"
    return slug


def coerce_tag_ids(raw: Any) -> List[int]:
    """Normalise incoming tag ids: ints or numeric strings, deduplicated, order kept."""
    if raw is None or isinstance(raw, (str, bytes, dict)):
        raise ValidationError("tag_ids must be a list of ids")
    try:
        values = list(raw)
    except TypeError:
        raise ValidationError("tag_ids must be a list of ids")

    ids: List[int] = []
    for v in values:
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValidationError(f"Invalid tag id: {v!r}")
        try:
            n = int(v.strip()) if isinstance(v, str) else int(v)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid tag id: {v!r}")
        if n < 1:
            raise ValidationError(f"Invalid tag id: {v!r}")
        if n not in ids:
            ids.append(n)
    return ids


async def require_tags(session: AsyncSession, tag_ids: Iterable[int]) -> None:
    wanted = set(tag_ids)
    if not wanted:
        return
    found = set((await session.execute(select(Tag.id).where(Tag.id.in_(wanted)))).scalars().all())
    missing = sorted(wanted - found)
    if missing:
        raise ValidationError(f"Unknown tag ids: {', '.join(map(str, missing))}")


async def replace_topic_tags(session: AsyncSession, topic_id: int, tag_ids: List[int]) -> int:
    """Drop every association of the topic and write `tag_ids` back. Returns rows removed."""
    removed = await session.execute(delete(TopicTag).where(TopicTag.topic_id == topic_id))
    session.add_all([TopicTag(topic_id=topic_id, tag_id=tid) for tid in tag_ids])
    await session.flush()
    return int(removed.rowcount or 0)


class AssociationManager:
    """Topic <-> Tag associations (replace-all) and the tag vocabulary."""

    def __init__(self, store: ForumStore, logger: Optional[logging.Logger] = None) -> None:
        self.store = store
        self.log = logger or logging.getLogger(__name__)

    async def set_tags(
        self, topic_id: int, tag_ids: Any, requester_id: int, as_admin: bool = False
    ) -> List[TagOut]:
        """Replace the topic's tag set. The topic author or a moderator (`as_admin`) may do this."""
        ids = coerce_tag_ids(tag_ids)

        async def work(session: AsyncSession):
            topic = await require_live_topic(session, topic_id)
            if not as_admin and topic.author_id != requester_id:
                self.log.warning(
                    "set tags topic=%s refused requester=%s author=%s", topic_id, requester_id, topic.author_id
                )
                raise Forbidden("Admins or the topic owner may edit tags.")
            await require_tags(session, ids)
            removed = await replace_topic_tags(session, topic_id, ids)
            self.log.info("topic=%s tags replaced removed=%d inserted=%d", topic_id, removed, len(ids))
            return await tags_for_topic(session, topic_id)

        return await self.store.write("set_tags", work)

    async def create_tag(self, name: str, color_classes: Optional[str] = None) -> TagOut:
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError("Tag name is required")
        if len(trimmed) > TAG_NAME_MAX:
            raise ValidationError(f"Tag name must be at most {TAG_NAME_MAX} characters")
        if color_classes is not None and len(color_classes) > TAG_COLOR_MAX:
            raise ValidationError(f"color_classes must be at most {TAG_COLOR_MAX} characters")
        slug = make_tag_slug(trimmed)

        async def work(session: AsyncSession):
            clash = (
                await session.execute(
                    select(Tag.id).where(
                        or_(func.lower(Tag.name) == trimmed.lower(), Tag.slug == slug)
                    ).limit(1)
                )
            ).scalar_one_or_none()
            if clash is not None:
                self.log.warning("tag create conflict name=%r slug=%s existing=%s", trimmed, slug, clash)
                raise Conflict(f"A tag named '{trimmed}' already exists")

            tag = Tag(name=trimmed, slug=slug, color_classes=color_classes)
            session.add(tag)
            await session.flush()
            self.log.info("tag created id=%s name=%r slug=%s", tag.id, trimmed, slug)
            return TagOut(id=tag.id, name=tag.name, slug=tag.slug, color_classes=tag.color_classes)

        return await self.store.write("create_tag", work)

    async def list_tags(self) -> List[TagOut]:
        async def work(session: AsyncSession):
            rows = await session.execute(select(Tag).order_by(Tag.name.asc()))
            return [
                TagOut(id=t.id, name=t.name, slug=t.slug, color_classes=t.color_classes)
                for t in rows.scalars().all()
            ]

        return await self.store.read("list_tags", work)
