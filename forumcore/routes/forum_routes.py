from fastapi import APIRouter, Depends, Query, Request, Response
from typing import List, Optional

from forumcore.config import (
    FORUM_LIKE_RATE, FORUM_REPLY_CREATE_RATE, FORUM_TAG_CREATE_RATE, FORUM_TOPIC_CREATE_RATE,
    MAX_PAGE_SIZE, REPLIES_PAGE_SIZE, TOPICS_PAGE_SIZE,
)
from forumcore.deps.admin import is_admin, require_admin
from forumcore.deps.forum import (
    get_association_manager, get_cascade_deleter, get_like_toggle, get_thread_reader, get_thread_writer,
)
from forumcore.limiter import limiter
from forumcore.models.forum_model import TopicStatus
from forumcore.models.user_model import User
from forumcore.schemas.forum_schemas import (
    CategoryOut, CreateReplyIn, CreateTagIn, CreateTopicIn, LikeOut, PostOut, PostPageOut,
    SetTopicTagsIn, TagOut, TopicCreatedOut, TopicDetailOut, TopicPageOut, TopicStatusIn,
)
from forumcore.services.association_manager import AssociationManager
from forumcore.services.cascade_deleter import CascadeDeleter
from forumcore.services.like_toggle import LikeToggle
from forumcore.services.pagination import Page
from forumcore.services.thread_reader import ThreadReader, TopicFilter
from forumcore.services.thread_writer import ThreadWriter
from forumcore.utils.token_utils import get_current_user, get_current_user_optional

router = APIRouter(prefix="/forum", tags=["forum"])


# ------------------------------
# helpers
# ------------------------------
def _page_fields(p: Page) -> dict:
    return dict(
        items=p.items,
        page=p.page,
        limit=p.limit,
        total_count=p.total_count,
        total_pages=p.total_pages,
        has_prev=p.has_prev,
        has_next=p.has_next,
    )


def _viewer_id(viewer: Optional[User]) -> Optional[int]:
    return getattr(viewer, "id", None)


# ------------------------------
# Reference data
# ------------------------------
@router.get("/categories", response_model=List[CategoryOut])
async def list_categories(reader: ThreadReader = Depends(get_thread_reader)):
    return await reader.list_categories()


@router.get("/tags", response_model=List[TagOut])
async def list_tags(tags: AssociationManager = Depends(get_association_manager)):
    return await tags.list_tags()


@router.post("/tags", response_model=TagOut, status_code=201)
@limiter.limit(FORUM_TAG_CREATE_RATE)
async def create_tag(
    request: Request,
    payload: CreateTagIn,
    _user: User = Depends(get_current_user),
    tags: AssociationManager = Depends(get_association_manager),
):
    return await tags.create_tag(payload.name, payload.color_classes)


# ------------------------------
# Topics
# ------------------------------
@router.get("/topics", response_model=TopicPageOut)
async def list_topics(
    page: int = Query(1, ge=1),
    limit: int = Query(TOPICS_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    category_id: Optional[int] = None,
    tag_id: Optional[int] = None,
    author_id: Optional[int] = None,
    search: Optional[str] = None,
    sort_by: str = "activity",
    include_closed: bool = False,
    viewer: Optional[User] = Depends(get_current_user_optional),
    reader: ThreadReader = Depends(get_thread_reader),
):
    statuses = (TopicStatus.OPEN, TopicStatus.CLOSED) if include_closed else (TopicStatus.OPEN,)
    filters = TopicFilter(
        category_id=category_id,
        tag_id=tag_id,
        search=search,
        author_id=author_id,
        statuses=statuses,
    )
    result = await reader.list_topics(filters, sort_by, page, limit, _viewer_id(viewer))
    return TopicPageOut(**_page_fields(result))


@router.post("/topics", response_model=TopicCreatedOut, status_code=201)
@limiter.limit(FORUM_TOPIC_CREATE_RATE)
async def create_topic(
    request: Request,
    payload: CreateTopicIn,
    user: User = Depends(get_current_user),
    writer: ThreadWriter = Depends(get_thread_writer),
):
    topic_id = await writer.create_topic(
        author_id=user.id,
        category_id=payload.category_id,
        title=payload.title,
        content=payload.content,
        tag_ids=payload.tag_ids,
    )
    return TopicCreatedOut(id=topic_id)


@router.get("/topics/{topic_id}", response_model=TopicDetailOut)
async def get_topic(
    topic_id: int,
    viewer: Optional[User] = Depends(get_current_user_optional),
    reader: ThreadReader = Depends(get_thread_reader),
):
    return await reader.get_topic(topic_id, _viewer_id(viewer))


@router.delete("/topics/{topic_id}", status_code=204)
async def delete_topic(
    topic_id: int,
    user: User = Depends(get_current_user),
    deleter: CascadeDeleter = Depends(get_cascade_deleter),
):
    # Admins OR owner of the topic
    await deleter.delete_topic(topic_id, requester_id=user.id, as_admin=is_admin(user))
    return Response(status_code=204)


@router.patch("/topics/{topic_id}/status")
async def set_topic_status(
    topic_id: int,
    body: TopicStatusIn,
    _admin: User = Depends(require_admin),
    writer: ThreadWriter = Depends(get_thread_writer),
):
    new_status = await writer.set_topic_status(topic_id, body.status)
    return {"id": topic_id, "status": new_status}


@router.put("/topics/{topic_id}/tags", response_model=List[TagOut])
async def set_topic_tags(
    topic_id: int,
    body: SetTopicTagsIn,
    user: User = Depends(get_current_user),
    tags: AssociationManager = Depends(get_association_manager),
):
    # Admins OR owner of the topic
    return await tags.set_tags(topic_id, body.tag_ids, requester_id=user.id, as_admin=is_admin(user))


# ------------------------------
# Replies
# ------------------------------
@router.get("/topics/{topic_id}/posts", response_model=PostPageOut)
async def list_replies(
    topic_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(REPLIES_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    viewer: Optional[User] = Depends(get_current_user_optional),
    reader: ThreadReader = Depends(get_thread_reader),
):
    result = await reader.list_replies(topic_id, page, limit, _viewer_id(viewer))
    return PostPageOut(**_page_fields(result))


@router.post("/topics/{topic_id}/posts", response_model=PostOut, status_code=201)
@limiter.limit(FORUM_REPLY_CREATE_RATE)
async def create_reply(
    request: Request,
    topic_id: int,
    payload: CreateReplyIn,
    user: User = Depends(get_current_user),
    writer: ThreadWriter = Depends(get_thread_writer),
):
    return await writer.create_reply(topic_id, user.id, payload.content, payload.parent_post_id)


# ------------------------------
# Likes (idempotent both ways)
# ------------------------------
@router.post("/posts/{post_id}/like", response_model=LikeOut)
@limiter.limit(FORUM_LIKE_RATE)
async def like_post(
    request: Request,
    post_id: int,
    user: User = Depends(get_current_user),
    likes: LikeToggle = Depends(get_like_toggle),
):
    return await likes.like(user.id, post_id)


@router.delete("/posts/{post_id}/like", response_model=LikeOut)
@limiter.limit(FORUM_LIKE_RATE)
async def unlike_post(
    request: Request,
    post_id: int,
    user: User = Depends(get_current_user),
    likes: LikeToggle = Depends(get_like_toggle),
):
    return await likes.unlike(user.id, post_id)
