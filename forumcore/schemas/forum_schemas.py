from __future__ import annotations

from pydantic import BaseModel, Field
from typing import List, Literal, Optional, Union


class AuthorOut(BaseModel):
    id: int
    username: Optional[str] = None
    avatar: Optional[str] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None


class TagOut(BaseModel):
    id: int
    name: str
    slug: str
    color_classes: Optional[str] = None


class PostOut(BaseModel):
    id: int
    topic_id: int
    parent_post_id: Optional[int] = None
    content: str
    status: str
    like_count: int = 0
    created_at: str
    author: Optional[AuthorOut] = None  # None once the account is gone
    user_liked: bool = False


class TopicSummaryOut(BaseModel):
    id: int
    title: str
    status: str
    reply_count: int
    like_count: int
    created_at: str
    last_activity_at: str
    content_snippet: Optional[str] = None
    author: Optional[AuthorOut] = None
    category: Optional[CategoryOut] = None
    tags: List[TagOut] = []
    user_liked: bool = False


class TopicDetailOut(BaseModel):
    id: int
    title: str
    status: str
    reply_count: int
    like_count: int
    created_at: str
    last_activity_at: str
    last_activity_user_id: Optional[int] = None
    author: Optional[AuthorOut] = None
    category: Optional[CategoryOut] = None
    tags: List[TagOut] = []
    initial_post: Optional[PostOut] = None


class TopicPageOut(BaseModel):
    items: List[TopicSummaryOut]
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_prev: bool
    has_next: bool


class PostPageOut(BaseModel):
    items: List[PostOut]
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_prev: bool
    has_next: bool


class CreateTopicIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    category_id: int
    tag_ids: List[int] = Field(default_factory=list)


class TopicCreatedOut(BaseModel):
    id: int


class CreateReplyIn(BaseModel):
    content: str = Field(min_length=1)
    parent_post_id: Optional[int] = None


class SetTopicTagsIn(BaseModel):
    # ids are coerced (and rejected) by the association manager
    tag_ids: List[Union[int, str]]


class CreateTagIn(BaseModel):
    name: str = Field(min_length=1, max_length=60)
    color_classes: Optional[str] = Field(default=None, max_length=120)


class TopicStatusIn(BaseModel):
    status: Literal["open", "closed"]


class LikeOut(BaseModel):
    post_id: int
    liked: bool
    like_count: int


class AccountPurgeOut(BaseModel):
    user_id: int
    posts_soft_deleted: int
    likes_given_removed: int
    likes_received_removed: int
    topics_hidden: int
    user_deleted: bool
