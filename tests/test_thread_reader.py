import pytest
from sqlalchemy import update

from forumcore.errors import NotFound, ValidationError
from forumcore.models.forum_model import Post, PostStatus, Topic, TopicStatus
from forumcore.services.thread_reader import TopicFilter
from tests.forum_helpers import insert_topic_rows


async def _topic(writer, seed, title="Hello world", content="hello", tag_ids=None, author=None):
    return await writer.create_topic(
        author_id=author or seed.alice,
        category_id=seed.general,
        title=title,
        content=content,
        tag_ids=tag_ids or [],
    )


@pytest.mark.asyncio
async def test_new_topic_has_initial_post_and_no_replies(reader, writer, seed):
    topic_id = await _topic(writer, seed, tag_ids=[seed.python, seed.asyncio])

    initial = await reader.find_initial_post(topic_id)
    assert initial is not None
    assert initial.content == "hello"
    assert initial.parent_post_id is None
    assert await reader.reply_count(topic_id) == 0

    detail = await reader.get_topic(topic_id)
    assert detail.initial_post.id == initial.id
    assert {t.id for t in detail.tags} == {seed.python, seed.asyncio}


@pytest.mark.asyncio
async def test_reply_is_counted_and_listed(reader, writer, seed):
    topic_id = await _topic(writer, seed)
    r1 = await writer.create_reply(topic_id, seed.bob, "first!")

    assert await reader.reply_count(topic_id) == 1
    page = await reader.list_replies(topic_id, page=1, limit=10)
    assert [p.id for p in page.items] == [r1.id]
    assert page.total_count == 1


@pytest.mark.asyncio
async def test_earliest_null_parent_post_is_the_initial_post(reader, session_factory, seed):
    # three null-parent posts; only the earliest is the topic body
    topic_id, (first, second, third) = await insert_topic_rows(
        session_factory, seed.alice, seed.general, "Three roots", [(None, 0), (None, 5), (None, 9)]
    )

    initial = await reader.find_initial_post(topic_id)
    assert initial.id == first

    page = await reader.list_replies(topic_id, page=1, limit=10)
    assert first not in [p.id for p in page.items]
    assert [p.id for p in page.items] == [second, third]
    assert await reader.reply_count(topic_id) == 2


@pytest.mark.asyncio
async def test_topic_without_initial_post_counts_every_visible_post(reader, session_factory, seed):
    topic_id, (root,) = await insert_topic_rows(session_factory, seed.alice, seed.general, "Orphans", [(None, 0)])
    async with session_factory() as session:
        session.add(Post(topic_id=topic_id, author_id=seed.bob, parent_post_id=root, content="a"))
        session.add(Post(topic_id=topic_id, author_id=seed.bob, parent_post_id=root, content="b"))
        await session.commit()
        # out-of-band fix turned the root into a reply of something else
        await session.execute(update(Post).where(Post.id == root).values(parent_post_id=root))
        await session.commit()

    assert await reader.find_initial_post(topic_id) is None
    assert await reader.reply_count(topic_id) == 3

    detail = await reader.get_topic(topic_id)
    assert detail.initial_post is None
    assert detail.reply_count == 3


@pytest.mark.asyncio
async def test_soft_deleted_replies_are_hidden_but_kept(reader, writer, session_factory, seed):
    topic_id = await _topic(writer, seed)
    r1 = await writer.create_reply(topic_id, seed.bob, "one")
    r2 = await writer.create_reply(topic_id, seed.carol, "two", parent_post_id=r1.id)

    async with session_factory() as session:
        await session.execute(update(Post).where(Post.id == r1.id).values(status=PostStatus.DELETED))
        await session.commit()

    assert await reader.reply_count(topic_id) == 1
    page = await reader.list_replies(topic_id)
    assert [p.id for p in page.items] == [r2.id]
    assert page.items[0].parent_post_id == r1.id


@pytest.mark.asyncio
async def test_replies_are_annotated_with_viewer_like(reader, writer, likes, seed):
    topic_id = await _topic(writer, seed)
    r1 = await writer.create_reply(topic_id, seed.bob, "one")
    r2 = await writer.create_reply(topic_id, seed.bob, "two")
    await likes.like(seed.carol, r2.id)

    as_carol = await reader.list_replies(topic_id, viewer_id=seed.carol)
    assert {p.id: p.user_liked for p in as_carol.items} == {r1.id: False, r2.id: True}

    anonymous = await reader.list_replies(topic_id)
    assert not any(p.user_liked for p in anonymous.items)


@pytest.mark.asyncio
async def test_deleted_or_missing_topic_is_not_found(reader, writer, session_factory, seed):
    topic_id = await _topic(writer, seed)
    async with session_factory() as session:
        await session.execute(update(Topic).where(Topic.id == topic_id).values(status=TopicStatus.DELETED))
        await session.commit()

    with pytest.raises(NotFound):
        await reader.find_initial_post(topic_id)
    with pytest.raises(NotFound):
        await reader.list_replies(topic_id)
    with pytest.raises(NotFound):
        await reader.get_topic(999)


@pytest.mark.asyncio
async def test_list_topics_summary(reader, writer, seed):
    long_body = "x" * 400
    topic_id = await _topic(writer, seed, title="Summary", content=long_body, tag_ids=[seed.sql])
    await writer.create_reply(topic_id, seed.bob, "reply")

    page = await reader.list_topics()
    assert page.total_count == 1
    item = page.items[0]
    assert item.id == topic_id
    assert item.reply_count == 1
    assert item.content_snippet == "x" * 150
    assert [t.slug for t in item.tags] == ["sql"]
    assert item.author.username == "alice"
    assert item.category.slug == "general"


@pytest.mark.asyncio
async def test_list_topics_filters(reader, writer, seed):
    a = await _topic(writer, seed, title="Async tips", tag_ids=[seed.asyncio])
    b = await _topic(writer, seed, title="SQL joins", tag_ids=[seed.sql], author=seed.bob)
    c = await writer.create_topic(seed.carol, seed.help, "Need help", "pls", [seed.asyncio, seed.sql])

    by_tag = await reader.list_topics(TopicFilter(tag_id=seed.sql))
    assert {t.id for t in by_tag.items} == {b, c}
    assert by_tag.total_count == 2

    by_category = await reader.list_topics(TopicFilter(category_id=seed.help))
    assert [t.id for t in by_category.items] == [c]

    by_author = await reader.list_topics(TopicFilter(author_id=seed.alice))
    assert [t.id for t in by_author.items] == [a]

    by_search = await reader.list_topics(TopicFilter(search="  joins "))
    assert [t.id for t in by_search.items] == [b]


@pytest.mark.asyncio
async def test_closed_topics_are_listed_only_on_request(reader, writer, seed):
    open_id = await _topic(writer, seed, title="Open")
    closed_id = await _topic(writer, seed, title="Closed")
    await writer.set_topic_status(closed_id, "closed")

    default = await reader.list_topics()
    assert [t.id for t in default.items] == [open_id]

    both = await reader.list_topics(TopicFilter(statuses=(TopicStatus.OPEN, TopicStatus.CLOSED)))
    assert {t.id for t in both.items} == {open_id, closed_id}

    with pytest.raises(ValidationError):
        await reader.list_topics(TopicFilter(statuses=(TopicStatus.DELETED,)))


@pytest.mark.asyncio
async def test_sort_keys(reader, writer, likes, seed):
    quiet = await _topic(writer, seed, title="Quiet")
    busy = await _topic(writer, seed, title="Busy")
    liked = await _topic(writer, seed, title="Liked")

    await writer.create_reply(busy, seed.bob, "1")
    await writer.create_reply(busy, seed.carol, "2")
    initial = await reader.find_initial_post(liked)
    await likes.like(seed.bob, initial.id)
    # last activity goes to quiet
    await writer.create_reply(quiet, seed.bob, "bump")

    by_activity = await reader.list_topics(sort="activity")
    assert [t.id for t in by_activity.items][0] == quiet

    by_created = await reader.list_topics(sort="created")
    assert [t.id for t in by_created.items] == [liked, busy, quiet]

    by_replies = await reader.list_topics(sort="replies")
    assert [t.id for t in by_replies.items][0] == busy

    by_likes = await reader.list_topics(sort="likes")
    assert by_likes.items[0].id == liked
    assert by_likes.items[0].like_count == 1


@pytest.mark.asyncio
async def test_unknown_sort_key_is_rejected(reader, writer, seed):
    await _topic(writer, seed)
    with pytest.raises(ValidationError):
        await reader.list_topics(sort="popularity")


@pytest.mark.asyncio
async def test_list_categories(reader, seed):
    categories = await reader.list_categories()
    assert [c.slug for c in categories] == ["general", "help"]
