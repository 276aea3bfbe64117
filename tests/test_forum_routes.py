import pytest

from tests.forum_helpers import auth_headers


@pytest.fixture
def alice(seed):
    return auth_headers(seed.alice, "alice")


@pytest.fixture
def bob(seed):
    return auth_headers(seed.bob, "bob")


@pytest.fixture
def moderator(seed):
    return auth_headers(seed.admin, "mod", role="ADMIN")


async def _create_topic(client, headers, seed, **overrides):
    body = {"title": "Hello", "content": "hello", "category_id": seed.general, "tag_ids": [seed.python]}
    body.update(overrides)
    resp = await client.post("/forum/topics", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


@pytest.mark.asyncio
async def test_reference_data(client, seed):
    categories = await client.get("/forum/categories")
    assert [c["slug"] for c in categories.json()] == ["general", "help"]

    tags = await client.get("/forum/tags")
    assert {t["slug"] for t in tags.json()} == {"python", "asyncio", "sql"}


@pytest.mark.asyncio
async def test_topic_thread_flow(client, seed, alice, bob):
    topic_id = await _create_topic(client, alice, seed)

    reply = await client.post(f"/forum/topics/{topic_id}/posts", json={"content": "R1"}, headers=bob)
    assert reply.status_code == 201
    reply_id = reply.json()["id"]

    liked = await client.post(f"/forum/posts/{reply_id}/like", headers=alice)
    assert liked.json() == {"post_id": reply_id, "liked": True, "like_count": 1}
    liked_again = await client.post(f"/forum/posts/{reply_id}/like", headers=alice)
    assert liked_again.json()["like_count"] == 1

    replies = await client.get(f"/forum/topics/{topic_id}/posts", headers=alice)
    body = replies.json()
    assert body["total_count"] == 1
    assert body["total_pages"] == 1
    assert body["items"][0]["user_liked"] is True

    anonymous = await client.get(f"/forum/topics/{topic_id}/posts")
    assert anonymous.json()["items"][0]["user_liked"] is False

    detail = await client.get(f"/forum/topics/{topic_id}")
    assert detail.json()["reply_count"] == 1
    assert detail.json()["initial_post"]["content"] == "hello"

    listing = await client.get("/forum/topics", params={"sort_by": "replies", "limit": 5})
    assert listing.json()["items"][0]["id"] == topic_id

    unliked = await client.delete(f"/forum/posts/{reply_id}/like", headers=alice)
    assert unliked.json() == {"post_id": reply_id, "liked": False, "like_count": 0}


@pytest.mark.asyncio
async def test_errors_use_code_and_message(client, seed, alice):
    missing = await client.get("/forum/topics/9999")
    assert missing.status_code == 404
    assert missing.json() == {"detail": {"code": "NOT_FOUND", "message": "Topic not found"}}

    bad_sort = await client.get("/forum/topics", params={"sort_by": "hot"})
    assert bad_sort.status_code == 400
    assert bad_sort.json()["detail"]["code"] == "VALIDATION_ERROR"

    bad_category = await client.post(
        "/forum/topics", json={"title": "t", "content": "c", "category_id": 9999}, headers=alice
    )
    assert bad_category.status_code == 404


@pytest.mark.asyncio
async def test_writes_require_a_token(client, seed):
    resp = await client.post("/forum/topics", json={"title": "t", "content": "c", "category_id": seed.general})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_delete_topic_ownership(client, seed, alice, bob, moderator):
    topic_id = await _create_topic(client, alice, seed)

    refused = await client.delete(f"/forum/topics/{topic_id}", headers=bob)
    assert refused.status_code == 403
    assert refused.json()["detail"]["code"] == "FORBIDDEN"

    assert (await client.delete(f"/forum/topics/{topic_id}", headers=alice)).status_code == 204
    assert (await client.get(f"/forum/topics/{topic_id}")).status_code == 404

    other = await _create_topic(client, bob, seed, title="Second")
    assert (await client.delete(f"/forum/topics/{other}", headers=moderator)).status_code == 204


@pytest.mark.asyncio
async def test_topic_tags_and_status(client, seed, alice, bob, moderator):
    topic_id = await _create_topic(client, alice, seed)

    refused = await client.put(f"/forum/topics/{topic_id}/tags", json={"tag_ids": [seed.sql]}, headers=bob)
    assert refused.status_code == 403
    assert refused.json()["detail"]["code"] == "FORBIDDEN"

    by_moderator = await client.put(f"/forum/topics/{topic_id}/tags", json={"tag_ids": [seed.sql]}, headers=moderator)
    assert [t["slug"] for t in by_moderator.json()] == ["sql"]

    replaced = await client.put(
        f"/forum/topics/{topic_id}/tags", json={"tag_ids": [str(seed.sql), seed.asyncio]}, headers=alice
    )
    assert replaced.status_code == 200
    assert {t["slug"] for t in replaced.json()} == {"sql", "asyncio"}

    invalid = await client.put(f"/forum/topics/{topic_id}/tags", json={"tag_ids": ["abc"]}, headers=alice)
    assert invalid.status_code == 400

    assert (await client.patch(f"/forum/topics/{topic_id}/status", json={"status": "closed"}, headers=alice)).status_code == 403
    closed = await client.patch(f"/forum/topics/{topic_id}/status", json={"status": "closed"}, headers=moderator)
    assert closed.json() == {"id": topic_id, "status": "closed"}

    late = await client.post(f"/forum/topics/{topic_id}/posts", json={"content": "late"}, headers=bob)
    assert late.status_code == 403

    hidden = await client.get("/forum/topics")
    assert hidden.json()["total_count"] == 0
    shown = await client.get("/forum/topics", params={"include_closed": True})
    assert shown.json()["total_count"] == 1


@pytest.mark.asyncio
async def test_create_tag_endpoint(client, seed, alice):
    created = await client.post("/forum/tags", json={"name": "Type Hints"}, headers=alice)
    assert created.status_code == 201
    assert created.json()["slug"] == "type-hints"

    duplicate = await client.post("/forum/tags", json={"name": "type hints"}, headers=alice)
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_delete_my_account(client, seed, alice, bob):
    topic_id = await _create_topic(client, alice, seed)
    await client.post(f"/forum/topics/{topic_id}/posts", json={"content": "bye"}, headers=bob)

    resp = await client.delete("/users/me", headers=bob)
    assert resp.status_code == 200
    assert resp.json()["posts_soft_deleted"] == 1
    assert resp.json()["user_deleted"] is True

    detail = await client.get(f"/forum/topics/{topic_id}")
    assert detail.json()["reply_count"] == 0

    # the token outlives the account
    assert (await client.delete("/users/me", headers=bob)).status_code == 401
