import pytest

from pawsafety.domain.social.comments import POSTS

from conftest import auth_headers, make_user


@pytest.mark.asyncio
async def test_block_endpoints(api_client):
	blocked = await api_client.post("/blocks/bob", headers=auth_headers("alice"))
	assert blocked.status_code == 204

	listing = await api_client.get("/blocks", headers=auth_headers("alice"))
	assert listing.json() == {"blocked_user_ids": ["bob"]}

	self_block = await api_client.post("/blocks/alice", headers=auth_headers("alice"))
	assert (self_block.status_code, self_block.json()["detail"]) == (400, "self_block")

	await api_client.delete("/blocks/bob", headers=auth_headers("alice"))
	listing = await api_client.get("/blocks", headers=auth_headers("alice"))
	assert listing.json() == {"blocked_user_ids": []}


@pytest.mark.asyncio
async def test_friend_request_flow(api_client, store):
	await make_user(store, "alice", "Alice")
	await make_user(store, "bob", "Bob")

	sent = await api_client.post("/friends/requests", json={"to_user_id": "bob"}, headers=auth_headers("alice"))
	assert sent.status_code == 201
	request_id = sent.json()["id"]

	duplicate = await api_client.post("/friends/requests", json={"to_user_id": "bob"}, headers=auth_headers("alice"))
	assert (duplicate.status_code, duplicate.json()["detail"]) == (409, "already_sent")

	incoming = await api_client.get("/friends/requests/incoming", headers=auth_headers("bob"))
	assert [row["id"] for row in incoming.json()] == [request_id]

	wrong_user = await api_client.post(f"/friends/requests/{request_id}/accept", headers=auth_headers("alice"))
	assert wrong_user.status_code == 403

	accepted = await api_client.post(f"/friends/requests/{request_id}/accept", headers=auth_headers("bob"))
	assert accepted.json()["status"] == "accepted"
	again = await api_client.post(f"/friends/requests/{request_id}/decline", headers=auth_headers("bob"))
	assert (again.status_code, again.json()["detail"]) == (409, "not_pending")

	friends = await api_client.get("/friends", headers=auth_headers("alice"))
	assert [row["id"] for row in friends.json()] == ["bob"]

	suggestions = await api_client.get("/mentions/suggest?q=bo", headers=auth_headers("alice"))
	assert suggestions.json() == [{"id": "bob", "name": "Bob", "profile_image": None}]

	removed = await api_client.delete("/friends/bob", headers=auth_headers("alice"))
	assert removed.status_code == 204
	assert (await api_client.get("/friends", headers=auth_headers("bob"))).json() == []


@pytest.mark.asyncio
async def test_blocked_user_cannot_send_friend_request(api_client):
	await api_client.post("/blocks/alice", headers=auth_headers("bob"))
	response = await api_client.post("/friends/requests", json={"to_user_id": "bob"}, headers=auth_headers("alice"))
	assert (response.status_code, response.json()["detail"]) == (403, "blocked")


@pytest.mark.asyncio
async def test_comments_likes_and_notifications(api_client, store):
	await make_user(store, "alice", "Alice")
	await make_user(store, "bob", "Bob")
	await store.set(POSTS, "p1", {"userId": "alice", "likes": []})

	created = await api_client.post("/comments/post/p1", json={"text": "so cute"}, headers=auth_headers("bob"))
	assert created.status_code == 201
	comment_id = created.json()["id"]

	reply = await api_client.post(
		"/comments/post/p1",
		json={"text": "thanks @Bob", "parent_comment_id": comment_id},
		headers=auth_headers("alice"),
	)
	assert reply.json()["mentioned_users"] == ["bob"]

	tree = await api_client.get("/comments/post/p1", headers=auth_headers("bob"))
	assert [node["id"] for node in tree.json()] == [comment_id]
	assert tree.json()[0]["replies"][0]["text"] == "thanks @Bob"

	liked = await api_client.post(f"/comments/post/p1/{comment_id}/like", headers=auth_headers("alice"))
	assert liked.json() == {"liked": True, "likes": ["alice"]}

	post_like = await api_client.post("/posts/p1/like", headers=auth_headers("bob"))
	assert post_like.json() == {"liked": True, "likes": ["bob"]}

	alice_notes = await api_client.get("/notifications", headers=auth_headers("alice"))
	assert sorted(note["type"] for note in alice_notes.json()) == ["post_comment", "post_like"]
	bob_notes = await api_client.get("/notifications", headers=auth_headers("bob"))
	assert sorted(note["type"] for note in bob_notes.json()) == ["comment_like", "comment_mention_reply"]

	unread = await api_client.get("/notifications/unread", headers=auth_headers("bob"))
	assert unread.json() == {"count": 2}
	first_id = bob_notes.json()[0]["id"]
	marked = await api_client.post(f"/notifications/{first_id}/read", headers=auth_headers("bob"))
	assert marked.json()["read"] is True
	foreign = await api_client.post(f"/notifications/{first_id}/read", headers=auth_headers("alice"))
	assert foreign.status_code == 404
	cleared = await api_client.post("/notifications/read-all", headers=auth_headers("bob"))
	assert cleared.json() == {"count": 1}

	edit = await api_client.patch(
		f"/comments/post/p1/{comment_id}",
		json={"text": "edited"},
		headers=auth_headers("alice"),
	)
	assert edit.status_code == 403
	deleted = await api_client.delete(f"/comments/post/p1/{comment_id}", headers=auth_headers("bob"))
	assert deleted.json() == {"count": 2}


@pytest.mark.asyncio
async def test_comment_on_missing_target(api_client):
	response = await api_client.post("/comments/report/nope", json={"text": "hi"}, headers=auth_headers("bob"))
	assert (response.status_code, response.json()["detail"]) == (404, "target_not_found")
