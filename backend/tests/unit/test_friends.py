import pytest
import pytest_asyncio

from pawsafety.domain.social.blocks import pair_key
from pawsafety.domain.social.exceptions import (
	FriendAlreadyFriends,
	FriendAlreadySent,
	FriendBlocked,
	FriendRequestForbidden,
	FriendRequestNotFound,
	FriendSelfError,
)

from conftest import make_user


@pytest_asyncio.fixture
async def people(store):
	await make_user(store, "alice", "Alice", profileImage="https://img/alice.png")
	await make_user(store, "bob", "Bob")


@pytest.mark.asyncio
async def test_send_request_notifies_recipient(services, people):
	request = await services.friends.send_request("alice", "bob")

	assert request.id == pair_key("alice", "bob")
	assert request.status == "pending"
	assert request.from_user_name == "Alice"
	assert request.from_user_profile_image == "https://img/alice.png"
	incoming = await services.friends.incoming_requests("bob")
	assert [item.id for item in incoming] == [request.id]
	notes = await services.notifications.list_for_user("bob")
	assert [note.type for note in notes] == ["friend_request"]

	with pytest.raises(FriendAlreadySent):
		await services.friends.send_request("alice", "bob")


@pytest.mark.asyncio
async def test_accept_creates_friendship_both_ways(services, people):
	request = await services.friends.send_request("alice", "bob")

	with pytest.raises(FriendRequestForbidden):
		await services.friends.accept_request(request.id, "alice")

	accepted = await services.friends.accept_request(request.id, "bob")

	assert accepted.status == "accepted"
	assert await services.friends.are_friends("alice", "bob")
	assert await services.friends.are_friends("bob", "alice")
	assert [row["name"] for row in await services.friends.list_friends("alice")] == ["Bob"]
	assert [note.type for note in await services.notifications.list_for_user("alice")] == ["friend_request_accepted"]
	assert await services.friends.incoming_requests("bob") == []

	with pytest.raises(FriendRequestNotFound) as exc_info:
		await services.friends.accept_request(request.id, "bob")
	assert exc_info.value.reason == "not_pending"

	with pytest.raises(FriendAlreadyFriends):
		await services.friends.send_request("bob", "alice")


@pytest.mark.asyncio
async def test_declined_request_can_be_sent_again(services, people):
	request = await services.friends.send_request("alice", "bob")
	declined = await services.friends.decline_request(request.id, "bob")
	assert declined.status == "rejected"

	again = await services.friends.send_request("alice", "bob")
	assert again.status == "pending"


@pytest.mark.asyncio
async def test_request_rules(services, people):
	with pytest.raises(FriendSelfError):
		await services.friends.send_request("alice", "alice")

	await services.blocks.block("bob", "alice")
	with pytest.raises(FriendBlocked):
		await services.friends.send_request("alice", "bob")

	with pytest.raises(FriendRequestNotFound):
		await services.friends.accept_request("missing", "bob")


@pytest.mark.asyncio
async def test_remove_friend_deletes_both_directions(services, people):
	request = await services.friends.send_request("alice", "bob")
	await services.friends.accept_request(request.id, "bob")

	assert await services.friends.remove_friend("bob", "alice") is True
	assert await services.friends.list_friends("alice") == []
	assert await services.friends.remove_friend("bob", "alice") is False
