from datetime import timedelta

import pytest
import pytest_asyncio

from pawsafety.domain.chat.attachments import ImageUpload, preview_for
from pawsafety.domain.chat.exceptions import (
	ChatIdentityError,
	ChatRestricted,
	EmptyMessage,
	MessageDeleted,
	MessageForbidden,
	RecipientBanned,
	ReportResolved,
	SenderBlocked,
	ThreadForbidden,
)
from pawsafety.domain.chat.identity import ChatKind, direct_chat_id, report_chat_id
from pawsafety.domain.chat.messages import MESSAGE_REPORTS, MessageStore

from conftest import BASE_TIME, FailingBlobs, make_user, register_push_token

DIRECT = ChatKind.DIRECT
REPORT = ChatKind.REPORT


@pytest_asyncio.fixture
async def people(store):
	await make_user(store, "alice", "Alice")
	await make_user(store, "bob", "Bob")


@pytest.mark.asyncio
async def test_first_message_creates_thread_unread_for_recipient(services, people):
	message = await services.messages.send(DIRECT, "alice", "bob", text=" hello ")

	assert message.text == "hello"
	assert message.sender_name == "Alice"
	thread = await services.threads.get(DIRECT, direct_chat_id("alice", "bob"))
	assert thread.participants == ("alice", "bob")
	assert thread.last_message == "hello"
	assert thread.read_by == ("alice",)
	assert await services.threads.unread_count("bob") == 1
	assert await services.threads.unread_count("alice") == 0


@pytest.mark.asyncio
async def test_mark_read_clears_unread_and_next_message_restores_it(services, people):
	chat_id = direct_chat_id("alice", "bob")
	await services.messages.send(DIRECT, "alice", "bob", text="one")
	await services.threads.mark_read(DIRECT, chat_id, "bob")
	assert await services.threads.unread_count("bob") == 0

	await services.messages.send(DIRECT, "bob", "alice", text="two")
	thread = await services.threads.get(DIRECT, chat_id)
	assert thread.read_by == ("bob",)
	assert await services.threads.unread_count("alice") == 1
	assert await services.threads.unread_count("bob") == 0


@pytest.mark.asyncio
async def test_mark_read_on_missing_thread_is_a_no_op(services):
	assert await services.threads.mark_read(DIRECT, "direct_x_y", "x") is None


@pytest.mark.asyncio
async def test_empty_message_rejected(services, people):
	with pytest.raises(EmptyMessage):
		await services.messages.send(DIRECT, "alice", "bob", text="   ")
	assert await services.threads.get(DIRECT, direct_chat_id("alice", "bob")) is None


@pytest.mark.asyncio
async def test_self_chat_rejected(services, people):
	with pytest.raises(ChatIdentityError):
		await services.messages.send(DIRECT, "alice", "alice", text="me")


@pytest.mark.asyncio
async def test_block_in_either_direction_rejects_send(services, people):
	await services.blocks.block("bob", "alice")

	with pytest.raises(SenderBlocked) as exc_info:
		await services.messages.send(DIRECT, "alice", "bob", text="hi")
	assert exc_info.value.reason == "blocked_by_recipient"

	with pytest.raises(SenderBlocked) as exc_info:
		await services.messages.send(DIRECT, "bob", "alice", text="hi")
	assert exc_info.value.reason == "recipient_blocked"

	assert await services.threads.get(DIRECT, direct_chat_id("alice", "bob")) is None

	await services.blocks.unblock("bob", "alice")
	message = await services.messages.send(DIRECT, "alice", "bob", text="hi again")
	assert message.text == "hi again"


@pytest.mark.asyncio
async def test_padded_recipient_id_still_hits_the_block(services, people):
	await services.blocks.block("bob", "alice")

	for recipient in (" bob", "bob ", "\tbob"):
		with pytest.raises(SenderBlocked):
			await services.messages.send(DIRECT, "alice", recipient, text="bypass")

	assert await services.threads.get(DIRECT, direct_chat_id("alice", "bob")) is None
	assert await services.notifications.list_for_user(" bob") == []


@pytest.mark.asyncio
async def test_resolved_report_rejects_both_participants(services, store, people):
	await store.set("stray_reports", "r1", {"userId": "bob", "status": "Lost"})
	await services.messages.send(REPORT, "alice", "bob", text="I saw your dog", report_id="r1")
	await services.reports.resolve("r1", "bob")

	for sender, recipient in (("alice", "bob"), ("bob", "alice")):
		with pytest.raises(ReportResolved):
			await services.messages.send(REPORT, sender, recipient, text="still there?", report_id="r1")

	history = await services.messages.list_for_user(REPORT, report_chat_id("r1", "alice", "bob"), "bob")
	assert [message.text for message in history] == ["I saw your dog"]


@pytest.mark.asyncio
async def test_padded_report_id_still_hits_the_resolved_check(services, store, people):
	await store.set("stray_reports", "r1", {"userId": "bob", "status": "Resolved"})

	with pytest.raises(ReportResolved):
		await services.messages.send(REPORT, "alice", "bob", text="bypass", report_id="r1 ")

	assert await services.threads.get(REPORT, report_chat_id("r1", "alice", "bob")) is None


@pytest.mark.asyncio
async def test_send_stores_cleaned_ids(services, store, people):
	await store.set("stray_reports", "r1", {"userId": "bob", "status": "Lost"})

	message = await services.messages.send(REPORT, " alice", "bob ", text="found", report_id=" r1 ")

	assert message.sender_id == "alice"
	assert message.report_id == "r1"
	assert message.chat_id == report_chat_id("r1", "alice", "bob")
	notifications = await services.notifications.list_for_user("bob")
	assert [item.type for item in notifications] == ["new_message"]


@pytest.mark.asyncio
async def test_active_chat_restriction_rejects_send(services, store, people):
	expires = BASE_TIME + timedelta(days=1)
	await store.set("users", "alice", {"chatRestricted": True, "chatRestrictionExpiresAt": expires}, merge=True)

	with pytest.raises(ChatRestricted) as exc_info:
		await services.messages.send(DIRECT, "alice", "bob", text="hi")
	assert exc_info.value.expires_at == expires


@pytest.mark.asyncio
async def test_expired_chat_restriction_is_cleared(services, store, people):
	expires = BASE_TIME - timedelta(minutes=5)
	await store.set("users", "alice", {"chatRestricted": True, "chatRestrictionExpiresAt": expires}, merge=True)

	message = await services.messages.send(DIRECT, "alice", "bob", text="hi")

	assert message.text == "hi"
	profile = await store.get("users", "alice")
	assert profile.get("chatRestricted") is False
	assert profile.get("chatRestrictionExpiresAt") is None


@pytest.mark.asyncio
async def test_banned_recipient_rejected(services, store, people):
	await store.set("users", "bob", {"status": "banned"}, merge=True)
	with pytest.raises(RecipientBanned):
		await services.messages.send(DIRECT, "alice", "bob", text="hi")


@pytest.mark.asyncio
async def test_image_message_uses_photo_preview(services, people):
	message = await services.messages.send(
		DIRECT,
		"alice",
		"bob",
		images=[ImageUpload(content=b"\xff\xd8jpeg", content_type="image/jpeg")],
	)

	assert message.text is None
	assert len(message.images) == 1
	assert message.images[0].startswith("http://cdn.test/uploads/chat_images/direct_alice_bob/")
	thread = await services.threads.get(DIRECT, direct_chat_id("alice", "bob"))
	assert thread.last_message == "📷 Photo"


def test_preview_for_counts_images():
	assert preview_for("hey", None) == "hey"
	assert preview_for("hey", ["a"]) == "📷 Photo"
	assert preview_for(None, ["a", "b", "c"]) == "📷 3 Photos"


@pytest.mark.asyncio
async def test_failed_uploads_are_skipped(services, store, people):
	messages = MessageStore(store, services.threads, services.blocks, FailingBlobs())
	image = ImageUpload(content=b"png", content_type="image/png")

	message = await messages.send(DIRECT, "alice", "bob", text="caption", images=[image])
	assert message.text == "caption"
	assert message.images is None

	with pytest.raises(EmptyMessage) as exc_info:
		await messages.send(DIRECT, "alice", "bob", images=[image])
	assert exc_info.value.reason == "images_failed"


@pytest.mark.asyncio
async def test_deleted_thread_reappears_for_recipient_with_only_new_messages(services, people):
	chat_id = direct_chat_id("alice", "bob")
	await services.messages.send(DIRECT, "alice", "bob", text="old")
	hidden = await services.threads.soft_delete(DIRECT, chat_id, "bob")
	assert hidden == 1
	assert await services.threads.list_for_user("bob") == []

	await services.messages.send(DIRECT, "alice", "bob", text="new")

	thread = await services.threads.get(DIRECT, chat_id)
	assert thread.deleted_by == ()
	assert thread.read_by == ("alice",)
	summaries = await services.threads.list_for_user("bob")
	assert [summary.thread.id for summary in summaries] == [chat_id]
	assert summaries[0].other_user_name == "Alice"
	assert summaries[0].unread is True
	history = await services.messages.list_for_user(DIRECT, chat_id, "bob")
	assert [message.text for message in history] == ["new"]
	alice_history = await services.messages.list_for_user(DIRECT, chat_id, "alice")
	assert [message.text for message in alice_history] == ["old", "new"]


@pytest.mark.asyncio
async def test_sender_who_deleted_thread_keeps_it_hidden(services, people):
	chat_id = direct_chat_id("alice", "bob")
	await services.messages.send(DIRECT, "bob", "alice", text="first")
	await services.threads.soft_delete(DIRECT, chat_id, "alice")

	await services.messages.send(DIRECT, "alice", "bob", text="reply")

	assert await services.threads.list_for_user("alice") == []
	assert [summary.thread.id for summary in await services.threads.list_for_user("bob")] == [chat_id]


@pytest.mark.asyncio
async def test_archive_moves_thread_between_views(services, people):
	chat_id = direct_chat_id("alice", "bob")
	await services.messages.send(DIRECT, "alice", "bob", text="hi")
	await services.threads.archive(DIRECT, chat_id)

	assert await services.threads.list_for_user("alice") == []
	archived = await services.threads.list_for_user("alice", view="archived")
	assert [summary.thread.id for summary in archived] == [chat_id]

	await services.threads.unarchive(DIRECT, chat_id)
	assert len(await services.threads.list_for_user("alice")) == 1


@pytest.mark.asyncio
async def test_thread_list_is_newest_first_and_joins_report_status(services, store, people):
	await make_user(store, "carol", "Carol")
	await store.set("stray_reports", "r9", {"userId": "carol", "status": "Found"})
	await services.messages.send(DIRECT, "alice", "bob", text="older")
	await services.messages.send(REPORT, "carol", "alice", text="newer", report_id="r9")

	summaries = await services.threads.list_for_user("alice")

	assert [summary.thread.kind for summary in summaries] == [REPORT, DIRECT]
	assert summaries[0].report_status == "Found"
	assert summaries[0].other_user_name == "Carol"
	assert summaries[1].report_status is None


@pytest.mark.asyncio
async def test_direct_delete_is_soft(services, people):
	chat_id = direct_chat_id("alice", "bob")
	message = await services.messages.send(DIRECT, "alice", "bob", text="oops")

	with pytest.raises(MessageForbidden):
		await services.messages.delete(DIRECT, message.id, "bob")

	deleted = await services.messages.delete(DIRECT, message.id, "alice")
	assert deleted.deleted is True
	assert deleted.deleted_by == "alice"
	assert deleted.text is None

	history = await services.messages.list_for_user(DIRECT, chat_id, "bob")
	assert [(item.id, item.deleted) for item in history] == [(message.id, True)]

	with pytest.raises(MessageDeleted):
		await services.messages.edit(DIRECT, message.id, "alice", "fixed")


@pytest.mark.asyncio
async def test_report_delete_is_hard(services, store, people):
	await store.set("stray_reports", "r1", {"userId": "bob", "status": "Stray"})
	chat_id = report_chat_id("r1", "alice", "bob")
	message = await services.messages.send(REPORT, "alice", "bob", text="oops", report_id="r1")

	assert await services.messages.delete(REPORT, message.id, "alice") is None

	assert await services.messages.list_for_user(REPORT, chat_id, "bob") == []


@pytest.mark.asyncio
async def test_edit_marks_message_edited(services, people):
	message = await services.messages.send(DIRECT, "alice", "bob", text="helo")

	with pytest.raises(MessageForbidden):
		await services.messages.edit(DIRECT, message.id, "bob", "hello")
	with pytest.raises(EmptyMessage):
		await services.messages.edit(DIRECT, message.id, "alice", "  ")

	edited = await services.messages.edit(DIRECT, message.id, "alice", "hello")
	assert edited.text == "hello"
	assert edited.edited is True
	assert edited.edited_at is not None


@pytest.mark.asyncio
async def test_hide_for_user_only_affects_that_user(services, people):
	chat_id = direct_chat_id("alice", "bob")
	message = await services.messages.send(DIRECT, "alice", "bob", text="secret")

	await services.messages.hide_for_user(DIRECT, message.id, "bob")

	assert await services.messages.list_for_user(DIRECT, chat_id, "bob") == []
	assert len(await services.messages.list_for_user(DIRECT, chat_id, "alice")) == 1


@pytest.mark.asyncio
async def test_report_message_files_report_and_hides_it(services, store, people):
	chat_id = direct_chat_id("alice", "bob")
	message = await services.messages.send(DIRECT, "alice", "bob", text="rude")

	with pytest.raises(MessageForbidden):
		await services.messages.report_message(DIRECT, message.id, "alice", "self")

	report_id = await services.messages.report_message(DIRECT, message.id, "bob", " harassment ")

	report = await store.get(MESSAGE_REPORTS, report_id)
	assert report.get("reportedBy") == "bob"
	assert report.get("reportedUser") == "alice"
	assert report.get("reportedUserName") == "Alice"
	assert report.get("messageText") == "rude"
	assert report.get("reason") == "harassment"
	assert report.get("status") == "pending"
	assert await services.messages.list_for_user(DIRECT, chat_id, "bob") == []


@pytest.mark.asyncio
async def test_report_message_notifies_admins(services, store, people):
	await make_user(store, "mod", "Moderator", isAdmin=True)
	message = await services.messages.send(DIRECT, "alice", "bob", text="rude")

	report_id = await services.messages.report_message(DIRECT, message.id, "bob", "spam")

	notifications = await services.notifications.list_for_user("mod")
	assert [item.type for item in notifications] == ["admin_report"]
	assert notifications[0].body == "Bob: spam"
	assert notifications[0].data["messageReportId"] == report_id
	assert [item.type for item in await services.notifications.list_for_user("bob")] == ["new_message"]


@pytest.mark.asyncio
async def test_outsider_cannot_read_thread(services, store, people):
	await make_user(store, "mallory", "Mallory")
	await services.messages.send(DIRECT, "alice", "bob", text="private")

	with pytest.raises(ThreadForbidden):
		await services.messages.list_for_user(DIRECT, direct_chat_id("alice", "bob"), "mallory")
	assert await services.messages.list_for_user(DIRECT, "direct_nobody_here", "mallory") == []


@pytest.mark.asyncio
async def test_send_notifies_recipient(services, store, push, people):
	await register_push_token(store, "bob")

	await services.messages.send(DIRECT, "alice", "bob", text="ping")

	notifications = await services.notifications.list_for_user("bob")
	assert [item.type for item in notifications] == ["new_message"]
	assert notifications[0].title == "Alice"
	assert notifications[0].data["chatId"] == direct_chat_id("alice", "bob")
	assert push.sent[0]["token"] == "ExponentPushToken[bob]"
	assert await services.notifications.list_for_user("alice") == []
