import pytest

from pawsafety.domain.chat.exceptions import ChatIdentityError
from pawsafety.domain.chat.identity import ChatKind, chat_id_for, direct_chat_id, ordered_pair, report_chat_id


def test_direct_chat_id_is_symmetric():
	assert direct_chat_id("bob", "alice") == direct_chat_id("alice", "bob") == "direct_alice_bob"


def test_report_chat_id_includes_report_and_sorted_pair():
	assert report_chat_id("r1", "zed", "amy") == "report_r1_amy_zed"
	assert chat_id_for(ChatKind.REPORT, "amy", "zed", "r1") == "report_r1_amy_zed"


def test_ordered_pair_strips_whitespace():
	assert ordered_pair(" b ", "a") == ("a", "b")


@pytest.mark.parametrize(
	"user_a, user_b, reason",
	[
		("alice", "alice", "self_chat"),
		("", "bob", "missing_participant"),
		(None, "bob", "missing_participant"),
		("alice", "   ", "missing_participant"),
	],
)
def test_invalid_pairs_cannot_open_chat(user_a, user_b, reason):
	with pytest.raises(ChatIdentityError) as exc_info:
		direct_chat_id(user_a, user_b)
	assert exc_info.value.reason == reason


def test_report_chat_requires_report_id():
	with pytest.raises(ChatIdentityError) as exc_info:
		chat_id_for(ChatKind.REPORT, "a", "b", None)
	assert exc_info.value.reason == "missing_report"


def test_kind_collections():
	assert ChatKind.DIRECT.thread_collection == "direct_chats"
	assert ChatKind.REPORT.message_collection == "report_messages"
