"""Unread bookkeeping for direct conversations."""

from __future__ import annotations

import pytest

from app.services import UnreadLedger
from spotlink.realtime.events import JoinDirectPayload, SendDirectPayload


pytestmark = pytest.mark.anyio

ALICE = {"id": "alice", "nickname": "Alice", "profileImage": None, "major": "CS"}


def test_messages_accumulate_per_sender():
    ledger = UnreadLedger()

    ledger.message_sent(recipient_id="bob", sender=ALICE, conversation_id="alice-bob", preview="one", time="10:00")
    ledger.message_sent(recipient_id="bob", sender=ALICE, conversation_id="alice-bob", preview="two", time="10:01")

    (entry,) = ledger.entries_for("bob")
    assert entry.unread_count == 2
    assert entry.message == "two"
    assert entry.time == "10:01"
    assert entry.sender == {"id": "alice", "nickname": "Alice", "profileImage": None}
    assert ledger.entries_for("alice") == []


def test_invite_flag_is_dropped_once_messages_arrive():
    ledger = UnreadLedger()
    ledger.invite_sent(
        recipient_id="bob", sender=ALICE, conversation_id="alice-bob", created_at="2024-05-01T10:00:00+00:00"
    )
    (entry,) = ledger.entries_for("bob")
    assert entry.is_invite is True
    assert entry.unread_count == 0

    ledger.message_sent(recipient_id="bob", sender=ALICE, conversation_id="alice-bob", preview="hey", time="10:02")

    (entry,) = ledger.entries_for("bob")
    assert entry.is_invite is False
    assert entry.unread_count == 1


def test_previews_are_truncated():
    ledger = UnreadLedger()

    ledger.message_sent(recipient_id="bob", sender=ALICE, conversation_id="alice-bob", preview="x" * 500, time="t")

    assert len(ledger.entries_for("bob")[0].message) == 120


def test_entries_are_listed_newest_first():
    ledger = UnreadLedger()
    carol = {"id": "carol", "nickname": "Carol"}
    ledger.invite_sent(
        recipient_id="bob", sender=ALICE, conversation_id="alice-bob", created_at="2024-05-01T10:00:00+00:00"
    )
    ledger.invite_sent(
        recipient_id="bob", sender=carol, conversation_id="bob-carol", created_at="2024-05-02T10:00:00+00:00"
    )

    assert [entry.sender_id for entry in ledger.entries_for("bob")] == ["carol", "alice"]
    assert ledger.clear("bob", "carol") is True
    assert ledger.clear("bob", "carol") is False


async def test_recipient_opening_the_conversation_clears_unread(realtime, open_connection):
    alice, _ = await open_connection(user_id="alice", nickname="Alice")
    bob, _ = await open_connection(user_id="bob", nickname="Bob")
    await realtime.direct.join(
        alice,
        JoinDirectPayload.model_validate(
            {"participants": {"fromUserId": "alice", "toUserId": "bob"}, "notifyPartner": True}
        ),
    )
    await realtime.direct.send_message(
        alice, SendDirectPayload.model_validate({"conversationId": "alice-bob", "message": "ping?"})
    )
    assert realtime.unread.entries_for("bob")[0].unread_count == 1

    await realtime.direct.join(
        bob, JoinDirectPayload.model_validate({"participants": {"fromUserId": "bob", "toUserId": "alice"}})
    )

    assert realtime.unread.entries_for("bob") == []
