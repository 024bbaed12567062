"""
Tests for chat service layer business logic.

This module tests the chat services:
- ConversationService: listing, direct get-or-create, group creation
- MessageService: send, history, delete, read tracking
- CallService: creation, status transitions, expiry
- PresenceService: online/offline bookkeeping

Test Organization:
    - Each service method has its own test class
    - Each test validates ONE specific behavior
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>

Testing Philosophy:
    Tests focus on observable behavior, not implementation details:
    - ServiceResult success/failure states
    - Database state changes
    - Error codes for specific failure modes
"""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import connection
from django.utils import timezone

from authentication.models import User
from authentication.tests.factories import UserFactory
from chat.constants import CALL_CONFIG, MESSAGE_CONFIG
from chat.models import (
    Call,
    CallStatus,
    CallType,
    Conversation,
    ConversationType,
    DirectConversationPair,
    Message,
    MessageType,
    Participant,
)
from chat.services import CallService, ConversationService, MessageService, PresenceService
from chat.tests.factories import (
    CallFactory,
    DirectConversationFactory,
    GroupConversationFactory,
    make_history,
)


# =============================================================================
# TestConversationServiceListForUser
# =============================================================================


class TestConversationServiceListForUser:
    """Tests for ConversationService.list_for_user()."""

    def test_returns_only_conversations_the_user_belongs_to(self, alice, bob, outsider, team):
        """
        Conversations of other users are not listed.

        Why it matters: The conversation list must never leak other people's chats.
        """
        GroupConversationFactory(created_by=outsider)

        conversations = ConversationService.list_for_user(alice)

        assert [c.pk for c in conversations] == [team.pk]

    def test_includes_members(self, alice, bob, carol, team):
        """
        Each conversation carries its full member list.

        Why it matters: Clients render member avatars without extra requests.
        """
        conversation = ConversationService.list_for_user(alice)[0]

        member_ids = {p.user_id for p in conversation.participants.all()}
        assert member_ids == {alice.pk, bob.pk, carol.pk}

    def test_last_message_is_newest_non_deleted(self, alice, bob, team):
        """
        A deleted newest message falls back to the previous live one.

        Why it matters: Previews must not show deleted content.
        """
        older, newer = make_history(team, alice, 2)
        MessageService.delete_message(newer.pk, alice)

        conversation = ConversationService.list_for_user(bob)[0]

        assert conversation.last_message.pk == older.pk
        assert conversation.last_message.sender == alice

    def test_last_message_is_none_without_messages(self, alice, team):
        """
        A conversation with no messages has no preview.

        Why it matters: New groups must still be listed.
        """
        conversation = ConversationService.list_for_user(alice)[0]

        assert conversation.last_message is None

    def test_orders_by_recent_activity(self, alice, bob):
        """
        The conversation with the latest message comes first.

        Why it matters: Active conversations belong at the top of the list.
        """
        quiet = GroupConversationFactory(created_by=alice, members=[bob])
        busy = GroupConversationFactory(created_by=alice, members=[bob])
        MessageService.send_message(quiet, bob, content="first")
        MessageService.send_message(busy, bob, content="second")

        conversations = ConversationService.list_for_user(alice)

        assert [c.pk for c in conversations] == [busy.pk, quiet.pk]

    def test_unread_count_counts_messages_from_others_after_last_read(self, alice, bob, team):
        """
        Unread counts exclude own messages and messages before last_read_at.

        Why it matters: Badges must reflect what the user has not seen.
        """
        make_history(team, bob, 2)
        MessageService.mark_as_read(team, alice)
        MessageService.send_message(team, bob, content="new")
        MessageService.send_message(team, alice, content="mine")

        conversation = ConversationService.list_for_user(alice)[0]

        assert conversation.unread_count == 1

    def test_returns_empty_list_for_user_without_conversations(self, outsider):
        assert ConversationService.list_for_user(outsider) == []


# =============================================================================
# TestConversationServiceGetOrCreateDirect
# =============================================================================


class TestConversationServiceGetOrCreateDirect:
    """
    Tests for ConversationService.get_or_create_direct().

    Verifies:
    - Creating new direct conversations
    - Returning existing conversation for same user pair
    - Preventing self-conversations
    - Recovering when a concurrent request wins the insert
    """

    def test_creates_new_direct_conversation_between_two_users(self, alice, bob):
        """
        Successfully creates direct conversation between two different users.

        Why it matters: This is the primary happy path for starting a DM.
        """
        result = ConversationService.get_or_create_direct(alice, bob)

        assert result.success is True
        assert result.data.conversation_type == ConversationType.DIRECT
        assert set(result.data.participants.values_list("user_id", flat=True)) == {
            alice.pk,
            bob.pk,
        }
        assert DirectConversationPair.objects.filter(conversation=result.data).exists()

    def test_returns_existing_conversation_for_same_user_pair(self, alice, bob):
        """
        Calling with same users returns existing conversation, not a new one.

        Why it matters: Ensures uniqueness of direct conversations.
        """
        result1 = ConversationService.get_or_create_direct(alice, bob)
        result2 = ConversationService.get_or_create_direct(alice, bob)

        assert result1.data.id == result2.data.id
        assert Conversation.objects.filter(conversation_type=ConversationType.DIRECT).count() == 1

    def test_returns_existing_regardless_of_user_order(self, alice, bob):
        """
        Returns same conversation whether alice,bob or bob,alice.

        Why it matters: Either user initiating should find the same conversation.
        """
        result1 = ConversationService.get_or_create_direct(alice, bob)
        result2 = ConversationService.get_or_create_direct(bob, alice)

        assert result1.data.id == result2.data.id

    def test_pair_is_stored_in_canonical_order(self, alice, bob):
        result = ConversationService.get_or_create_direct(bob, alice)

        pair = DirectConversationPair.objects.get(conversation=result.data)
        assert str(pair.user_lower_id) < str(pair.user_higher_id)

    def test_fails_for_same_user_twice(self, alice):
        """
        Cannot create direct conversation with yourself.

        Why it matters: Direct conversations are between TWO different people.
        """
        result = ConversationService.get_or_create_direct(alice, alice)

        assert result.success is False
        assert result.error_code == "SAME_USER"
        assert not Conversation.objects.exists()

    def test_group_with_both_users_is_not_treated_as_direct(self, alice, bob):
        """
        A group containing both users does not count as their direct conversation.

        Why it matters: Only direct conversations are unique per pair.
        """
        group = GroupConversationFactory(created_by=alice, members=[bob])

        result = ConversationService.get_or_create_direct(alice, bob)

        assert result.data.pk != group.pk
        assert result.data.is_direct

    def test_losing_concurrent_creator_returns_winner(self, alice, bob):
        """
        When another request inserts the pair after our lookup, the winner is returned.

        Why it matters: Two users opening a DM at the same moment must land in
        one conversation, not two.
        """
        winner = DirectConversationFactory(user1=alice, user2=bob)

        with patch.object(
            ConversationService, "_find_direct", side_effect=[None, winner]
        ):
            result = ConversationService.get_or_create_direct(bob, alice)

        assert result.success is True
        assert result.data.pk == winner.pk
        assert Conversation.objects.filter(conversation_type=ConversationType.DIRECT).count() == 1


@pytest.mark.django_db(transaction=True)
class TestConversationServiceConcurrentDirect:
    """Concurrent get_or_create_direct() calls on real database connections."""

    def test_concurrent_creators_share_one_conversation(self, alice, bob):
        """
        Two users opening a DM with each other at the same moment share it.

        Why it matters: The check-then-create path is not atomic on its own;
        only the pair constraint keeps the second conversation from existing.
        """
        barrier = threading.Barrier(2)

        def open_direct(user_a, user_b):
            try:
                barrier.wait(timeout=5)
                return ConversationService.get_or_create_direct(user_a, user_b)
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(open_direct, alice, bob),
                pool.submit(open_direct, bob, alice),
            ]
            results = [future.result(timeout=30) for future in futures]

        assert all(result.success for result in results)
        assert results[0].data.pk == results[1].data.pk
        assert DirectConversationPair.objects.count() == 1
        assert Conversation.objects.filter(conversation_type=ConversationType.DIRECT).count() == 1
        assert Participant.objects.filter(conversation=results[0].data).count() == 2


@pytest.mark.django_db(transaction=True)
class TestMessageServiceConcurrentSend:
    def test_concurrent_senders_get_distinct_sequence_numbers(self, alice, bob, team):
        """
        Messages sent at the same time are numbered without gaps or repeats.

        Why it matters: History order comes from the sequence; a repeated
        number would fail the insert and lose the message.
        """
        barrier = threading.Barrier(4)

        def send(sender, content):
            try:
                barrier.wait(timeout=5)
                return MessageService.send_message(team, sender, content=content)
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [
                pool.submit(send, alice if i % 2 == 0 else bob, f"m{i}") for i in range(4)
            ]
            results = [future.result(timeout=30) for future in futures]

        assert all(result.success for result in results)
        sequences = sorted(result.data.sequence for result in results)
        assert sequences == [1, 2, 3, 4]
        team.refresh_from_db()
        assert team.last_sequence == 4


# =============================================================================
# TestConversationServiceCreateGroup
# =============================================================================


class TestConversationServiceCreateGroup:
    """Tests for ConversationService.create_group()."""

    def test_creates_group_with_creator_and_members(self, alice, bob, carol):
        """
        Creator and every listed member become participants.

        Why it matters: This is the primary happy path for group creation.
        """
        result = ConversationService.create_group(
            creator=alice, name="Team", member_ids=[bob.id, carol.id]
        )

        assert result.success is True
        conversation = result.data
        assert conversation.is_group
        assert conversation.name == "Team"
        assert conversation.created_by == alice
        assert set(conversation.participants.values_list("user_id", flat=True)) == {
            alice.pk,
            bob.pk,
            carol.pk,
        }

    def test_ignores_duplicates_and_creator_in_member_ids(self, alice, bob):
        result = ConversationService.create_group(
            creator=alice, name="Team", member_ids=[bob.id, str(bob.id), alice.id]
        )

        assert result.success is True
        assert result.data.participants.count() == 2

    def test_unknown_member_fails_and_creates_nothing(self, alice, bob):
        """
        One unknown member id fails the whole creation.

        Why it matters: Group creation is atomic; a partial group with some
        members silently dropped is never written.
        """
        missing = uuid.uuid4()

        result = ConversationService.create_group(
            creator=alice, name="Team", member_ids=[bob.id, missing]
        )

        assert result.success is False
        assert result.error_code == "UNKNOWN_MEMBERS"
        assert result.errors == {"member_ids": [str(missing)]}
        assert not Conversation.objects.exists()
        assert not Participant.objects.exists()

    def test_malformed_member_id_is_unknown(self, alice):
        result = ConversationService.create_group(
            creator=alice, name="Team", member_ids=["not-a-uuid"]
        )

        assert result.error_code == "UNKNOWN_MEMBERS"

    def test_inactive_user_is_unknown(self, alice):
        gone = UserFactory(is_active=False)

        result = ConversationService.create_group(creator=alice, name="Team", member_ids=[gone.id])

        assert result.error_code == "UNKNOWN_MEMBERS"

    def test_blank_name_fails(self, alice):
        """
        Groups need a name.

        Why it matters: Missing body fields are validation failures.
        """
        result = ConversationService.create_group(creator=alice, name="   ")

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert "name" in result.errors

    def test_creator_alone_is_allowed(self, alice):
        result = ConversationService.create_group(creator=alice, name="Notes")

        assert result.success is True
        assert list(result.data.participants.values_list("user_id", flat=True)) == [alice.pk]


# =============================================================================
# TestConversationServiceGetForUser
# =============================================================================


class TestConversationServiceGetForUser:
    def test_member_gets_conversation(self, alice, team):
        result = ConversationService.get_for_user(team.pk, alice)

        assert result.success is True
        assert result.data == team

    def test_non_member_gets_not_found(self, outsider, team):
        """
        Non-members are told the conversation does not exist.

        Why it matters: Existence of other people's conversations is not leaked.
        """
        result = ConversationService.get_for_user(team.pk, outsider)

        assert result.error_code == "CONVERSATION_NOT_FOUND"

    def test_unknown_and_malformed_ids_get_not_found(self, alice):
        assert ConversationService.get_for_user(uuid.uuid4(), alice).error_code == (
            "CONVERSATION_NOT_FOUND"
        )
        assert ConversationService.get_for_user("nope", alice).error_code == (
            "CONVERSATION_NOT_FOUND"
        )


# =============================================================================
# TestMessageServiceSendMessage
# =============================================================================


class TestMessageServiceSendMessage:
    """Tests for MessageService.send_message()."""

    def test_member_sends_text_message(self, alice, team):
        """
        A member's message is stored and bumps last_message_at.

        Why it matters: This is the primary happy path for chatting.
        """
        result = MessageService.send_message(team, alice, content="hi")

        assert result.success is True
        message = result.data
        assert message.content == "hi"
        assert message.sender == alice
        assert message.message_type == MessageType.TEXT
        team.refresh_from_db()
        assert team.last_message_at == message.created_at

    def test_non_member_cannot_send(self, outsider, team):
        """
        Only members may post.

        Why it matters: Membership gates every write to a conversation.
        """
        result = MessageService.send_message(team, outsider, content="hi")

        assert result.error_code == "NOT_PARTICIPANT"
        assert not Message.all_objects.exists()

    def test_empty_text_fails(self, alice, team):
        result = MessageService.send_message(team, alice, content="   ")

        assert result.error_code == "EMPTY_CONTENT"

    def test_too_long_text_fails(self, alice, team):
        result = MessageService.send_message(
            team, alice, content="x" * (MESSAGE_CONFIG.MAX_CONTENT_LENGTH + 1)
        )

        assert result.error_code == "CONTENT_TOO_LONG"

    def test_unknown_message_type_fails(self, alice, team):
        result = MessageService.send_message(team, alice, content="hi", message_type="sticker")

        assert result.error_code == "INVALID_MESSAGE_TYPE"

    def test_file_message_requires_file_url(self, alice, team):
        result = MessageService.send_message(team, alice, message_type=MessageType.IMAGE)

        assert result.error_code == "FILE_REQUIRED"

    def test_file_message_without_text_is_allowed(self, alice, team):
        result = MessageService.send_message(
            team,
            alice,
            message_type=MessageType.IMAGE,
            file_url="/uploads/photo.png",
            file_name="photo.png",
            file_size=2048,
        )

        assert result.success is True
        assert result.data.file_size == 2048
        assert result.data.content == ""

    def test_reply_to_message_in_same_conversation(self, alice, bob, team):
        original = MessageService.send_message(team, alice, content="question").data

        result = MessageService.send_message(team, bob, content="answer", reply_to_id=original.pk)

        assert result.success is True
        assert result.data.reply_to == original

    def test_reply_to_message_in_other_conversation_fails(self, alice, bob, team, direct):
        """
        Reply targets must belong to the same conversation.

        Why it matters: Cross-conversation replies would expose content to
        users who are not members of the other conversation.
        """
        elsewhere = MessageService.send_message(direct, bob, content="private").data

        result = MessageService.send_message(team, alice, content="re", reply_to_id=elsewhere.pk)

        assert result.error_code == "INVALID_REPLY_TARGET"

    def test_reply_to_deleted_message_fails(self, alice, bob, team):
        original = MessageService.send_message(team, alice, content="oops").data
        MessageService.delete_message(original.pk, alice)

        result = MessageService.send_message(team, bob, content="re", reply_to_id=original.pk)

        assert result.error_code == "INVALID_REPLY_TARGET"

    def test_reply_to_unknown_message_fails(self, alice, team):
        result = MessageService.send_message(team, alice, content="re", reply_to_id=uuid.uuid4())

        assert result.error_code == "INVALID_REPLY_TARGET"


# =============================================================================
# TestMessageServiceHistory
# =============================================================================


class TestMessageServiceHistory:
    """Tests for MessageService.history()."""

    def test_returns_messages_oldest_first(self, alice, team):
        """
        A page reads top to bottom in chronological order.

        Why it matters: Clients append history without re-sorting.
        """
        messages = make_history(team, alice, 3)

        result = MessageService.history(team, alice)

        assert [m.pk for m in result.data] == [m.pk for m in messages]

    def test_default_page_is_newest_fifty(self, alice, team):
        messages = make_history(team, alice, MESSAGE_CONFIG.HISTORY_DEFAULT_LIMIT + 5)

        page = MessageService.history(team, alice).data

        assert len(page) == MESSAGE_CONFIG.HISTORY_DEFAULT_LIMIT
        assert page[0].pk == messages[5].pk
        assert page[-1].pk == messages[-1].pk

    def test_offset_counts_back_from_newest(self, alice, team):
        """
        offset=2, limit=2 returns the two messages before the newest two.

        Why it matters: Clients scroll back by increasing the offset.
        """
        messages = make_history(team, alice, 6)

        page = MessageService.history(team, alice, limit=2, offset=2).data

        assert [m.content for m in page] == [messages[2].content, messages[3].content]

    def test_messages_sharing_a_timestamp_keep_send_order(self, alice, bob, team):
        """
        Messages created within the same clock tick come back in send order.

        Why it matters: Fast senders and coarse clocks produce equal
        timestamps; the conversation must still read as it was written.
        """
        frozen = timezone.now()
        with patch("django.utils.timezone.now", return_value=frozen):
            for i in range(8):
                sender = alice if i % 2 == 0 else bob
                MessageService.send_message(team, sender, content=str(i))

        page = MessageService.history(team, alice).data

        assert [m.content for m in page] == [str(i) for i in range(8)]
        assert len({m.created_at for m in page}) == 1

    def test_excludes_deleted_messages(self, alice, team):
        first, second, third = make_history(team, alice, 3)
        MessageService.delete_message(second.pk, alice)

        page = MessageService.history(team, alice).data

        assert [m.pk for m in page] == [first.pk, third.pk]

    def test_offset_past_end_is_empty(self, alice, team):
        make_history(team, alice, 2)

        assert MessageService.history(team, alice, offset=10).data == []

    def test_non_member_is_rejected(self, outsider, team):
        result = MessageService.history(team, outsider)

        assert result.error_code == "NOT_PARTICIPANT"

    def test_loads_reply_target_with_page(self, alice, bob, team):
        original = MessageService.send_message(team, alice, content="question").data
        MessageService.send_message(team, bob, content="answer", reply_to_id=original.pk)

        page = MessageService.history(team, alice).data

        assert page[-1].reply_to.content == "question"
        assert page[-1].reply_to.sender == alice


class TestMessageServiceClampPage:
    def test_defaults(self):
        assert MessageService.clamp_page() == (MESSAGE_CONFIG.HISTORY_DEFAULT_LIMIT, 0)

    def test_limit_capped_at_maximum(self):
        assert MessageService.clamp_page(limit=5000)[0] == MESSAGE_CONFIG.HISTORY_MAX_LIMIT

    def test_limit_at_least_one(self):
        assert MessageService.clamp_page(limit=0)[0] == 1
        assert MessageService.clamp_page(limit=-3)[0] == 1

    def test_negative_offset_becomes_zero(self):
        assert MessageService.clamp_page(offset=-10)[1] == 0


# =============================================================================
# TestMessageServiceDeleteMessage
# =============================================================================


class TestMessageServiceDeleteMessage:
    """Tests for MessageService.delete_message()."""

    def test_sender_deletes_own_message(self, alice, team):
        """
        Deleting marks the row instead of removing it.

        Why it matters: Replies keep pointing at the deleted message.
        """
        message = MessageService.send_message(team, alice, content="hi").data

        result = MessageService.delete_message(message.pk, alice)

        assert result.success is True
        assert result.data.is_deleted is True
        stored = Message.all_objects.get(pk=message.pk)
        assert stored.is_deleted is True
        assert stored.deleted_at is not None
        assert not Message.objects.filter(pk=message.pk).exists()

    def test_other_member_cannot_delete(self, alice, bob, team):
        """
        Deleting someone else's message reports not-found.

        Why it matters: Only owners delete, and the answer does not reveal
        that the message exists.
        """
        message = MessageService.send_message(team, alice, content="hi").data

        result = MessageService.delete_message(message.pk, bob)

        assert result.error_code == "MESSAGE_NOT_FOUND"
        assert Message.objects.filter(pk=message.pk).exists()

    def test_second_delete_reports_not_found(self, alice, team):
        message = MessageService.send_message(team, alice, content="hi").data
        MessageService.delete_message(message.pk, alice)

        result = MessageService.delete_message(message.pk, alice)

        assert result.error_code == "MESSAGE_NOT_FOUND"

    def test_unknown_message_reports_not_found(self, alice):
        result = MessageService.delete_message(uuid.uuid4(), alice)

        assert result.error_code == "MESSAGE_NOT_FOUND"

    def test_reply_keeps_reference_to_deleted_target(self, alice, bob, team):
        original = MessageService.send_message(team, alice, content="hi").data
        reply = MessageService.send_message(team, bob, content="re", reply_to_id=original.pk).data

        MessageService.delete_message(original.pk, alice)

        reply.refresh_from_db()
        assert reply.reply_to_id == original.pk
        assert reply.reply_to.is_deleted is True


# =============================================================================
# TestMessageServiceReadTracking
# =============================================================================


class TestMessageServiceReadTracking:
    def test_unread_count_starts_with_all_messages_from_others(self, alice, bob, team):
        make_history(team, bob, 3)

        assert MessageService.get_unread_count(team, alice) == 3
        assert MessageService.get_unread_count(team, bob) == 0

    def test_mark_as_read_resets_unread_count(self, alice, bob, team):
        make_history(team, bob, 3)

        result = MessageService.mark_as_read(team, alice)

        assert result.success is True
        assert MessageService.get_unread_count(team, alice) == 0

    def test_mark_as_read_by_non_member_fails(self, outsider, team):
        result = MessageService.mark_as_read(team, outsider)

        assert result.error_code == "NOT_PARTICIPANT"

    def test_unread_count_for_non_member_is_zero(self, outsider, team, bob):
        make_history(team, bob, 1)

        assert MessageService.get_unread_count(team, outsider) == 0


# =============================================================================
# TestCallService
# =============================================================================


class TestCallServiceCreateCall:
    def test_member_starts_pending_call(self, alice, team):
        result = CallService.create_call(team, alice, CallType.VIDEO)

        assert result.success is True
        assert result.data.status == CallStatus.PENDING
        assert result.data.ended_at is None
        assert result.data.caller == alice

    def test_non_member_cannot_call(self, outsider, team):
        result = CallService.create_call(team, outsider, CallType.VOICE)

        assert result.error_code == "NOT_PARTICIPANT"
        assert not Call.objects.exists()

    def test_unknown_call_type_fails(self, alice, team):
        result = CallService.create_call(team, alice, "hologram")

        assert result.error_code == "INVALID_CALL_TYPE"


class TestCallServiceUpdateStatus:
    """
    Tests for CallService.update_status().

    Verifies the transition table and that ended_at is only set on ended.
    """

    def test_pending_to_active_to_ended(self, alice, bob, team):
        """
        The answered-call path ends with ended_at set.

        Why it matters: Call duration is derived from started_at and ended_at.
        """
        call = CallFactory(conversation=team, caller=alice)

        active = CallService.update_status(call.pk, bob, CallStatus.ACTIVE)
        assert active.success is True
        assert active.data.ended_at is None

        ended = CallService.update_status(call.pk, alice, CallStatus.ENDED)
        assert ended.success is True
        assert ended.data.ended_at is not None

    def test_pending_to_missed_leaves_ended_at_empty(self, alice, bob, team):
        call = CallFactory(conversation=team, caller=alice)

        result = CallService.update_status(call.pk, bob, CallStatus.MISSED)

        assert result.success is True
        call.refresh_from_db()
        assert call.status == CallStatus.MISSED
        assert call.ended_at is None

    def test_pending_to_ended_is_allowed(self, alice, team):
        call = CallFactory(conversation=team, caller=alice)

        assert CallService.update_status(call.pk, alice, CallStatus.ENDED).success is True

    def test_terminal_status_rejects_changes(self, alice, team):
        """
        Ended and missed calls are final.

        Why it matters: A late "answer" must not reopen a finished call.
        """
        ended = CallFactory(conversation=team, caller=alice, status=CallStatus.ENDED)
        missed = CallFactory(conversation=team, caller=alice, status=CallStatus.MISSED)

        assert CallService.update_status(ended.pk, alice, CallStatus.ACTIVE).error_code == (
            "INVALID_TRANSITION"
        )
        assert CallService.update_status(missed.pk, alice, CallStatus.ENDED).error_code == (
            "INVALID_TRANSITION"
        )

    def test_active_cannot_be_missed(self, alice, team):
        call = CallFactory(conversation=team, caller=alice, status=CallStatus.ACTIVE)

        result = CallService.update_status(call.pk, alice, CallStatus.MISSED)

        assert result.error_code == "INVALID_TRANSITION"

    def test_same_status_is_not_a_transition(self, alice, team):
        call = CallFactory(conversation=team, caller=alice)

        result = CallService.update_status(call.pk, alice, CallStatus.PENDING)

        assert result.error_code == "INVALID_TRANSITION"

    def test_non_member_gets_not_found(self, alice, outsider, team):
        call = CallFactory(conversation=team, caller=alice)

        result = CallService.update_status(call.pk, outsider, CallStatus.ACTIVE)

        assert result.error_code == "CALL_NOT_FOUND"

    def test_unknown_status_fails(self, alice, team):
        call = CallFactory(conversation=team, caller=alice)

        result = CallService.update_status(call.pk, alice, "ringing")

        assert result.error_code == "INVALID_STATUS"


class TestCallServiceExpireUnanswered:
    def test_marks_old_pending_calls_missed(self, alice, team):
        """
        Pending calls past the ring timeout become missed.

        Why it matters: Calls nobody answered must not ring forever.
        """
        now = timezone.now()
        stale = CallFactory(
            conversation=team,
            caller=alice,
            started_at=now - timedelta(seconds=CALL_CONFIG.RING_TIMEOUT_SECONDS + 5),
        )
        fresh = CallFactory(conversation=team, caller=alice, started_at=now)
        answered = CallFactory(
            conversation=team,
            caller=alice,
            status=CallStatus.ACTIVE,
            started_at=now - timedelta(hours=1),
        )

        expired = CallService.expire_unanswered(now=now)

        assert [call.pk for call in expired] == [stale.pk]
        stale.refresh_from_db()
        fresh.refresh_from_db()
        answered.refresh_from_db()
        assert stale.status == CallStatus.MISSED
        assert stale.ended_at is None
        assert fresh.status == CallStatus.PENDING
        assert answered.status == CallStatus.ACTIVE

    def test_nothing_to_expire(self, db):
        assert CallService.expire_unanswered() == []


# =============================================================================
# TestPresenceService
# =============================================================================


class TestPresenceService:
    """Tests for PresenceService connect/disconnect bookkeeping."""

    def test_connect_marks_user_online(self, alice):
        result = PresenceService.connect(alice.pk, "channel-1")

        assert result.data is True
        alice.refresh_from_db()
        assert alice.is_online is True

    def test_second_connection_is_not_first(self, alice):
        PresenceService.connect(alice.pk, "channel-1")

        assert PresenceService.connect(alice.pk, "channel-2").data is False

    def test_user_stays_online_until_last_connection_closes(self, alice):
        """
        Closing one of two connections keeps the user online.

        Why it matters: A user with a phone and a laptop open is still online
        when one of them disconnects.
        """
        PresenceService.connect(alice.pk, "channel-1")
        PresenceService.connect(alice.pk, "channel-2")

        assert PresenceService.disconnect(alice.pk, "channel-1").data is False
        alice.refresh_from_db()
        assert alice.is_online is True
        assert alice.last_seen is None

        assert PresenceService.disconnect(alice.pk, "channel-2").data is True
        alice.refresh_from_db()
        assert alice.is_online is False
        assert alice.last_seen is not None

    def test_disconnect_updates_only_that_user(self, alice, bob):
        PresenceService.connect(alice.pk, "a")
        PresenceService.connect(bob.pk, "b")

        PresenceService.disconnect(alice.pk, "a")

        assert User.objects.get(pk=bob.pk).is_online is True
