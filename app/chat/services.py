"""
Chat system service layer.

This module provides the business logic for the chat system, encapsulating
all operations on conversations, messages, calls and presence.

Services:
    ConversationService: Conversation listing, direct pairs, group creation
    MessageService: Send, history, soft delete and read tracking
    CallService: Call creation and status transitions
    PresenceService: Online/offline bookkeeping for live connections

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Storage failures propagate as exceptions and are mapped by
      core.exception_handler
    - Multi-row writes run inside a transaction
    - Non-members get the same failure as missing rows

Usage:
    from chat.services import ConversationService, MessageService

    # Direct conversation (existing one is returned)
    result = ConversationService.get_or_create_direct(alice, bob)
    if result.success:
        conversation = result.data

    # Group conversation
    result = ConversationService.create_group(
        creator=alice,
        name="Team",
        member_ids=[bob.id, carol.id],
    )

    # Send a message
    result = MessageService.send_message(
        conversation=conversation,
        sender=alice,
        content="hi",
    )
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, models, transaction
from django.db.models import Count, F, OuterRef, Prefetch, Q, Subquery
from django.utils import timezone

from core.services import BaseService, ServiceResult

from chat.constants import CALL_CONFIG, CONVERSATION_CONFIG, MESSAGE_CONFIG
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
from chat.presence import registry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from authentication.models import User


class ConversationService(BaseService):
    """
    Service for conversation lookup and creation.

    Methods:
        list_for_user: Conversations of a user with members and last message
        get_for_user: Single conversation, only if the user is a member
        get_or_create_direct: Unique direct conversation between two users
        create_group: Named group with the creator and the given members
        member_ids: Ids of every member of a conversation
    """

    @classmethod
    def _with_members(cls, queryset):
        return queryset.prefetch_related(
            Prefetch(
                "participants",
                queryset=Participant.objects.select_related("user"),
            )
        )

    @classmethod
    def list_for_user(cls, user: User) -> list[Conversation]:
        """
        Return every conversation the user belongs to.

        Each conversation comes with its participants (and their users)
        prefetched, plus two computed attributes:

            last_message: newest non-deleted Message (sender loaded) or None
            unread_count: messages from others newer than the user's
                last_read_at (all of them if never read)

        Conversations with recent activity come first; conversations
        without messages follow, newest first.
        """
        latest_message = (
            Message.objects.filter(conversation=OuterRef("pk"))
            .order_by("-sequence")
            .values("id")[:1]
        )

        conversations = list(
            cls._with_members(Conversation.objects.filter(participants__user=user))
            .annotate(
                last_message_id=Subquery(latest_message, output_field=models.UUIDField())
            )
            .order_by(F("last_message_at").desc(nulls_last=True), "-created_at")
        )
        if not conversations:
            return conversations

        message_ids = [c.last_message_id for c in conversations if c.last_message_id]
        messages = Message.objects.select_related("sender").in_bulk(message_ids)

        unread = cls._unread_counts(user, conversations)

        for conversation in conversations:
            conversation.last_message = messages.get(conversation.last_message_id)
            conversation.unread_count = unread.get(conversation.pk, 0)

        return conversations

    @classmethod
    def _unread_counts(cls, user: User, conversations: list[Conversation]) -> dict:
        """Unread message count per conversation id, in a single query."""
        condition = Q()
        for conversation in conversations:
            membership = next(
                (p for p in conversation.participants.all() if p.user_id == user.pk),
                None,
            )
            clause = Q(conversation_id=conversation.pk)
            if membership is not None and membership.last_read_at is not None:
                clause &= Q(created_at__gt=membership.last_read_at)
            condition |= clause

        rows = (
            Message.objects.filter(condition)
            .exclude(sender=user)
            .order_by()
            .values("conversation_id")
            .annotate(count=Count("id"))
        )
        return {row["conversation_id"]: row["count"] for row in rows}

    @classmethod
    def get_for_user(cls, conversation_id, user: User) -> ServiceResult[Conversation]:
        """
        Fetch a conversation the user belongs to.

        Error codes:
            CONVERSATION_NOT_FOUND: Missing, or the user is not a member
        """
        try:
            conversation_id = uuid.UUID(str(conversation_id))
        except ValueError:
            conversation = None
        else:
            conversation = cls._with_members(
                Conversation.objects.filter(pk=conversation_id, participants__user=user)
            ).first()
        if conversation is None:
            return ServiceResult.failure(
                "Conversation not found",
                error_code="CONVERSATION_NOT_FOUND",
            )
        return ServiceResult.success(conversation)

    @classmethod
    def _find_direct(cls, user_lower: User, user_higher: User) -> Conversation | None:
        pair = (
            DirectConversationPair.objects.select_related("conversation")
            .filter(user_lower=user_lower, user_higher=user_higher)
            .first()
        )
        return pair.conversation if pair else None

    @classmethod
    def get_or_create_direct(
        cls,
        user_a: User,
        user_b: User,
    ) -> ServiceResult[Conversation]:
        """
        Create or retrieve the direct conversation between two users.

        Direct conversations are unique per user pair regardless of who
        initiates. The pair is stored in canonical order and guarded by a
        unique constraint, so when two requests race to create the same
        pair, the loser's insert fails and it returns the winner's row.

        Args:
            user_a: Requesting user (recorded as creator if a new row is made)
            user_b: The other participant

        Returns:
            ServiceResult with Conversation (existing or new)

        Error codes:
            SAME_USER: Cannot create direct conversation with yourself
        """
        if user_a.pk == user_b.pk:
            return ServiceResult.failure(
                "Cannot create a direct conversation with yourself",
                error_code="SAME_USER",
            )

        user_lower, user_higher = DirectConversationPair.canonical_order(user_a, user_b)

        existing = cls._find_direct(user_lower, user_higher)
        if existing is not None:
            cls.get_logger().debug(
                f"Found existing direct conversation {existing.id} "
                f"between users {user_lower.id} and {user_higher.id}"
            )
            return ServiceResult.success(existing)

        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=ConversationType.DIRECT,
                    name="",
                    created_by=user_a,
                )
                DirectConversationPair.objects.create(
                    conversation=conversation,
                    user_lower=user_lower,
                    user_higher=user_higher,
                )
                Participant.objects.bulk_create(
                    [
                        Participant(conversation=conversation, user=user_lower),
                        Participant(conversation=conversation, user=user_higher),
                    ]
                )
        except IntegrityError:
            # Another request created the pair between our lookup and insert
            existing = cls._find_direct(user_lower, user_higher)
            if existing is None:
                raise
            cls.get_logger().info(
                f"Lost direct conversation race for users {user_lower.id} and "
                f"{user_higher.id}; using {existing.id}"
            )
            return ServiceResult.success(existing)

        cls.get_logger().info(
            f"Created direct conversation {conversation.id} "
            f"between users {user_lower.id} and {user_higher.id}"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def create_group(
        cls,
        creator: User,
        name: str,
        description: str = "",
        member_ids: Iterable = (),
    ) -> ServiceResult[Conversation]:
        """
        Create a new group conversation.

        Every member id is checked before anything is written; one unknown
        id fails the whole call and no conversation is created. The
        conversation and all memberships are written in one transaction.

        Args:
            creator: User creating the group (always a member)
            name: Required group name
            description: Optional description
            member_ids: Ids of the other users to add (duplicates and the
                creator's own id are ignored)

        Returns:
            ServiceResult with new Conversation

        Error codes:
            VALIDATION_ERROR: Name missing
            NAME_TOO_LONG: Name longer than the column allows
            TOO_MANY_MEMBERS: Member list over the group size limit
            UNKNOWN_MEMBERS: At least one id is not an active user
        """
        validation = cls.validate_required(name=name)
        if validation is not None:
            return validation

        name = name.strip()
        if len(name) > CONVERSATION_CONFIG.MAX_NAME_LENGTH:
            return ServiceResult.failure(
                f"Group name cannot exceed {CONVERSATION_CONFIG.MAX_NAME_LENGTH} characters",
                error_code="NAME_TOO_LONG",
            )

        requested: list[uuid.UUID] = []
        invalid: list[str] = []
        for raw in member_ids:
            try:
                member_id = raw if isinstance(raw, uuid.UUID) else uuid.UUID(str(raw))
            except ValueError:
                invalid.append(str(raw))
                continue
            if member_id != creator.pk and member_id not in requested:
                requested.append(member_id)

        if len(requested) + 1 > CONVERSATION_CONFIG.MAX_GROUP_MEMBERS:
            return ServiceResult.failure(
                f"A group cannot have more than {CONVERSATION_CONFIG.MAX_GROUP_MEMBERS} members",
                error_code="TOO_MANY_MEMBERS",
            )

        User = get_user_model()
        members = list(User.objects.filter(pk__in=requested, is_active=True))
        found = {member.pk for member in members}
        missing = invalid + [str(pk) for pk in requested if pk not in found]
        if missing:
            return ServiceResult.failure(
                "Unknown member ids",
                error_code="UNKNOWN_MEMBERS",
                errors={"member_ids": missing},
            )

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                name=name,
                description=description or "",
                created_by=creator,
            )
            Participant.objects.bulk_create(
                [Participant(conversation=conversation, user=creator)]
                + [Participant(conversation=conversation, user=member) for member in members]
            )

        cls.get_logger().info(
            f"Created group conversation {conversation.id} "
            f"named '{name}' with {1 + len(members)} participants"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def member_ids(cls, conversation: Conversation) -> list:
        return list(
            Participant.objects.filter(conversation=conversation).values_list(
                "user_id", flat=True
            )
        )

    @classmethod
    def is_member(cls, conversation: Conversation, user: User) -> bool:
        return Participant.objects.filter(conversation=conversation, user=user).exists()


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        send_message: Create a message from a member
        history: Page of live messages in chronological order
        delete_message: Soft delete by the sender
        mark_as_read: Update last_read_at for user
        get_unread_count: Count of unread messages
    """

    @classmethod
    def send_message(
        cls,
        conversation: Conversation,
        sender: User,
        content: str = "",
        message_type: str = MessageType.TEXT,
        file_url: str = "",
        file_name: str = "",
        file_size: int | None = None,
        reply_to_id=None,
    ) -> ServiceResult[Message]:
        """
        Send a message to a conversation.

        Args:
            conversation: Target conversation
            sender: User sending the message (must be a member)
            content: Message text (required for text messages)
            message_type: text, image, video, audio or file
            file_url / file_name / file_size: Upload descriptor for file kinds
            reply_to_id: Optional id of a live message in the same conversation

        Returns:
            ServiceResult with new Message

        Error codes:
            NOT_PARTICIPANT: User is not in conversation
            INVALID_MESSAGE_TYPE: Unknown message kind
            EMPTY_CONTENT: Text message without text
            CONTENT_TOO_LONG: Text over the content limit
            FILE_REQUIRED: File kind without a file url
            INVALID_REPLY_TARGET: Reply target missing, deleted or elsewhere
        """
        if not ConversationService.is_member(conversation, sender):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        if message_type not in MessageType.values:
            return ServiceResult.failure(
                f"Invalid message type: {message_type}",
                error_code="INVALID_MESSAGE_TYPE",
            )

        content = content.strip() if content else ""
        if message_type == MessageType.TEXT and not content:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )

        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message cannot exceed {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )

        if message_type != MessageType.TEXT and not file_url:
            return ServiceResult.failure(
                "A file is required for this message type",
                error_code="FILE_REQUIRED",
            )

        reply_to = None
        if reply_to_id:
            reply_to = (
                Message.objects.select_related("sender")
                .filter(pk=reply_to_id, conversation=conversation)
                .first()
            )
            if reply_to is None:
                return ServiceResult.failure(
                    "Reply target not found in this conversation",
                    error_code="INVALID_REPLY_TARGET",
                )

        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                message_type=message_type,
                content=content,
                file_url=file_url or "",
                file_name=file_name or "",
                file_size=file_size,
                reply_to=reply_to,
            )

            conversation.last_message_at = message.created_at
            conversation.save(update_fields=["last_message_at", "updated_at"])

        cls.get_logger().debug(
            f"User {sender.id} sent {message_type} message {message.id} "
            f"to conversation {conversation.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    def clamp_page(cls, limit=None, offset=None) -> tuple[int, int]:
        """Normalize history paging to 1 <= limit <= max and offset >= 0."""
        if limit is None:
            limit = MESSAGE_CONFIG.HISTORY_DEFAULT_LIMIT
        limit = max(1, min(int(limit), MESSAGE_CONFIG.HISTORY_MAX_LIMIT))
        offset = max(0, int(offset or 0))
        return limit, offset

    @classmethod
    def history(
        cls,
        conversation: Conversation,
        user: User,
        limit: int | None = None,
        offset: int | None = None,
    ) -> ServiceResult[list[Message]]:
        """
        Return a page of live messages, oldest first.

        The page is taken from the newest end: offset 0 holds the most
        recent ``limit`` messages. Senders and reply targets are loaded
        with the page.

        Error codes:
            NOT_PARTICIPANT: User is not in conversation
        """
        if not ConversationService.is_member(conversation, user):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        limit, offset = cls.clamp_page(limit, offset)

        page = list(
            Message.objects.filter(conversation=conversation)
            .select_related("sender", "reply_to", "reply_to__sender")
            .order_by("-sequence")[offset : offset + limit]
        )
        page.reverse()
        return ServiceResult.success(page)

    @classmethod
    def delete_message(cls, message_id, user: User) -> ServiceResult[Message]:
        """
        Soft delete a message.

        Only the sender may delete. A missing message, an already deleted
        one and someone else's message all fail the same way.

        Returns:
            ServiceResult with the deleted Message

        Error codes:
            MESSAGE_NOT_FOUND: No live message of this user with that id
        """
        message = (
            Message.objects.select_related("conversation")
            .filter(pk=message_id, sender=user)
            .first()
        )
        if message is None:
            return ServiceResult.failure(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
            )

        # Conditional update: only one of two concurrent deletes applies
        deleted, _ = Message.objects.filter(pk=message.pk).delete()
        if not deleted:
            return ServiceResult.failure(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
            )

        message.is_deleted = True
        message.deleted_at = timezone.now()

        cls.get_logger().info(
            f"User {user.id} deleted message {message.id} "
            f"in conversation {message.conversation_id}"
        )
        return ServiceResult.success(message)

    @classmethod
    def mark_as_read(
        cls,
        conversation: Conversation,
        user: User,
    ) -> ServiceResult[None]:
        """
        Mark conversation as read for a user.

        Error codes:
            NOT_PARTICIPANT: User is not in this conversation
        """
        now = timezone.now()
        updated = Participant.objects.filter(conversation=conversation, user=user).update(
            last_read_at=now,
            updated_at=now,
        )
        if not updated:
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        cls.get_logger().debug(f"User {user.id} marked conversation {conversation.id} as read")
        return ServiceResult.success(None)

    @classmethod
    def get_unread_count(cls, conversation: Conversation, user: User) -> int:
        """
        Count messages from others created after the user's last_read_at.

        Returns 0 for non-members.
        """
        participant = conversation.get_participant_for_user(user)
        if not participant:
            return 0

        queryset = Message.objects.filter(conversation=conversation).exclude(sender=user)
        if participant.last_read_at:
            queryset = queryset.filter(created_at__gt=participant.last_read_at)
        return queryset.count()


class CallService(BaseService):
    """
    Service for call lifecycle.

    Transitions:
        pending -> active | ended | missed
        active  -> ended

    ended_at is set only when a call becomes ended.
    """

    ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
        CallStatus.PENDING: frozenset({CallStatus.ACTIVE, CallStatus.ENDED, CallStatus.MISSED}),
        CallStatus.ACTIVE: frozenset({CallStatus.ENDED}),
        CallStatus.ENDED: frozenset(),
        CallStatus.MISSED: frozenset(),
    }

    @classmethod
    def create_call(
        cls,
        conversation: Conversation,
        caller: User,
        call_type: str,
    ) -> ServiceResult[Call]:
        """
        Start a call in a conversation.

        Error codes:
            NOT_PARTICIPANT: Caller is not in conversation
            INVALID_CALL_TYPE: Not voice or video
        """
        if not ConversationService.is_member(conversation, caller):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        if call_type not in CallType.values:
            return ServiceResult.failure(
                f"Invalid call type: {call_type}",
                error_code="INVALID_CALL_TYPE",
            )

        call = Call.objects.create(
            conversation=conversation,
            caller=caller,
            call_type=call_type,
            status=CallStatus.PENDING,
        )

        cls.get_logger().info(
            f"User {caller.id} started {call_type} call {call.id} "
            f"in conversation {conversation.id}"
        )
        return ServiceResult.success(call)

    @classmethod
    def update_status(cls, call_id, user: User, status: str) -> ServiceResult[Call]:
        """
        Move a call to a new status.

        Any member of the call's conversation may update it. The row is
        locked while the transition is checked so two concurrent updates
        cannot both leave the same state.

        Error codes:
            INVALID_STATUS: Unknown status value
            CALL_NOT_FOUND: Missing, or user not in the call's conversation
            INVALID_TRANSITION: Not allowed from the current status
        """
        if status not in CallStatus.values:
            return ServiceResult.failure(
                f"Invalid call status: {status}",
                error_code="INVALID_STATUS",
            )

        with cls.atomic():
            call = (
                Call.objects.select_for_update(of=("self",))
                .filter(pk=call_id, conversation__participants__user=user)
                .first()
            )
            if call is None:
                return ServiceResult.failure(
                    "Call not found",
                    error_code="CALL_NOT_FOUND",
                )

            if status not in cls.ALLOWED_TRANSITIONS[call.status]:
                return ServiceResult.failure(
                    f"Cannot change call from {call.status} to {status}",
                    error_code="INVALID_TRANSITION",
                )

            previous = call.status
            call.status = status
            update_fields = ["status", "updated_at"]
            if status == CallStatus.ENDED:
                call.ended_at = timezone.now()
                update_fields.append("ended_at")
            call.save(update_fields=update_fields)

        cls.get_logger().info(
            f"Call {call.id} moved from {previous} to {status} by user {user.id}"
        )
        return ServiceResult.success(call)

    @classmethod
    def expire_unanswered(cls, now=None) -> list[Call]:
        """
        Mark pending calls older than the ring timeout as missed.

        Returns:
            The calls that were changed
        """
        now = now or timezone.now()
        cutoff = now - timedelta(seconds=CALL_CONFIG.RING_TIMEOUT_SECONDS)

        with cls.atomic():
            calls = list(
                Call.objects.select_for_update().filter(
                    status=CallStatus.PENDING,
                    started_at__lt=cutoff,
                )
            )
            if not calls:
                return []
            Call.objects.filter(pk__in=[call.pk for call in calls]).update(
                status=CallStatus.MISSED,
                updated_at=now,
            )

        for call in calls:
            call.status = CallStatus.MISSED

        cls.get_logger().info(f"Marked {len(calls)} unanswered calls as missed")
        return calls


class PresenceService(BaseService):
    """
    Online/offline bookkeeping for live connections.

    A user is online while at least one of their connections is open.
    Opening the first connection sets is_online; closing the last one
    clears it and records last_seen.
    """

    @classmethod
    def connect(cls, user_id, channel_name: str) -> ServiceResult[bool]:
        """
        Register an open connection and mark the user online.

        Returns:
            ServiceResult with True if this was the user's first connection
        """
        first = registry.register(user_id, channel_name)
        get_user_model().objects.filter(pk=user_id).update(is_online=True)

        if first:
            cls.get_logger().info(f"User {user_id} is online")
        return ServiceResult.success(first)

    @classmethod
    def disconnect(cls, user_id, channel_name: str) -> ServiceResult[bool]:
        """
        Unregister a closed connection.

        Returns:
            ServiceResult with True if the user went offline
        """
        last = registry.unregister(user_id, channel_name)
        if last:
            get_user_model().objects.filter(pk=user_id).update(
                is_online=False,
                last_seen=timezone.now(),
            )
            cls.get_logger().info(f"User {user_id} is offline")
        return ServiceResult.success(last)
