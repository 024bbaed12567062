"""
Chat system models.

This module defines the data models for the chat system supporting:
- Direct (1:1) conversations between exactly two users
- Group conversations with a name, description and creator
- Text and file messages with single-message reply references
- Voice and video calls attached to a conversation

Models:
    Conversation: Container for messages between participants
    DirectConversationPair: Helper for enforcing uniqueness of direct conversations
    Participant: Membership of a user in a conversation, with read tracking
    Message: Individual message within a conversation
    Call: A call placed inside a conversation

Design Decisions:
    - Conversations are never deleted; direct conversations are never renamed
    - Membership is append-only (no leave/remove operations)
    - Messages are soft deleted; the row stays so replies keep their reference
    - A reply must point at a live message of the same conversation (checked
      by MessageService at write time)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models, transaction
from django.db.models import F, Q
from django.utils import timezone

from core.managers import SoftDeleteManager
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from authentication.models import User


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: Exactly two participants, unnamed, unique per user pair
    GROUP: Named, created by one user, any number of participants
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class MessageType(models.TextChoices):
    """
    Kind of message content.

    TEXT carries body text; the other kinds carry a file descriptor
    (url, name, size) produced by the upload endpoint and optional text.
    """

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    AUDIO = "audio", "Audio"
    FILE = "file", "File"


class CallType(models.TextChoices):
    VOICE = "voice", "Voice"
    VIDEO = "video", "Video"


class CallStatus(models.TextChoices):
    """
    Call lifecycle.

    PENDING -> ACTIVE -> ENDED
    PENDING -> ENDED (caller hung up before anyone answered)
    PENDING -> MISSED (nobody answered before the ring timeout)
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    ENDED = "ended", "Ended"
    MISSED = "missed", "Missed"


class Conversation(UUIDPrimaryKeyMixin, BaseModel):
    """
    A conversation between two or more users.

    Conversation Types:
        DIRECT: Exactly 2 participants, no name.
                Unique per user pair (enforced via DirectConversationPair).

        GROUP: Named conversation, creator is added as the first participant.

    Fields:
        conversation_type: Type of conversation (direct or group)
        name: Group name (empty string for direct conversations)
        description: Optional group description
        avatar: Optional group avatar URL
        created_by: User who created the conversation
        last_message_at: Timestamp of most recent message (for sorting)

    Relationships:
        participants: All Participant records for this conversation
        messages: Live (non-deleted) Message records for this conversation
        calls: Call records for this conversation
        direct_pair: DirectConversationPair if type is DIRECT
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.GROUP,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Name for group conversations (empty for direct)",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Optional description for group conversations",
    )

    avatar = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Optional avatar URL for group conversations",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    last_sequence = models.PositiveBigIntegerField(
        default=0,
        editable=False,
        help_text="Sequence number handed to the most recent message",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["conversation_type", "-last_message_at"],
                name="chat_conv_type_last_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.conversation_type == ConversationType.DIRECT:
            return f"Direct({self.pk})"
        return f"Group: {self.name}"

    @property
    def is_direct(self) -> bool:
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        return self.conversation_type == ConversationType.GROUP

    def get_participant_for_user(self, user: User) -> Participant | None:
        """Return the membership record of ``user``, or None if not a member."""
        return self.participants.filter(user=user).first()


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct conversations between two users.

    This helper table stores user pairs in canonical order (lower user id
    first) so that, regardless of who initiates the conversation, the
    storage layer rejects a second direct conversation for the same pair.

    Fields:
        conversation: The direct conversation (OneToOne, serves as PK)
        user_lower: User with lower ID
        user_higher: User with higher ID

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One conversation per pair
        - CheckConstraint(user_lower_id < user_higher_id): Enforce canonical order
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this conversation pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this conversation pair",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical_order(user_a: User, user_b: User) -> tuple[User, User]:
        """Return the two users ordered (lower id, higher id)."""
        if str(user_a.pk) < str(user_b.pk):
            return user_a, user_b
        return user_b, user_a


class Participant(UUIDPrimaryKeyMixin, BaseModel):
    """
    Membership of a user in a conversation.

    Membership is append-only: a row is created when the user joins (direct
    conversation creation or group creation) and never removed.

    Fields:
        conversation: Conversation this membership belongs to
        user: Member
        joined_at: When the user joined
        last_read_at: Last time the user marked the conversation read
            (drives unread counts)

    Constraints:
        - UniqueConstraint(conversation, user)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this membership belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="User participating in the conversation",
    )

    joined_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the user joined this conversation",
    )

    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time user marked conversation as read (for unread counts)",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at"]
        indexes = [
            models.Index(
                fields=["user", "-joined_at"],
                name="chat_part_user_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_participation",
            ),
        ]

    def __str__(self) -> str:
        return f"Participant: {self.user_id} in {self.conversation_id}"


class Message(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    A message within a conversation.

    Soft Delete Behavior:
        When is_deleted=True:
        - The row is kept; `objects` hides it, `all_objects` still sees it
        - It disappears from history and from conversation previews
        - Messages replying to it keep their reply_to reference; the
          reference is rendered as a redacted preview

    Fields:
        conversation: Conversation this message belongs to
        sender: User who sent the message
        message_type: Kind of content (text, image, video, audio, file)
        content: Body text (may be empty for file messages)
        file_url / file_name / file_size: Descriptor returned by the upload endpoint
        reply_to: Earlier message of the same conversation this one replies to
        sequence: Insertion order within the conversation, assigned on save
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT,
        help_text="Kind of message content",
    )

    content = models.TextField(
        blank=True,
        default="",
        help_text="Message body text",
    )

    file_url = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="URL of the attached file (from the upload endpoint)",
    )

    file_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Original name of the attached file",
    )

    file_size = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Size of the attached file in bytes",
    )

    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to (same conversation)",
    )

    sequence = models.PositiveBigIntegerField(
        editable=False,
        help_text="Insertion order within the conversation",
    )

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "sequence"]
        indexes = [
            models.Index(
                fields=["sender", "-created_at"],
                name="chat_msg_sender_idx",
            ),
        ]
        constraints = [
            # Also serves history pages (newest first) per conversation
            models.UniqueConstraint(
                fields=["conversation", "sequence"],
                name="unique_message_sequence",
            ),
        ]

    def __str__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"User {self.sender_id}: {preview or self.file_name}{deleted_str}"

    def save(self, *args, **kwargs):
        """
        Save the message, numbering new rows within their conversation.

        The counter lives on the conversation row; the UPDATE holds that
        row's lock until commit, so concurrent senders get distinct,
        increasing numbers in the order their inserts are serialized.
        """
        if self.sequence is not None:
            return super().save(*args, **kwargs)

        with transaction.atomic():
            conversations = Conversation.objects.filter(pk=self.conversation_id)
            conversations.update(last_sequence=F("last_sequence") + 1)
            self.sequence = conversations.values_list("last_sequence", flat=True).get()
            super().save(*args, **kwargs)

    @property
    def is_reply(self) -> bool:
        return self.reply_to_id is not None

    @property
    def has_file(self) -> bool:
        return bool(self.file_url)


class Call(UUIDPrimaryKeyMixin, BaseModel):
    """
    A voice or video call placed in a conversation.

    Fields:
        conversation: Conversation the call belongs to
        caller: User who started the call
        call_type: voice or video
        status: pending, active, ended or missed (see CallStatus)
        started_at: When the call was initiated
        ended_at: When the call ended; set only on transition to ENDED
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="calls",
        help_text="Conversation the call belongs to",
    )

    caller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="placed_calls",
        help_text="User who started the call",
    )

    call_type = models.CharField(
        max_length=10,
        choices=CallType.choices,
        help_text="Voice or video",
    )

    status = models.CharField(
        max_length=10,
        choices=CallStatus.choices,
        default=CallStatus.PENDING,
        db_index=True,
        help_text="Current call status",
    )

    started_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the call was initiated",
    )

    ended_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the call ended (only for ended calls)",
    )

    class Meta:
        db_table = "chat_call"
        ordering = ["-started_at"]
        indexes = [
            models.Index(
                fields=["status", "started_at"],
                name="chat_call_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Call({self.call_type}, {self.status}) in {self.conversation_id}"

    @property
    def is_terminal(self) -> bool:
        return self.status in (CallStatus.ENDED, CallStatus.MISSED)
