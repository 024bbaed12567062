"""
Serializers for chat API.

This module provides serializers for the chat system:
- Message serializers (read, reply preview, send input)
- Conversation serializers (read, group/direct create input)
- Call serializers (read, create input, status update input)

Serializer Hierarchy:
    ReplyPreviewSerializer: Embedded reply target, redacted when deleted
    MessageSerializer: Message with sender and reply preview
    ParticipantSerializer: Membership with user profile
    ConversationSerializer: Conversation with members, last message, unread count

    SendMessageSerializer / HistoryQuerySerializer: Message input
    CreateGroupSerializer / CreateDirectSerializer: Conversation input
    CallSerializer / CreateCallSerializer / UpdateCallSerializer: Calls

Design Decisions:
    - Read and write serializers are separate
    - Business rules live in chat.services; input serializers only check shape
    - The same MessageSerializer output is used in HTTP responses and in
      new_message events
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSerializer
from chat.constants import CONVERSATION_CONFIG, MESSAGE_CONFIG
from chat.models import Call, CallStatus, CallType, Conversation, Message, MessageType, Participant

# =============================================================================
# Message Serializers
# =============================================================================


class ReplyPreviewSerializer(serializers.ModelSerializer):
    """
    The message a reply points at.

    A deleted target keeps its id, sender and kind; its content and file
    fields are withheld.
    """

    sender = UserSerializer(read_only=True)
    content = serializers.SerializerMethodField()
    file_url = serializers.SerializerMethodField()
    file_name = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "sender",
            "message_type",
            "content",
            "file_url",
            "file_name",
            "is_deleted",
            "created_at",
        ]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str | None:
        return None if obj.is_deleted else obj.content

    def get_file_url(self, obj: Message) -> str | None:
        return None if obj.is_deleted else obj.file_url

    def get_file_name(self, obj: Message) -> str | None:
        return None if obj.is_deleted else obj.file_name


class MessageSerializer(serializers.ModelSerializer):
    """Full message representation used in history, send responses and events."""

    conversation_id = serializers.UUIDField(read_only=True)
    sender = UserSerializer(read_only=True)
    reply_to = ReplyPreviewSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "message_type",
            "content",
            "file_url",
            "file_name",
            "file_size",
            "reply_to",
            "is_deleted",
            "created_at",
        ]
        read_only_fields = fields


class SendMessageSerializer(serializers.Serializer):
    """
    Input for sending a message.

    Text messages need content; the other kinds need the descriptor
    returned by the upload endpoint. Those rules are checked by
    MessageService so the HTTP and WebSocket paths behave the same.
    """

    content = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        trim_whitespace=False,
    )
    message_type = serializers.ChoiceField(
        choices=MessageType.choices,
        default=MessageType.TEXT,
    )
    file_url = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)
    file_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    file_size = serializers.IntegerField(required=False, allow_null=True, default=None, min_value=0)
    reply_to_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class HistoryQuerySerializer(serializers.Serializer):
    """
    Query parameters for message history.

    Out-of-range values are clamped by MessageService rather than rejected.
    """

    limit = serializers.IntegerField(required=False, default=None, allow_null=True)
    offset = serializers.IntegerField(required=False, default=None, allow_null=True)


# =============================================================================
# Conversation Serializers
# =============================================================================


class ParticipantSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = Participant
        fields = ["user", "joined_at", "last_read_at"]
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation with members, last message and unread count.

    ConversationService.list_for_user precomputes ``last_message`` and
    ``unread_count``; for single conversations they are computed here.
    """

    created_by = serializers.UUIDField(source="created_by_id", read_only=True, allow_null=True)
    participants = ParticipantSerializer(many=True, read_only=True)
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            "id",
            "conversation_type",
            "name",
            "description",
            "avatar",
            "created_by",
            "participants",
            "last_message",
            "last_message_at",
            "unread_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_last_message(self, obj: Conversation) -> dict | None:
        if hasattr(obj, "last_message"):
            message = obj.last_message
        else:
            message = (
                Message.objects.filter(conversation=obj)
                .select_related("sender")
                .order_by("-sequence")
                .first()
            )
        if message is None:
            return None
        return MessageSerializer(message, context=self.context).data

    def get_unread_count(self, obj: Conversation) -> int:
        if hasattr(obj, "unread_count"):
            return obj.unread_count

        from chat.services import MessageService

        request = self.context.get("request")
        if request is None or not request.user.is_authenticated:
            return 0
        return MessageService.get_unread_count(obj, request.user)


class CreateGroupSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=CONVERSATION_CONFIG.MAX_NAME_LENGTH)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    member_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
        allow_empty=True,
        default=list,
    )


class CreateDirectSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()


# =============================================================================
# Call Serializers
# =============================================================================


class CallSerializer(serializers.ModelSerializer):
    conversation_id = serializers.UUIDField(read_only=True)
    caller = UserSerializer(read_only=True)

    class Meta:
        model = Call
        fields = [
            "id",
            "conversation_id",
            "caller",
            "call_type",
            "status",
            "started_at",
            "ended_at",
        ]
        read_only_fields = fields


class CreateCallSerializer(serializers.Serializer):
    conversation_id = serializers.UUIDField()
    call_type = serializers.ChoiceField(choices=CallType.choices)


class UpdateCallSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CallStatus.choices)
