"""
Live event fan-out.

Every event pushed to clients is an envelope ``{"type": ..., "data": ...}``.
Events are addressed to the members of the affected conversation: each
member's connections join the channel-layer group ``user_<id>`` (see
chat.consumers), and the publisher sends one group message per member.

Event types:
    new_message: MessageSerializer output of the new message
    message_deleted: {"id", "conversation_id"}
    call_initiated: CallSerializer output
    call_status_updated: CallSerializer output

Usage:
    from chat.events import ChatEventPublisher

    # From sync code (views, Celery tasks)
    ChatEventPublisher.message_created(message)

    # From a consumer
    await ChatEventPublisher.publish_async(member_ids, NEW_MESSAGE, data)
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder

from chat.constants import PRESENCE_CONFIG

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.models import Call, Message

logger = logging.getLogger(__name__)

NEW_MESSAGE = "new_message"
MESSAGE_DELETED = "message_deleted"
CALL_INITIATED = "call_initiated"
CALL_STATUS_UPDATED = "call_status_updated"

# Channel-layer message type; dispatched to ChatConsumer.chat_event
CHANNEL_EVENT_TYPE = "chat.event"


def user_group_name(user_id) -> str:
    return f"{PRESENCE_CONFIG.USER_GROUP_PREFIX}{user_id}"


def build_envelope(event_type: str, data) -> dict:
    """
    Wrap event data in the client envelope.

    The data is normalized to plain JSON types (UUIDs and datetimes become
    strings) so it survives any channel layer serializer unchanged.
    """
    return {
        "type": event_type,
        "data": json.loads(json.dumps(data, cls=DjangoJSONEncoder)),
    }


class ChatEventPublisher:
    """
    Sends event envelopes to conversation members.

    A failed send to one member is logged and skipped; the remaining
    members still receive the event.
    """

    @classmethod
    async def publish_async(cls, member_ids: Iterable, event_type: str, data) -> int:
        """
        Send an event to every member.

        Returns:
            Number of members the event was handed to
        """
        channel_layer = get_channel_layer()
        envelope = build_envelope(event_type, data)
        delivered = 0

        for user_id in member_ids:
            try:
                await channel_layer.group_send(
                    user_group_name(user_id),
                    {"type": CHANNEL_EVENT_TYPE, "envelope": envelope},
                )
            except Exception:
                logger.warning(
                    f"Dropped {event_type} event for user {user_id}",
                    exc_info=True,
                )
                continue
            delivered += 1

        logger.debug(f"Published {event_type} to {delivered} members")
        return delivered

    @classmethod
    def publish(cls, member_ids: Iterable, event_type: str, data) -> int:
        return async_to_sync(cls.publish_async)(list(member_ids), event_type, data)

    # -------------------------------------------------------------------------
    # Domain events (sync callers)
    # -------------------------------------------------------------------------

    @classmethod
    def message_created(cls, message: Message) -> int:
        from chat.serializers import MessageSerializer
        from chat.services import ConversationService

        return cls.publish(
            ConversationService.member_ids(message.conversation),
            NEW_MESSAGE,
            MessageSerializer(message).data,
        )

    @classmethod
    def message_deleted(cls, message: Message) -> int:
        from chat.services import ConversationService

        return cls.publish(
            ConversationService.member_ids(message.conversation),
            MESSAGE_DELETED,
            {"id": message.pk, "conversation_id": message.conversation_id},
        )

    @classmethod
    def call_initiated(cls, call: Call) -> int:
        from chat.serializers import CallSerializer
        from chat.services import ConversationService

        return cls.publish(
            ConversationService.member_ids(call.conversation),
            CALL_INITIATED,
            CallSerializer(call).data,
        )

    @classmethod
    def call_status_updated(cls, call: Call) -> int:
        from chat.serializers import CallSerializer
        from chat.services import ConversationService

        return cls.publish(
            ConversationService.member_ids(call.conversation),
            CALL_STATUS_UPDATED,
            CallSerializer(call).data,
        )
