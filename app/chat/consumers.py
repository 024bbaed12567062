"""
WebSocket consumer for the chat application.

One connection per client carries presence and every event for every
conversation the user belongs to.

Consumers:
    ChatConsumer: Presence tracking, event delivery and message frames

Authentication:
    Users are authenticated via JWT token passed as query parameter.
    JWTAuthMiddleware attaches the user to self.scope["user"].
    Unauthenticated connections are closed with code 4001.

Channel Groups:
    Each user's connections join the group "user_{user_id}". Events are
    published to the groups of the conversation's members (chat.events).

Message Types (from client):
    - ping: Keepalive, answered with pong
    - message: Send a text message
      {"type": "message", "conversation_id": "...", "content": "hi",
       "reply_to_id": "..."?}

Message Types (to client):
    - connection_established: Sent once after accept, with reconnect policy
    - pong: Reply to ping
    - new_message / message_deleted / call_initiated / call_status_updated
    - error: Rejected frame, {"type": "error", "data": {"error", "error_code"}}
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.db import DatabaseError
from rest_framework import serializers

from core.services import ServiceResult

from chat.constants import PRESENCE_CONFIG
from chat.events import NEW_MESSAGE, ChatEventPublisher, user_group_name
from chat.reconnect import DEFAULT_POLICY
from chat.serializers import MessageSerializer, SendMessageSerializer
from chat.services import ConversationService, MessageService, PresenceService

logger = logging.getLogger(__name__)


class MessageFrameSerializer(SendMessageSerializer):
    """A message frame names its conversation; HTTP takes it from the URL."""

    conversation_id = serializers.UUIDField()


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for the live channel.

    Handles:
        - Connection authentication
        - Presence (online on connect, offline when the last connection closes)
        - Delivery of events addressed to the user
        - Ping and message frames

    Attributes:
        user: Authenticated user (after connect)
        group_name: Channel layer group of the user
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.group_name: str | None = None

    async def connect(self):
        """
        Handle WebSocket connection.

        On success, joins the user's channel group, marks the user online
        and sends the connection_established frame.
        """
        user = self.scope.get("user")

        if not user or not user.is_authenticated:
            logger.warning("Rejected unauthenticated WebSocket connection")
            await self.close(code=PRESENCE_CONFIG.CLOSE_UNAUTHENTICATED)
            return

        self.user = user
        self.group_name = user_group_name(user.id)

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        # Browsers require the server to echo the token subprotocol
        subprotocol = "jwt" if "jwt" in self.scope.get("subprotocols", []) else None
        await self.accept(subprotocol=subprotocol)
        await database_sync_to_async(PresenceService.connect)(user.id, self.channel_name)

        await self.send_json(
            {
                "type": "connection_established",
                "data": {
                    "user_id": str(user.id),
                    "reconnect": DEFAULT_POLICY.as_dict(),
                },
            }
        )
        logger.info(f"User {user.id} opened live connection {self.channel_name}")

    async def disconnect(self, close_code):
        """
        Handle WebSocket disconnection.

        Leaves the channel group and marks the user offline if this was
        their last connection.
        """
        if not self.group_name:
            return

        await self.channel_layer.group_discard(self.group_name, self.channel_name)
        await database_sync_to_async(PresenceService.disconnect)(
            self.user.id, self.channel_name
        )
        logger.info(
            f"User {self.user.id} closed live connection {self.channel_name} "
            f"(code {close_code})"
        )

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        """Decode a frame, answering malformed ones with an error frame."""
        if text_data is None:
            await self._send_error("Binary frames are not supported", "INVALID_FRAME")
            return
        try:
            content = await self.decode_json(text_data)
        except ValueError:
            await self._send_error("Frame is not valid JSON", "INVALID_FRAME")
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        """
        Handle incoming WebSocket frames.

        Expected frame format:
            {"type": "ping"}
            {"type": "message", "conversation_id": "...", "content": "Hello!"}
        """
        if not isinstance(content, dict):
            await self._send_error("Frame must be a JSON object", "INVALID_FRAME")
            return

        frame_type = content.get("type")

        if frame_type == "ping":
            await self.send_json({"type": "pong"})
        elif frame_type == "message":
            await self._handle_message(content)
        else:
            await self._send_error(f"Unknown frame type: {frame_type}", "UNKNOWN_FRAME")

    async def _handle_message(self, content):
        """
        Send a message and publish new_message to the conversation members.

        The sender receives the event like every other member. A database
        failure is answered with a STORAGE_UNAVAILABLE error frame, the
        counterpart of the HTTP 503.
        """
        try:
            result, members, data = await self._send_message(content)
        except DatabaseError:
            logger.exception(
                f"Database error handling message frame from user {self.user.id}"
            )
            await self._send_error(
                "Storage temporarily unavailable, please retry", "STORAGE_UNAVAILABLE"
            )
            return

        if not result.success:
            await self.send_json({"type": "error", "data": result.to_response()})
            return

        await ChatEventPublisher.publish_async(members, NEW_MESSAGE, data)

    async def chat_event(self, event):
        """
        Handle chat.event messages from channel layer.

        Forwards the envelope to the WebSocket client unchanged.
        """
        await self.send_json(event["envelope"])

    async def _send_error(self, message: str, error_code: str):
        await self.send_json(
            {"type": "error", "data": {"error": message, "error_code": error_code}}
        )

    @database_sync_to_async
    def _send_message(self, content: dict) -> tuple[ServiceResult, list, dict | None]:
        """
        Validate the frame and send it through MessageService.

        Returns:
            (result, member ids, serialized message)
        """
        frame = MessageFrameSerializer(data=content)
        if not frame.is_valid():
            return (
                ServiceResult.failure(
                    "Invalid message frame",
                    error_code="VALIDATION_ERROR",
                    errors=frame.errors,
                ),
                [],
                None,
            )

        fields = dict(frame.validated_data)
        conversation_id = fields.pop("conversation_id")

        lookup = ConversationService.get_for_user(conversation_id, self.user)
        if not lookup.success:
            return lookup, [], None

        conversation = lookup.data
        result = MessageService.send_message(
            conversation=conversation,
            sender=self.user,
            **fields,
        )
        if not result.success:
            return result, [], None

        members = [participant.user_id for participant in conversation.participants.all()]
        return result, members, MessageSerializer(result.data).data
