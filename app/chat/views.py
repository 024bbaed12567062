"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: List, group creation, direct get-or-create, detail, read
- MessageViewSet: History and send (nested under conversation), delete
- CallViewSet: Start a call, update its status

URL Structure:
    /api/v1/chat/conversations/                    GET, POST
    /api/v1/chat/conversations/direct/             POST
    /api/v1/chat/conversations/{id}/               GET
    /api/v1/chat/conversations/{id}/read/          POST
    /api/v1/chat/conversations/{id}/messages/      GET, POST
    /api/v1/chat/messages/{id}/                    DELETE
    /api/v1/chat/calls/                            POST
    /api/v1/chat/calls/{id}/                       PATCH

Design Decisions:
    - All business rules run in chat.services; views handle transport only
    - Service failures map to HTTP statuses in one place (failure_response)
    - Conversations the user is not in answer 404, like unknown ids
    - Events are published to members after the write succeeds
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.services import ServiceResult

from chat.events import ChatEventPublisher
from chat.serializers import (
    CallSerializer,
    ConversationSerializer,
    CreateCallSerializer,
    CreateDirectSerializer,
    CreateGroupSerializer,
    HistoryQuerySerializer,
    MessageSerializer,
    SendMessageSerializer,
    UpdateCallSerializer,
)
from chat.services import CallService, ConversationService, MessageService

User = get_user_model()


# =============================================================================
# Failure Mapping
# =============================================================================

# Codes reported as a uniform not-found, keyed to the public message/code
NOT_FOUND_CODES = {
    "NOT_PARTICIPANT": ("Conversation not found", "CONVERSATION_NOT_FOUND"),
    "CONVERSATION_NOT_FOUND": ("Conversation not found", "CONVERSATION_NOT_FOUND"),
    "MESSAGE_NOT_FOUND": ("Message not found", "MESSAGE_NOT_FOUND"),
    "CALL_NOT_FOUND": ("Call not found", "CALL_NOT_FOUND"),
    "USER_NOT_FOUND": ("User not found", "USER_NOT_FOUND"),
}

CONFLICT_CODES = frozenset({"INVALID_TRANSITION"})


def failure_response(result: ServiceResult) -> Response:
    """
    Render a failed ServiceResult with the status of its error class.

    Not-found style codes answer 404, state conflicts 409, anything else
    is a validation failure (400).
    """
    if result.error_code in NOT_FOUND_CODES:
        message, error_code = NOT_FOUND_CODES[result.error_code]
        exc = NotFoundError(message, error_code=error_code)
    elif result.error_code in CONFLICT_CODES:
        exc = ConflictError(result.error, error_code=result.error_code)
    else:
        exc = ValidationError(
            result.error,
            error_code=result.error_code,
            details=result.errors,
        )
    return Response(exc.to_dict(), status=exc.status_code)


# =============================================================================
# Conversations
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        tags=["Chat - Conversations"],
        responses={200: ConversationSerializer(many=True)},
    ),
    create=extend_schema(
        operation_id="create_group_conversation",
        summary="Create group conversation",
        tags=["Chat - Conversations"],
        request=CreateGroupSerializer,
        responses={201: ConversationSerializer},
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        tags=["Chat - Conversations"],
        responses={200: ConversationSerializer},
    ),
)
class ConversationViewSet(viewsets.GenericViewSet):
    """
    ViewSet for conversation operations.

    list:
        All conversations of the current user with members, last message
        and unread count. Most recently active first.

    create:
        Create a group. Every member id must resolve to a user; otherwise
        nothing is created.

    retrieve:
        Conversation details including all members.

    direct:
        Return the direct conversation with another user, creating it if
        it does not exist yet.

    read:
        Mark conversation as read.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = ConversationSerializer
    lookup_value_regex = "[0-9a-fA-F-]{32,36}"

    def list(self, request):
        conversations = ConversationService.list_for_user(request.user)
        serializer = ConversationSerializer(
            conversations, many=True, context={"request": request}
        )
        return Response(serializer.data)

    def create(self, request):
        """Create a group conversation."""
        serializer = CreateGroupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = ConversationService.create_group(
            creator=request.user,
            name=data["name"],
            description=data["description"],
            member_ids=data["member_ids"],
        )
        if not result.success:
            return failure_response(result)

        return self._conversation_response(
            request, result.data.pk, status.HTTP_201_CREATED
        )

    def retrieve(self, request, pk=None):
        return self._conversation_response(request, pk, status.HTTP_200_OK)

    @extend_schema(
        operation_id="get_or_create_direct_conversation",
        summary="Get or create direct conversation",
        tags=["Chat - Conversations"],
        request=CreateDirectSerializer,
        responses={200: ConversationSerializer, 201: ConversationSerializer},
    )
    @action(detail=False, methods=["post"])
    def direct(self, request):
        """Get or create the direct conversation with another user."""
        serializer = CreateDirectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        other_user = User.objects.filter(
            pk=serializer.validated_data["user_id"], is_active=True
        ).first()
        if other_user is None:
            return failure_response(
                ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")
            )

        result = ConversationService.get_or_create_direct(request.user, other_user)
        if not result.success:
            return failure_response(result)

        return self._conversation_response(request, result.data.pk, status.HTTP_200_OK)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        tags=["Chat - Conversations"],
        request=None,
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        """Mark conversation as read."""
        lookup = ConversationService.get_for_user(pk, request.user)
        if not lookup.success:
            return failure_response(lookup)

        result = MessageService.mark_as_read(conversation=lookup.data, user=request.user)
        if not result.success:
            return failure_response(result)

        return Response({"status": "read"})

    def _conversation_response(self, request, conversation_id, status_code) -> Response:
        lookup = ConversationService.get_for_user(conversation_id, request.user)
        if not lookup.success:
            return failure_response(lookup)

        serializer = ConversationSerializer(lookup.data, context={"request": request})
        return Response(serializer.data, status=status_code)


# =============================================================================
# Messages
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="Message history",
        tags=["Chat - Messages"],
        parameters=[
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="Page size (default 50, at most 200)",
            ),
            OpenApiParameter(
                name="offset",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="Messages to skip from the newest end",
            ),
        ],
        responses={200: MessageSerializer(many=True)},
    ),
    create=extend_schema(
        operation_id="send_message",
        summary="Send message",
        tags=["Chat - Messages"],
        request=SendMessageSerializer,
        responses={201: MessageSerializer},
    ),
    destroy=extend_schema(
        operation_id="delete_message",
        summary="Delete own message",
        tags=["Chat - Messages"],
        responses={
            204: OpenApiResponse(description="Message deleted"),
            404: OpenApiResponse(description="Unknown message or not the sender"),
        },
    ),
)
class MessageViewSet(viewsets.ViewSet):
    """
    ViewSet for message operations.

    list:
        A page of live messages, oldest first within the page. offset
        counts back from the newest message.

    create:
        Send a message to the conversation and publish new_message.

    destroy:
        Soft delete one of your own messages and publish message_deleted.
        Unknown ids and other users' messages both answer 404.
    """

    permission_classes = [IsAuthenticated]

    def list(self, request, conversation_pk=None):
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        lookup = ConversationService.get_for_user(conversation_pk, request.user)
        if not lookup.success:
            return failure_response(lookup)

        result = MessageService.history(
            conversation=lookup.data,
            user=request.user,
            limit=query.validated_data["limit"],
            offset=query.validated_data["offset"],
        )
        if not result.success:
            return failure_response(result)

        return Response(MessageSerializer(result.data, many=True).data)

    def create(self, request, conversation_pk=None):
        """Send a message."""
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lookup = ConversationService.get_for_user(conversation_pk, request.user)
        if not lookup.success:
            return failure_response(lookup)

        result = MessageService.send_message(
            conversation=lookup.data,
            sender=request.user,
            **serializer.validated_data,
        )
        if not result.success:
            return failure_response(result)

        message = result.data
        ChatEventPublisher.message_created(message)
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        """Soft delete a message."""
        result = MessageService.delete_message(pk, request.user)
        if not result.success:
            return failure_response(result)

        ChatEventPublisher.message_deleted(result.data)
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Calls
# =============================================================================


@extend_schema_view(
    create=extend_schema(
        operation_id="start_call",
        summary="Start call",
        tags=["Chat - Calls"],
        request=CreateCallSerializer,
        responses={201: CallSerializer},
    ),
    partial_update=extend_schema(
        operation_id="update_call_status",
        summary="Update call status",
        tags=["Chat - Calls"],
        request=UpdateCallSerializer,
        responses={200: CallSerializer},
    ),
)
class CallViewSet(viewsets.ViewSet):
    """
    ViewSet for calls.

    create:
        Start a call in a conversation; members receive call_initiated.

    partial_update:
        Move the call to a new status; members receive call_status_updated.
        Invalid transitions answer 409.
    """

    permission_classes = [IsAuthenticated]

    def create(self, request):
        serializer = CreateCallSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lookup = ConversationService.get_for_user(
            serializer.validated_data["conversation_id"], request.user
        )
        if not lookup.success:
            return failure_response(lookup)

        result = CallService.create_call(
            conversation=lookup.data,
            caller=request.user,
            call_type=serializer.validated_data["call_type"],
        )
        if not result.success:
            return failure_response(result)

        ChatEventPublisher.call_initiated(result.data)
        return Response(CallSerializer(result.data).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = UpdateCallSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CallService.update_status(
            pk, request.user, serializer.validated_data["status"]
        )
        if not result.success:
            return failure_response(result)

        ChatEventPublisher.call_status_updated(result.data)
        return Response(CallSerializer(result.data).data)
