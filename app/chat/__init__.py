"""
Chat app for real-time messaging.

This app handles:
- Conversations (direct and group) and membership
- Message sending, history and soft deletion
- Voice/video call records and their status lifecycle
- Presence (online flag, last seen) and live event fan-out

Related apps:
    - authentication: User model for participants
    - media: Upload endpoint producing file descriptors for messages

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.
    See events.py for the {type, data} envelopes pushed to clients.

Usage:
    from chat.services import ConversationService, MessageService

    conversation = ConversationService.get_or_create_direct(alice, bob).data
    message = MessageService.send_message(conversation, alice, content="Hello!").data
"""
