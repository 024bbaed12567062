"""
Tests for chat app.

This package contains test modules for:
- test_models.py: Conversation, Message and Call model tests
- test_services.py: Conversation, Message, Call and Presence service tests
- test_consumers.py: Live channel tests
- test_views.py: REST API endpoint tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
