"""
Authentication application.

This app provides the User model, registration, JWT login and user search
for the chat backend.

Key components:
    - User model: Email login, public username, presence fields
    - RegisterView / token views: Account creation and JWT issuance
    - UserSearchView: Find people to start a conversation with

Usage:
    from authentication.models import User
"""
