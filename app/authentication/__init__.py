"""
Authentication application.

Users of the chat: the email-based User model, JWT login and refresh,
and the user directory that conversation views resolve authors from.

Key components:
    - User model: email login, username and display fields
    - UserService: lookups by id (batched for the realtime user cache)

Usage:
    from authentication.models import User
    from authentication.services import UserService
"""
