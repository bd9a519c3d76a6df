"""
Tests for authentication app.

- test_managers.py: UserManager create_user / create_superuser
- test_services.py: UserService lookups
- test_views.py: token, current user and user lookup endpoints
"""
