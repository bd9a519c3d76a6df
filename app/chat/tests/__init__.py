"""
Tests for chat app.

Usage:
    pytest chat/tests/
    pytest chat/tests/test_services.py
"""
