"""
Media application.

Attachments posted with channel and direct messages, stored in Django's
default storage and read through signed URLs.
"""
