"""
Workspaces application.

Top-level containers for channels and direct chats, plus membership.
"""
