"""
OpenAPI schema customizations for drf-spectacular.

This module provides a postprocessing hook that tidies the generated
schema for ReDoc:

- Natural language summaries for the simplejwt token endpoints (their
  views carry no @extend_schema)
- Tag descriptions, listed in navigation order

Views set their tag with tags=[...] in @extend_schema; the hook only
fills in what the views cannot.
"""

# Maps operation_id to (summary, description)
TOKEN_SUMMARIES = {
    "auth_token_create": (
        "Obtain tokens",
        "Exchange username and password for an access/refresh token pair.",
    ),
    "auth_token_refresh_create": (
        "Refresh access token",
        "Exchange a refresh token for a new access token.",
    ),
}

# Tag name -> description, in navigation order
TAG_DESCRIPTIONS = {
    "Auth": "JWT token issue and refresh.",
    "Users": "Current user and user lookups.",
    "Workspaces": "Workspaces and their membership.",
    "Channels": "Public and private channels of a workspace.",
    "Direct chats": "One-to-one conversations inside a workspace.",
    "Messages": "Messages and thread replies of channels and direct chats.",
    "Reactions": "Emoji reactions on messages.",
    "Attachments": "Files attached to messages; signed URLs and downloads.",
    "Presence": "Online/away/offline status and heartbeats.",
    "Search": "Full-text message search across readable conversations.",
}


def group_endpoints(result, generator, request, public):
    """
    Postprocessing hook grouping endpoints by tag.

    Token endpoints get the "Auth" tag and readable summaries; every tag
    in use gets its description.
    """
    paths = result.get("paths", {})
    used_tags = set()

    for path, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId", "")
            if operation_id in TOKEN_SUMMARIES:
                summary, description = TOKEN_SUMMARIES[operation_id]
                operation["summary"] = summary
                operation["description"] = description
                operation["tags"] = ["Auth"]

            used_tags.update(operation.get("tags", []))

    result["tags"] = [
        {"name": name, "description": description}
        for name, description in TAG_DESCRIPTIONS.items()
        if name in used_tags
    ]
    return result
