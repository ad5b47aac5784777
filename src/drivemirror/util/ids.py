from __future__ import annotations

import secrets
import uuid


def new_uuid() -> str:
    """Generate a UUID4 string."""
    return str(uuid.uuid4())


def new_channel_id() -> str:
    """Generate an id for a new push-notification channel."""
    return new_uuid()


def new_channel_token() -> str:
    """Generate the secret echoed back by the provider on every notification."""
    return secrets.token_urlsafe(24)
