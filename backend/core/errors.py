# backend/core/errors.py

class ChatError(Exception):
    """Base class for errors raised by the chat core."""


class AccessDenied(ChatError):
    """Room unknown or user not in its authorized set."""

    # Same text for both causes so room existence is not leaked
    reason = "Access Denied"


class StoreUnavailable(ChatError):
    """Any failure reaching or querying the room directory / message store."""


class ConfigurationError(ChatError):
    """Fatal at startup; the server must not accept connections."""
