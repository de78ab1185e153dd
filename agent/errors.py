"""Error taxonomy for the chat pipeline.

Only configuration and generation failures reach the user. Cache and
persistence failures are absorbed where they happen.
"""

from __future__ import annotations


class ChatError(Exception):
    status_code: int = 500
    public_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        if message:
            self.public_message = message


class ConfigurationError(ChatError):
    status_code = 500
    public_message = "Server Configuration Error"


class ValidationError(ChatError):
    status_code = 400
    public_message = "No message provided"


class CacheError(ChatError):
    public_message = "Cache unavailable"


class RemoteGenerationError(ChatError):
    status_code = 500
    public_message = "AI service error"


class PersistenceCorruption(ChatError):
    public_message = "Stored conversation is unreadable"


__all__ = [
    "ChatError",
    "ConfigurationError",
    "ValidationError",
    "CacheError",
    "RemoteGenerationError",
    "PersistenceCorruption",
]
