"""
Shared enums for the application.
"""

from .session_enums import (
    SessionStatus,
    MessageSender,
    UserRoleType
)

__all__ = [
    "SessionStatus",
    "MessageSender",
    "UserRoleType"
]
