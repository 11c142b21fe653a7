"""
Models package for the application.
"""

from .user import User, UserRole
from .coaching_session import CoachingSession
from .session_message import SessionMessage
from .system_prompt import SystemPrompt

__all__ = [
    "User",
    "UserRole",
    "CoachingSession",
    "SessionMessage",
    "SystemPrompt",
]
