"""
Session and transcript enums for the application.
"""

from enum import Enum


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class MessageSender(str, Enum):
    USER = "user"
    AI = "ai"


class UserRoleType(str, Enum):
    ADMIN = "admin"
    USER = "user"
