"""
User-facing notices raised during a live conversation.

The browser client showed these as toasts. Here a Notifier receives them;
the CLI prints them, tests collect them.
"""

from dataclasses import dataclass
from typing import List, Optional

from app.core.logger import get_logger

logger = get_logger("realtime.notifications")

QUOTA_EXCEEDED = "insufficient_quota"
RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    destructive: bool = True


QUOTA_NOTICE = Notice(
    "Quota Exceeded",
    "The AI service has reached its usage limit. Please add credits to your OpenAI account."
)
RATE_LIMIT_NOTICE = Notice(
    "Rate Limited",
    "Too many requests. Please wait a moment and try again."
)
TRANSCRIPTION_RATE_LIMIT_NOTICE = Notice(
    "Transcription Unavailable",
    "Voice transcription temporarily unavailable due to rate limits."
)
SESSION_START_NOTICE = Notice(
    "Session Error",
    "Failed to start session. Your conversation will not be saved."
)


def categorize_error(code: Optional[str], message: Optional[str], response_failed: bool) -> Notice:
    """Quota and rate-limit failures get actionable text; everything else is generic."""
    if code == QUOTA_EXCEEDED:
        return QUOTA_NOTICE
    if code == RATE_LIMIT_EXCEEDED:
        return RATE_LIMIT_NOTICE
    if response_failed:
        return Notice("Response Failed", message or "Failed to generate response")
    return Notice("Error", message or "An error occurred")


def is_rate_limited_transcription(code: Optional[str], message: Optional[str]) -> bool:
    return code == RATE_LIMIT_EXCEEDED or "429" in (message or "")


def connect_failed_notice(reason: Optional[str]) -> Notice:
    return Notice("Connection Failed", reason or "Could not connect to voice service")


class Notifier:
    """Receives notices. Subclass to render them."""

    def notify(self, notice: Notice) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    def notify(self, notice: Notice) -> None:
        if notice.destructive:
            logger.warning(f"⚠️ {notice.title}: {notice.description}")
        else:
            logger.info(f"{notice.title}: {notice.description}")


class CollectingNotifier(Notifier):
    """Keeps every notice in order."""

    def __init__(self):
        self.notices: List[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)
