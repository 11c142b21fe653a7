"""
Session Lifecycle Manager

Client-side owner of the current coaching session: creates it when the
conversation starts, persists each finalized message, closes it with a
duration, and asks the backend for the post-session summary.

Storage failures never interrupt the live conversation. They are logged,
and only a failure to create the session is shown to the user.
"""

import asyncio
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

from app.core.logger import get_logger, preview
from app.enums.session_enums import MessageSender, SessionStatus
from app.exceptions.errors import QuotaExceededError, RateLimitedError
from app.realtime.api_client import CoachApiClient
from app.realtime.notifications import (
    LoggingNotifier,
    Notifier,
    QUOTA_NOTICE,
    RATE_LIMIT_NOTICE,
    SESSION_START_NOTICE,
)

logger = get_logger("realtime.session_manager")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionCell:
    """
    The one mutable slot holding the current session id and start time.

    Callbacks read it when they run, never at creation time, so a message
    finalized right after the session is created still finds its id.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._session_id: Optional[str] = None
        self._started_at: Optional[datetime] = None

    @property
    def session_id(self) -> Optional[str]:
        with self._lock:
            return self._session_id

    def get(self) -> Tuple[Optional[str], Optional[datetime]]:
        with self._lock:
            return self._session_id, self._started_at

    def set(self, session_id: str, started_at: datetime) -> None:
        with self._lock:
            self._session_id = session_id
            self._started_at = started_at

    def take(self) -> Tuple[Optional[str], Optional[datetime]]:
        """Read and clear in one step."""
        with self._lock:
            current = (self._session_id, self._started_at)
            self._session_id = None
            self._started_at = None
            return current

    def restore(self, session_id: str, started_at: Optional[datetime]) -> None:
        with self._lock:
            if self._session_id is None:
                self._session_id = session_id
                self._started_at = started_at


class SessionLifecycleManager:

    def __init__(
        self,
        api: CoachApiClient,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.api = api
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.cell = SessionCell()
        self.current_session: Optional[Dict] = None
        self._pending: Set[asyncio.Task] = set()
        self._write_lock: Optional[asyncio.Lock] = None

    @property
    def session_id(self) -> Optional[str]:
        return self.cell.session_id

    async def start_session(self) -> Optional[Dict]:
        """New active session, or None when it could not be stored (the user is warned)."""
        started_at = self.clock()
        try:
            session = await self.api.create_session()
        except Exception as e:
            logger.error(f"❌ Failed to create session: {e}")
            self.notifier.notify(SESSION_START_NOTICE)
            return None

        self.cell.set(session["id"], started_at)
        self.current_session = session
        logger.info(f"🆕 Session started: {session['id']}")
        return session

    def save_message(self, sender: MessageSender, content: str) -> Optional[asyncio.Task]:
        """
        Schedule the write of one finalized message.

        The session id is read now, so the write targets the session that
        was current when the message was finalized. Writes run one at a
        time in the order they were scheduled.
        """
        session_id = self.cell.session_id
        if not session_id:
            logger.error("No active session to save message to")
            return None

        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        task = asyncio.ensure_future(self._write_message(session_id, sender, content))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write_message(self, session_id: str, sender: MessageSender, content: str) -> Optional[Dict]:
        async with self._write_lock:
            try:
                message = await self.api.add_message(session_id, MessageSender(sender).value, content)
            except Exception as e:
                logger.error(f"Failed to save message to {session_id}: {e}")
                return None
        logger.debug(f"Saved {sender} message: {preview(content)}")
        return message

    async def drain(self) -> None:
        """Wait for every scheduled message write."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def end_session(self, status: SessionStatus = SessionStatus.COMPLETED) -> Optional[Dict]:
        """
        Close the current session with a measured duration.

        Outstanding message writes finish first. Without a tracked session
        this is a no-op returning None, so a second call changes nothing.
        """
        status = SessionStatus(status)
        session_id, started_at = self.cell.take()
        if not session_id:
            return None

        await self.drain()

        ended_at = self.clock()
        duration_seconds = None
        if started_at is not None:
            duration_seconds = max(0, round((ended_at - started_at).total_seconds()))

        try:
            session = await self.api.end_session(
                session_id,
                status=status.value,
                ended_at=ended_at,
                duration_seconds=duration_seconds
            )
        except Exception as e:
            logger.error(f"❌ Failed to end session {session_id}: {e}")
            self.cell.restore(session_id, started_at)
            return None

        self.current_session = session
        logger.info(f"🏁 Session {session_id} {status.value} after {duration_seconds}s")
        return session

    async def generate_summary(self, session_id: str) -> Optional[Dict]:
        """Run the summarizer, then return the refreshed session."""
        try:
            await self.api.generate_summary(session_id)
        except QuotaExceededError:
            self.notifier.notify(QUOTA_NOTICE)
            return None
        except RateLimitedError:
            self.notifier.notify(RATE_LIMIT_NOTICE)
            return None
        except Exception as e:
            logger.error(f"Failed to generate summary: {e}")
            return None

        session = await self.get_session(session_id)
        if session:
            self.current_session = session
        return session

    # read APIs

    async def get_session(self, session_id: str) -> Optional[Dict]:
        try:
            return await self.api.get_session(session_id)
        except Exception as e:
            logger.error(f"Failed to get session: {e}")
            return None

    async def get_user_sessions(self) -> List[Dict]:
        try:
            return await self.api.list_sessions()
        except Exception as e:
            logger.error(f"Failed to get sessions: {e}")
            return []

    async def get_session_messages(self, session_id: str) -> List[Dict]:
        try:
            return await self.api.list_messages(session_id)
        except Exception as e:
            logger.error(f"Failed to get messages: {e}")
            return []

    async def update_session_rating(self, session_id: str, rating: int, feedback: List[str]) -> Optional[Dict]:
        try:
            return await self.api.rate_session(session_id, rating, feedback)
        except Exception as e:
            logger.error(f"Failed to update session rating: {e}")
            return None
