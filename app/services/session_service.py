"""
Session store operations backing the client's Session Lifecycle Manager.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.logger import get_logger, preview
from app.enums.session_enums import SessionStatus, UserRoleType
from app.exceptions.errors import ConflictError, NotFoundError
from app.models.coaching_session import CoachingSession
from app.models.session_message import SessionMessage
from app.models.user import UserRole

logger = get_logger("session_service")


class SessionService:

    @staticmethod
    async def create_session(db: AsyncSession, user_id: str) -> CoachingSession:
        session = CoachingSession(
            user_id=user_id,
            status=SessionStatus.ACTIVE.value,
            started_at=datetime.utcnow()
        )
        db.add(session)
        await db.commit()
        await db.refresh(session)
        logger.info(f"🆕 Created session {session.id} for user {user_id}")
        return session

    @staticmethod
    async def get_session(db: AsyncSession, session_id: str) -> Optional[CoachingSession]:
        result = await db.execute(
            select(CoachingSession).where(CoachingSession.id == session_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_session(db: AsyncSession, user_id: str, session_id: str) -> CoachingSession:
        result = await db.execute(
            select(CoachingSession)
            .where(CoachingSession.id == session_id)
            .where(CoachingSession.user_id == user_id)
        )
        session = result.scalar_one_or_none()
        if not session:
            raise NotFoundError("Session not found")
        return session

    @staticmethod
    async def list_user_sessions(db: AsyncSession, user_id: str) -> List[CoachingSession]:
        result = await db.execute(
            select(CoachingSession)
            .where(CoachingSession.user_id == user_id)
            .order_by(CoachingSession.created_at.desc(), CoachingSession.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_messages(db: AsyncSession, session_id: str) -> List[SessionMessage]:
        result = await db.execute(
            select(SessionMessage)
            .where(SessionMessage.session_id == session_id)
            .order_by(SessionMessage.created_at.asc(), SessionMessage.id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def append_message(
        db: AsyncSession,
        user_id: str,
        session_id: str,
        sender: str,
        content: str
    ) -> SessionMessage:
        session = await SessionService.get_user_session(db, user_id, session_id)
        if session.status != SessionStatus.ACTIVE.value:
            raise ConflictError("Session is not active")

        message = SessionMessage(
            session_id=session.id,
            sender=sender,
            content=content,
            created_at=datetime.utcnow()
        )
        db.add(message)
        await db.commit()
        await db.refresh(message)
        logger.info(f"💬 {sender} ({session.id}): {preview(content)}")
        return message

    @staticmethod
    async def end_session(
        db: AsyncSession,
        user_id: str,
        session_id: str,
        status: str,
        ended_at: Optional[datetime] = None,
        duration_seconds: Optional[int] = None
    ) -> CoachingSession:
        """
        Close an active session. A session that is already closed is
        returned untouched, so ended_at/duration_seconds are written once.
        """
        session = await SessionService.get_user_session(db, user_id, session_id)
        if session.status != SessionStatus.ACTIVE.value:
            logger.info(f"Session {session.id} already {session.status}, nothing to end")
            return session

        if ended_at is not None and ended_at.tzinfo is not None:
            # Stored naive UTC, like every other timestamp column
            ended_at = ended_at.astimezone(timezone.utc).replace(tzinfo=None)
        ended_at = ended_at or datetime.utcnow()
        if duration_seconds is None:
            duration_seconds = max(0, round((ended_at - session.started_at).total_seconds()))

        session.status = status
        session.ended_at = ended_at
        session.duration_seconds = duration_seconds
        await db.commit()
        await db.refresh(session)
        logger.info(f"🏁 Session {session.id} {status} after {duration_seconds}s")
        return session

    @staticmethod
    async def rate_session(
        db: AsyncSession,
        user_id: str,
        session_id: str,
        rating: int,
        feedback: List[str]
    ) -> CoachingSession:
        session = await SessionService.get_user_session(db, user_id, session_id)
        session.rating = rating
        session.feedback = list(feedback)
        await db.commit()
        await db.refresh(session)
        return session

    @staticmethod
    async def is_admin(db: AsyncSession, user_id: str) -> bool:
        result = await db.execute(
            select(UserRole)
            .where(UserRole.user_id == user_id)
            .where(UserRole.role == UserRoleType.ADMIN.value)
        )
        return result.scalar_one_or_none() is not None
