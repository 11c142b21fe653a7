from fastapi import HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List

from app.exceptions.errors import ApplicationException
from app.models.coaching_session import CoachingSession
from app.models.session_message import SessionMessage
from app.schemas.session_schemas import (
    MessageCreateRequest,
    SessionEndRequest,
    SessionRatingRequest,
    SummaryRequest,
)
from app.services.session_service import SessionService
from app.services.session_summary_service import summary_generator
from app.core.logger import get_logger

logger = get_logger("session_controller")


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"❌ Error {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e)
    )


class SessionController:
    """Controller for coaching session records and transcripts."""

    @staticmethod
    async def start(request: Request, db: AsyncSession) -> CoachingSession:
        try:
            return await SessionService.create_session(db, request.state.user.id)
        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            raise _internal_error("creating session", e)

    @staticmethod
    async def list_sessions(request: Request, db: AsyncSession) -> List[CoachingSession]:
        try:
            return await SessionService.list_user_sessions(db, request.state.user.id)
        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            raise _internal_error("listing sessions", e)

    @staticmethod
    async def get_session(request: Request, db: AsyncSession, session_id: str) -> CoachingSession:
        try:
            return await SessionService.get_user_session(db, request.state.user.id, session_id)
        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            raise _internal_error("fetching session", e)

    @staticmethod
    async def list_messages(request: Request, db: AsyncSession, session_id: str) -> List[SessionMessage]:
        try:
            # ownership check
            await SessionService.get_user_session(db, request.state.user.id, session_id)
            return await SessionService.list_messages(db, session_id)
        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            raise _internal_error("listing messages", e)

    @staticmethod
    async def add_message(
        request: Request,
        db: AsyncSession,
        session_id: str,
        payload: MessageCreateRequest
    ) -> SessionMessage:
        """Persist one finalized utterance. Partial transcripts never reach here."""

        try:
            return await SessionService.append_message(
                db,
                user_id=request.state.user.id,
                session_id=session_id,
                sender=payload.sender,
                content=payload.content
            )
        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            raise _internal_error("saving message", e)

    @staticmethod
    async def end(
        request: Request,
        db: AsyncSession,
        session_id: str,
        payload: SessionEndRequest
    ) -> CoachingSession:
        try:
            return await SessionService.end_session(
                db,
                user_id=request.state.user.id,
                session_id=session_id,
                status=payload.status,
                ended_at=payload.ended_at,
                duration_seconds=payload.duration_seconds
            )
        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            raise _internal_error("ending session", e)

    @staticmethod
    async def rate(
        request: Request,
        db: AsyncSession,
        session_id: str,
        payload: SessionRatingRequest
    ) -> CoachingSession:
        try:
            return await SessionService.rate_session(
                db,
                user_id=request.state.user.id,
                session_id=session_id,
                rating=payload.rating,
                feedback=payload.feedback
            )
        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            raise _internal_error("rating session", e)

    @staticmethod
    async def summarize(request: Request, db: AsyncSession, payload: SummaryRequest) -> Dict:
        """
        Generate and store the post-session digest.

        Returns 400 without a session id, 404 for sessions the caller does
        not own, 429/402 when the model provider throttles or is out of credit.
        """

        if not payload.session_id:
            raise ApplicationException("sessionId is required", status.HTTP_400_BAD_REQUEST)

        try:
            await SessionService.get_user_session(db, request.state.user.id, payload.session_id)
            logger.info(f"📝 Generating summary for session: {payload.session_id}")
            return await summary_generator.generate_for_session(db, payload.session_id)
        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            logger.error(f"❌ Error in session summary: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="AI analysis failed"
            )
