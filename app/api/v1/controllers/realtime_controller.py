from fastapi import HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict

from app.exceptions.errors import ApplicationException
from app.schemas.realtime_schemas import RealtimeSessionRequest
from app.services.credential_broker import credential_broker
from app.core.logger import get_logger

logger = get_logger("realtime_controller")


class RealtimeController:
    """Controller for realtime voice credentials."""

    @staticmethod
    async def create_session(request: Request, db: AsyncSession, payload: RealtimeSessionRequest) -> Dict:
        """Mint an ephemeral client secret for the authenticated user."""

        try:
            user_id = request.state.user.id
            return await credential_broker.create_session(db, user_id, payload.voice)

        except (HTTPException, ApplicationException):
            raise
        except Exception as e:
            logger.error(f"❌ Error creating realtime session: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=str(e)
            )
