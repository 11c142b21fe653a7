from fastapi import HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict

from app.services.session_service import SessionService
from app.core.logger import get_logger

logger = get_logger("admin_controller")


class AdminController:

    @staticmethod
    async def check(request: Request, db: AsyncSession) -> Dict:
        try:
            is_admin = await SessionService.is_admin(db, request.state.user.id)
            return {"isAdmin": is_admin}
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"❌ Error checking admin role: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=str(e)
            )
