from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.middlewares.clerk_auth import get_authenticated_user
from app.models.user import User
from app.api.v1.controllers.admin_controller import AdminController
from app.schemas.realtime_schemas import AdminCheckResponse

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/check", response_model=AdminCheckResponse)
async def check_admin(
    request: Request,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    """Whether the caller holds the admin role."""
    return await AdminController.check(request, db)
