from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.middlewares.clerk_auth import get_authenticated_user
from app.models.user import User
from app.api.v1.controllers.realtime_controller import RealtimeController
from app.schemas.realtime_schemas import RealtimeSessionRequest

router = APIRouter(prefix="/realtime", tags=["Realtime Voice"])


@router.post(
    "/session",
    summary="Create ephemeral realtime session",
    description="Returns a short-lived client secret for a direct WebRTC connection to the voice model."
)
async def create_realtime_session(
    request: Request,
    payload: RealtimeSessionRequest = RealtimeSessionRequest(),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    """
    Exchange the caller's identity for an ephemeral credential.

    The response is the provider payload; `client_secret.value` is what the
    client presents during the SDP handshake.
    """
    return await RealtimeController.create_session(request, db, payload)
