from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.database.connection import get_db
from app.middlewares.clerk_auth import get_authenticated_user
from app.models.user import User
from app.api.v1.controllers.session_controller import SessionController
from app.schemas.session_schemas import (
    MessageCreateRequest,
    MessageData,
    SessionData,
    SessionEndRequest,
    SessionRatingRequest,
    SummaryRequest,
    SummaryResponse,
)

router = APIRouter(prefix="/sessions", tags=["Coaching Sessions"])


@router.post(
    "",
    summary="Start a session",
    response_model=SessionData,
    status_code=status.HTTP_201_CREATED
)
async def start_session(
    request: Request,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    return await SessionController.start(request, db)


@router.get("", summary="List my sessions", response_model=List[SessionData])
async def list_sessions(
    request: Request,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    """Newest first."""
    return await SessionController.list_sessions(request, db)


# Declared before the /{session_id} routes so "summary" is never read as an id
@router.post(
    "/summary",
    summary="Summarize a finished session",
    description="Runs the transcript through the summary model and stores summary, goals and topics.",
    response_model=SummaryResponse
)
async def summarize_session(
    payload: SummaryRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    return await SessionController.summarize(request, db, payload)


@router.get("/{session_id}", summary="Get a session", response_model=SessionData)
async def get_session(
    session_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    return await SessionController.get_session(request, db, session_id)


@router.get(
    "/{session_id}/messages",
    summary="Session transcript",
    response_model=List[MessageData]
)
async def list_messages(
    session_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    """Finalized messages in the order they were spoken."""
    return await SessionController.list_messages(request, db, session_id)


@router.post(
    "/{session_id}/messages",
    summary="Append a finalized message",
    response_model=MessageData,
    status_code=status.HTTP_201_CREATED
)
async def add_message(
    session_id: str,
    payload: MessageCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    return await SessionController.add_message(request, db, session_id, payload)


@router.post("/{session_id}/end", summary="End or pause a session", response_model=SessionData)
async def end_session(
    session_id: str,
    request: Request,
    payload: SessionEndRequest = SessionEndRequest(),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    """
    Close an active session with status `completed` or `paused`.

    Ending an already closed session returns it unchanged.
    """
    return await SessionController.end(request, db, session_id, payload)


@router.patch("/{session_id}/rating", summary="Rate a session", response_model=SessionData)
async def rate_session(
    session_id: str,
    payload: SessionRatingRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_authenticated_user)
):
    return await SessionController.rate(request, db, session_id, payload)
