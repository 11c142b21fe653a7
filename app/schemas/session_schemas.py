from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import datetime


class SessionData(BaseModel):
    """A coaching session as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    status: str
    summary: Optional[str] = None
    main_goals: Optional[List[str]] = None
    topics_discussed: Optional[List[str]] = None
    created_at: datetime
    rating: Optional[int] = None
    feedback: Optional[List[str]] = None


class MessageData(BaseModel):
    """One finalized transcript turn."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    sender: Literal["user", "ai"]
    content: str
    created_at: datetime


class MessageCreateRequest(BaseModel):
    sender: Literal["user", "ai"] = Field(..., description="Who spoke the finalized utterance")
    content: str = Field(
        ...,
        min_length=1,
        description="Finalized transcript text, never a streamed partial",
        examples=["I like my job"]
    )


class SessionEndRequest(BaseModel):
    status: Literal["completed", "paused"] = "completed"
    ended_at: Optional[datetime] = Field(
        None,
        description="Client-observed end time. Defaults to the server clock."
    )
    duration_seconds: Optional[int] = Field(
        None,
        ge=0,
        description="Client-measured duration. Defaults to ended_at - started_at."
    )


class SessionRatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: List[str] = Field(default_factory=list, examples=[["Felt heard", "Too short"]])


class SummaryRequest(BaseModel):
    """Body of the summarization endpoint. Keeps the camelCase wire name."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")


class SessionAnalysis(BaseModel):
    """Strict shape expected back from the summarization model."""

    summary: str
    main_goals: List[str]
    topics_discussed: List[str]


class SummaryResponse(BaseModel):
    success: bool
    summary: str
    main_goals: List[str]
    topics_discussed: List[str]
