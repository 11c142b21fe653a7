from pydantic import BaseModel, Field


class RealtimeSessionRequest(BaseModel):
    """Request payload for the ephemeral credential endpoint."""

    voice: str = Field(
        "alloy",
        min_length=1,
        max_length=32,
        description="Voice/persona for synthesized speech",
        examples=["alloy", "verse"]
    )


class AdminCheckResponse(BaseModel):
    isAdmin: bool
