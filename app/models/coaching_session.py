from sqlalchemy import Column, String, ForeignKey, DateTime, Index, Integer, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database.base import Base
import cuid


class CoachingSession(Base):
    """
    One voice coaching conversation, from connect to disconnect.

    Created active, closed once (ended_at, duration_seconds, status), then
    filled in once more by the summarizer. Transcript lives in `messages`.
    """
    __tablename__ = "sessions"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    user_id = Column(String(25), ForeignKey("users.id"), nullable=False, index=True)

    # Lifecycle (using String to avoid enum migration issues)
    status = Column(String(20), default="active", nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    ended_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    # Post-session digest
    summary = Column(Text, nullable=True)
    main_goals = Column(JSON, nullable=True)
    topics_discussed = Column(JSON, nullable=True)

    # User rating from the completion screen
    rating = Column(Integer, nullable=True)  # 1-5
    feedback = Column(JSON, nullable=True)  # free-text tags

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="sessions")
    messages = relationship(
        "SessionMessage",
        back_populates="session",
        order_by="SessionMessage.created_at",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_sessions_user_started", "user_id", "started_at"),
        Index("ix_sessions_user_status", "user_id", "status"),
    )
