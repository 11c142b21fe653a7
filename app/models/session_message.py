from sqlalchemy import Column, String, ForeignKey, DateTime, Text, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from app.database.base import Base
import cuid


class SessionMessage(Base):
    """A finalized transcript turn. Append-only, never partial text."""

    __tablename__ = "messages"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    session_id = Column(String(25), ForeignKey("sessions.id"), nullable=False, index=True)
    sender = Column(String(10), nullable=False)  # user, ai
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    session = relationship("CoachingSession", back_populates="messages")

    __table_args__ = (
        Index("ix_messages_session_created", "session_id", "created_at"),
    )
