from sqlalchemy import Column, String, Boolean, DateTime, Text, Index, text
from datetime import datetime
from app.database.base import Base
import cuid


class SystemPrompt(Base):
    """
    Named coaching instructions for the realtime voice model.
    At most one row is expected to be active at a time.
    """
    __tablename__ = "system_prompts"

    id = Column(String(25), primary_key=True, index=True, default=lambda: cuid.cuid())
    name = Column(String(255), nullable=False, default="Default")
    prompt_text = Column(Text, nullable=False)
    is_active = Column(Boolean, default=False, index=True)
    created_by = Column(String(25), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index(
            "uq_system_prompts_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active")
        ),
    )
