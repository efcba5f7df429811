"""Database models for announcements and chat history."""
from sqlalchemy import Column, String, Text, DateTime, Date, Boolean, Integer
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class Announcement(Base):
    """Published scholarship announcement; only active rows are used for answers."""
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    summary = Column(Text, nullable=True)  # rich-text HTML from the admin editor
    full_content = Column(Text, nullable=True)
    target_audience = Column(String, nullable=True)
    application_deadline = Column(Date, nullable=True)
    announcement_end_date = Column(Date, nullable=True)
    submission_method = Column(String, nullable=True)
    application_limitations = Column(String, nullable=True)  # "Y" / "N"
    is_active = Column(Boolean, default=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Announcement(id={self.id}, title={self.title!r}, is_active={self.is_active})>"


class ChatHistory(Base):
    """Append-only chat turn log, one row per turn."""
    __tablename__ = "chat_history"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, index=True, nullable=False)
    caller_id = Column(String, index=True, nullable=False)
    role = Column(String, nullable=False)  # "user" or "assistant"
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ChatHistory(id={self.id}, session_id={self.session_id}, caller_id={self.caller_id}, role={self.role})>"
