"""
SQLAlchemy models for recurring schedules and the notifications generated from them.
"""
from sqlalchemy import Column, String, Date, DateTime, Integer, JSON, Text

from community_dashboard.core.db import Base
from community_dashboard.core.models import utc_now


class ScheduleRecord(Base):
    """One recurring activity. created_at is the recurrence anchor and never changes after insert."""
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    activity_name = Column(String(255), nullable=False)
    time = Column(String(16), nullable=True)  # "HH:MM", display only
    frequency = Column(String(32), nullable=True)
    days = Column(JSON, nullable=True)  # ["Monday", "Thursday"]
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=False), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=False), default=utc_now, onupdate=utc_now, nullable=False)

    def as_record(self) -> dict:
        """Plain dict view used by the recurrence evaluator."""
        return {
            "id": self.id,
            "activity_name": self.activity_name,
            "time": self.time,
            "frequency": self.frequency,
            "days": list(self.days or []),
            "location": self.location,
            "description": self.description,
            "created_at": self.created_at,
        }


class NotificationRecord(Base):
    """Per-item notification (id "schedules_<id>") or the day's summary (id "summary_<date>")."""
    __tablename__ = "notifications"

    id = Column(String(255), primary_key=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False, default="")
    type = Column(String(32), nullable=False, default="info")  # info, summary
    category = Column(String(64), nullable=True)
    source_collection = Column(String(64), nullable=True, index=True)
    reference_id = Column(String(255), nullable=True, index=True)
    notify_date = Column(Date, nullable=False, index=True)
    count = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=False), default=utc_now, nullable=False)
