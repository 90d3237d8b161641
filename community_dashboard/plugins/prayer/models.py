"""
SQLAlchemy models for prayer times: one row per day per component.
"""
from sqlalchemy import Column, String, Date, DateTime, Integer, JSON

from community_dashboard.core.db import Base


class PrayerTimesRecord(Base):
    """One prayer times fetch. data is JSON: {prayer_name: ISO datetime string}."""
    __tablename__ = "prayer_times_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    component_name = Column(String(255), nullable=False, index=True)
    fetched_at = Column(DateTime(timezone=False), nullable=False, index=True)
    prayer_date = Column(Date, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    hijri_label = Column(String(64), nullable=True)  # as reported by the API, e.g. "19 Jumada al-Akhirah 1445"
