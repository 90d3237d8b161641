"""
Service layer: save and load prayer times from DB, and the Hijri label shown for a day.
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, delete

from community_dashboard.core.db import session_scope
from community_dashboard.core.hijri import gregorian_to_hijri, hijri_label
from community_dashboard.core.models import utc_now
from community_dashboard.plugins.prayer.models import PrayerTimesRecord

COMPONENT_NAME = "Prayer Times"


def save_prayer_times(
    component_name: str,
    prayer_date: date,
    times_dict: Dict[str, Any],
    hijri_label: Optional[str] = None,
) -> None:
    """Replace this component's prayer times for the given date. times_dict: prayer_name -> datetime or ISO str."""
    data = {k: v.isoformat() if isinstance(v, datetime) else v for k, v in times_dict.items()}
    with session_scope() as session:
        session.execute(
            delete(PrayerTimesRecord).where(
                PrayerTimesRecord.component_name == component_name,
                PrayerTimesRecord.prayer_date == prayer_date,
            )
        )
        session.add(
            PrayerTimesRecord(
                component_name=component_name,
                fetched_at=utc_now(),
                prayer_date=prayer_date,
                data=data,
                hijri_label=hijri_label,
            )
        )


def get_latest_prayer_times_record(component_name: str = COMPONENT_NAME) -> Optional[PrayerTimesRecord]:
    """Return the latest PrayerTimesRecord row for this component (for API serialization)."""
    with session_scope() as session:
        return (
            session.execute(
                select(PrayerTimesRecord)
                .where(PrayerTimesRecord.component_name == component_name)
                .order_by(PrayerTimesRecord.fetched_at.desc(), PrayerTimesRecord.id.desc())
                .limit(1)
            )
            .scalars().first()
        )


def get_prayer_times_record_for(day: date, component_name: str = COMPONENT_NAME) -> Optional[PrayerTimesRecord]:
    with session_scope() as session:
        return (
            session.execute(
                select(PrayerTimesRecord)
                .where(
                    PrayerTimesRecord.component_name == component_name,
                    PrayerTimesRecord.prayer_date == day,
                )
                .limit(1)
            )
            .scalars().first()
        )


def hijri_label_for(day: date, component_name: str = COMPONENT_NAME) -> str:
    """Stored API label for the day when fetched, else the tabular conversion."""
    record = get_prayer_times_record_for(day, component_name)
    if record is not None and record.hijri_label:
        return record.hijri_label
    return hijri_label(gregorian_to_hijri(day))
