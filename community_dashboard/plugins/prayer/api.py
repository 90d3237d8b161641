"""
Per-plugin API for Prayer Times. Mounted at /api/components/prayer/.
Prayer data comes from PrayerTimesRecord (Pydantic from_attributes); calendar and Qibla are computed.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from community_dashboard.core.config import configured_location, local_today
from community_dashboard.core.geo import GeoPoint, alignment, distance_to_kaaba, qibla_bearing
from community_dashboard.core.hijri import (
    WEEKDAY_HEADERS,
    gregorian_to_hijri,
    holidays_in_month,
    month_grid,
    month_header,
)
from .prayer_base import HolidayBackend
from .service import COMPONENT_NAME, get_latest_prayer_times_record, hijri_label_for


class PrayerTimesRecordResponse(BaseModel):
    """Pydantic view of PrayerTimesRecord for API; serializes from ORM."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    component_name: Optional[str] = None
    fetched_at: Optional[datetime] = None
    prayer_date: Optional[date] = None
    data: Optional[Dict[str, Any]] = None
    hijri_label: Optional[str] = None


class HijriResponse(BaseModel):
    date: date
    year: int
    month: int
    day: int
    label: str


class QiblaResponse(BaseModel):
    lat: float
    lon: float
    bearing: float
    distance_km: float
    heading: Optional[float] = None
    delta: Optional[float] = None
    aligned: Optional[bool] = None
    direction: Optional[str] = None


def _component_config(dashboard_app) -> Dict[str, Any]:
    config_data = dashboard_app.config.data
    cfg = dict((config_data.get("components") or {}).get(COMPONENT_NAME) or {})
    cfg.setdefault("cache_dir", (config_data.get("cache") or {}).get("directory"))
    return cfg


def get_router(dashboard_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/prayer."""
    router = APIRouter(tags=["Prayer Times"])

    @router.get("/data", response_model=PrayerTimesRecordResponse)
    def get_data() -> PrayerTimesRecordResponse:
        """Return latest prayer times record from DB (ORM serialized via Pydantic)."""
        record = get_latest_prayer_times_record(COMPONENT_NAME)
        if record is None:
            raise HTTPException(status_code=404, detail="No prayer times data available")
        return PrayerTimesRecordResponse.model_validate(record)

    @router.get("/hijri", response_model=HijriResponse)
    def get_hijri(day: Optional[date] = Query(None, alias="date")) -> Dict[str, Any]:
        day = day or local_today(dashboard_app.config.data)
        hijri = gregorian_to_hijri(day)
        return {"date": day, **hijri._asdict(), "label": hijri_label_for(day)}

    @router.get("/calendar")
    def get_calendar(
        year: Optional[int] = Query(None),
        month: Optional[int] = Query(None, ge=1, le=12),
        selected: Optional[date] = Query(None),
        include_holidays: bool = Query(True),
    ) -> Dict[str, Any]:
        """Sunday-first Gregorian month with Hijri days and national holidays."""
        today = local_today(dashboard_app.config.data)
        base = selected or today
        year = year or base.year
        month = month or base.month
        if selected is None or (selected.year, selected.month) != (year, month):
            selected = date(year, month, 1)

        holidays = HolidayBackend(_component_config(dashboard_app)).get_holidays(today) if include_holidays else {}
        gregorian_label, hijri_month_label = month_header(year, month, selected)
        weeks: List[List[Optional[Dict[str, Any]]]] = [
            [
                None if cell is None else {
                    "day": cell.day,
                    "iso": cell.iso,
                    "hijri": cell.hijri._asdict(),
                    "display_hijri_day": cell.display_hijri_day,
                    "holiday": cell.holiday,
                }
                for cell in week
            ]
            for week in month_grid(year, month, holidays)
        ]
        return {
            "gregorian_label": gregorian_label,
            "hijri_label": hijri_month_label,
            "selected": selected,
            "weekdays": list(WEEKDAY_HEADERS),
            "weeks": weeks,
            "holidays": [{"date": iso, "name": name} for iso, name in holidays_in_month(holidays, year, month)],
        }

    @router.get("/qibla", response_model=QiblaResponse)
    def get_qibla(
        lat: Optional[float] = Query(None),
        lon: Optional[float] = Query(None),
        heading: Optional[float] = Query(None),
    ) -> Dict[str, Any]:
        """Bearing and distance to the Kaaba; with a compass heading, how far to turn."""
        location = configured_location(dashboard_app.config.data)
        origin = GeoPoint(
            lat if lat is not None else location["lat"],
            lon if lon is not None else location["lon"],
        )
        target = qibla_bearing(origin)
        result = {
            "lat": origin.lat,
            "lon": origin.lon,
            "bearing": target,
            "distance_km": distance_to_kaaba(origin),
        }
        if heading is not None:
            result.update({"heading": heading, **alignment(heading, target)._asdict()})
        return result

    return router
