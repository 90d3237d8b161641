"""
Per-plugin API for Schedules. Mounted at /api/components/schedules/.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from community_dashboard.core.config import configured_timezone, make_evaluator
from community_dashboard.core.recurrence import InvalidPolicyError
from .service import (
    create_schedule,
    delete_schedule,
    due_schedules,
    get_schedule,
    list_notifications,
    list_schedules,
    scan_due_and_notify,
    update_schedule,
)


class ScheduleCreate(BaseModel):
    activity_name: str
    time: Optional[str] = None
    frequency: Optional[str] = None
    days: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    description: Optional[str] = None


class ScheduleUpdate(BaseModel):
    """Fields to change; the creation time stays the recurrence anchor."""

    activity_name: Optional[str] = None
    time: Optional[str] = None
    frequency: Optional[str] = None
    days: Optional[List[str]] = None
    location: Optional[str] = None
    description: Optional[str] = None


class ScheduleResponse(BaseModel):
    """Pydantic view of a schedule row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    activity_name: str
    time: Optional[str] = None
    frequency: Optional[str] = None
    days: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime


class DueScheduleResponse(ScheduleResponse):
    reason: str


class ScanResponse(BaseModel):
    date: date
    due: int
    created: List[str]
    skipped: List[str]
    summary_id: Optional[str] = None


def get_router(dashboard_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/schedules."""
    router = APIRouter(tags=["Schedules"])

    @router.get("/", response_model=List[ScheduleResponse])
    def get_schedules() -> List[Dict[str, Any]]:
        return list_schedules()

    @router.post("/", response_model=ScheduleResponse, status_code=201)
    def post_schedule(body: ScheduleCreate) -> Dict[str, Any]:
        try:
            return create_schedule(body.model_dump(), configured_timezone(dashboard_app.config.data))
        except InvalidPolicyError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @router.get("/due", response_model=List[DueScheduleResponse])
    def get_due(day: Optional[date] = Query(None, alias="date")) -> List[Dict[str, Any]]:
        """Schedules due on the given date (default: today in the configured timezone)."""
        evaluator = make_evaluator(dashboard_app.config.data, day)
        return [{**item.record, "reason": item.evaluation.reason} for item in due_schedules(evaluator)]

    @router.post("/scan", response_model=ScanResponse)
    def post_scan(day: Optional[date] = Query(None, alias="date")) -> Dict[str, Any]:
        evaluator = make_evaluator(dashboard_app.config.data, day)
        result = scan_due_and_notify(evaluator)
        return {"date": evaluator.today, **result._asdict()}

    @router.get("/notifications")
    def get_notifications(day: Optional[date] = Query(None, alias="date")) -> List[Dict[str, Any]]:
        return list_notifications(day)

    @router.get("/{schedule_id}", response_model=ScheduleResponse)
    def get_one(schedule_id: int) -> Dict[str, Any]:
        record = get_schedule(schedule_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Schedule {schedule_id} not found")
        return record

    @router.put("/{schedule_id}", response_model=ScheduleResponse)
    def put_one(schedule_id: int, body: ScheduleUpdate) -> Dict[str, Any]:
        try:
            record = update_schedule(
                schedule_id, body.model_dump(exclude_unset=True), configured_timezone(dashboard_app.config.data)
            )
        except InvalidPolicyError as e:
            raise HTTPException(status_code=422, detail=str(e))
        if record is None:
            raise HTTPException(status_code=404, detail=f"Schedule {schedule_id} not found")
        return record

    @router.delete("/{schedule_id}", status_code=204)
    def delete_one(schedule_id: int) -> None:
        if not delete_schedule(schedule_id):
            raise HTTPException(status_code=404, detail=f"Schedule {schedule_id} not found")

    return router
