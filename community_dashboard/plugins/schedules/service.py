"""
Service layer: schedule CRUD, due-today aggregation, notification scan and daily summary.
"""
import logging
from collections import namedtuple
from datetime import date, datetime, tzinfo
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func

from community_dashboard.core.db import session_scope
from community_dashboard.core.models import utc_now
from community_dashboard.core.recurrence import (
    RecurrenceEvaluator,
    RecurrencePolicy,
    normalize_days,
    normalize_frequency,
    parse_anchor,
    validate_policy,
)
from community_dashboard.plugins.schedules.models import NotificationRecord, ScheduleRecord

logger = logging.getLogger(__name__)

SOURCE_COLLECTION = "schedules"
SUMMARY_TYPE = "summary"
DEFAULT_SUMMARY_THRESHOLD = 7

DueSchedule = namedtuple("DueSchedule", ["record", "evaluation"])
ScanResult = namedtuple("ScanResult", ["due", "created", "skipped", "summary_id"])

_EDITABLE_FIELDS = ("activity_name", "time", "frequency", "days", "location", "description")


def policy_for(record: Dict[str, Any], tz: Optional[tzinfo] = None) -> RecurrencePolicy:
    return RecurrencePolicy(
        frequency=normalize_frequency(record.get("frequency")),
        days=normalize_days(record.get("days"), strict=True),
        anchor=parse_anchor(record.get("created_at"), tz),
    )


def create_schedule(
    data: Dict[str, Any],
    tz: Optional[tzinfo] = None,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Validate and insert a schedule. created_at (naive UTC) defaults to now and becomes the anchor."""
    created_at = created_at or utc_now()
    fields = {key: data.get(key) for key in _EDITABLE_FIELDS}
    fields["frequency"] = normalize_frequency(fields["frequency"])
    policy = validate_policy(policy_for({**fields, "created_at": created_at}, tz))
    fields["days"] = list(policy.days)
    if not fields.get("activity_name"):
        fields["activity_name"] = "Untitled"

    with session_scope() as session:
        row = ScheduleRecord(created_at=created_at, updated_at=created_at, **fields)
        session.add(row)
        session.flush()
        logger.info(f"Created schedule {row.id} ({row.activity_name}, frequency={row.frequency})")
        return row.as_record()


def list_schedules() -> List[Dict[str, Any]]:
    """All schedules, newest first."""
    with session_scope() as session:
        rows = session.execute(
            select(ScheduleRecord).order_by(ScheduleRecord.created_at.desc(), ScheduleRecord.id.desc())
        ).scalars().all()
        return [row.as_record() for row in rows]


def get_schedule(schedule_id: int) -> Optional[Dict[str, Any]]:
    with session_scope() as session:
        row = session.get(ScheduleRecord, schedule_id)
        return row.as_record() if row else None


def update_schedule(schedule_id: int, changes: Dict[str, Any], tz: Optional[tzinfo] = None) -> Optional[Dict[str, Any]]:
    """Apply field changes and re-validate against the original anchor. None when the row is missing."""
    with session_scope() as session:
        row = session.get(ScheduleRecord, schedule_id)
        if row is None:
            return None
        merged = row.as_record()
        merged.update({key: value for key, value in changes.items() if key in _EDITABLE_FIELDS})
        merged["frequency"] = normalize_frequency(merged["frequency"])
        policy = validate_policy(policy_for(merged, tz))
        merged["days"] = list(policy.days)
        for key in _EDITABLE_FIELDS:
            setattr(row, key, merged[key])
        row.updated_at = utc_now()
        return row.as_record()


def delete_schedule(schedule_id: int) -> bool:
    with session_scope() as session:
        row = session.get(ScheduleRecord, schedule_id)
        if row is None:
            return False
        session.delete(row)
        logger.info(f"Deleted schedule {schedule_id}")
        return True


def due_schedules(evaluator: RecurrenceEvaluator) -> List[DueSchedule]:
    """Schedules due on evaluator.today, newest first, each with the evaluation that admitted it."""
    result = []
    for record in list_schedules():
        evaluation = evaluator.evaluate_record(record)
        if evaluation.due:
            result.append(DueSchedule(record, evaluation))
    logger.debug(f"{len(result)} schedules due on {evaluator.today}")
    return result


def notification_exists(session, source_collection: str, reference_id: str) -> bool:
    return session.execute(
        select(NotificationRecord.id).where(
            NotificationRecord.source_collection == source_collection,
            NotificationRecord.reference_id == reference_id,
        ).limit(1)
    ).first() is not None


def create_or_update_summary(notify_date: date, total_count: int) -> str:
    """Upsert the single summary notification for a day; returns its id."""
    summary_id = f"summary_{notify_date.isoformat()}"
    title = f"{total_count} Notifications for today"
    message = f"You have {total_count} items in the dashboard today."
    with session_scope() as session:
        row = session.get(NotificationRecord, summary_id)
        if row is None:
            row = NotificationRecord(id=summary_id, notify_date=notify_date, created_at=utc_now())
            session.add(row)
        row.title = title
        row.message = message
        row.type = SUMMARY_TYPE
        row.category = SUMMARY_TYPE
        row.source_collection = SUMMARY_TYPE
        row.reference_id = None
        row.count = total_count
    logger.info(f"Summary notification {summary_id}: {title}")
    return summary_id


def scan_due_and_notify(evaluator: RecurrenceEvaluator) -> ScanResult:
    """Create one notification per due schedule that has none yet, plus a summary when more than one was created."""
    due = due_schedules(evaluator)
    created = []
    skipped = []
    with session_scope() as session:
        for item in due:
            reference_id = str(item.record["id"])
            if notification_exists(session, SOURCE_COLLECTION, reference_id):
                skipped.append(reference_id)
                continue
            session.add(NotificationRecord(
                id=f"{SOURCE_COLLECTION}_{reference_id}",
                title=item.record.get("activity_name") or f"{SOURCE_COLLECTION} created",
                message=item.record.get("description") or "",
                type="info",
                category=SOURCE_COLLECTION,
                source_collection=SOURCE_COLLECTION,
                reference_id=reference_id,
                notify_date=evaluator.today,
                created_at=utc_now(),
            ))
            created.append(reference_id)
            logger.info(f"Notification for schedule {reference_id}: {item.record.get('activity_name')}")

    summary_id = None
    if len(created) > 1:
        summary_id = create_or_update_summary(evaluator.today, len(created))
    return ScanResult(due=len(due), created=created, skipped=skipped, summary_id=summary_id)


def count_notifications_for(notify_date: date) -> int:
    """Non-summary notifications dated notify_date."""
    with session_scope() as session:
        return session.execute(
            select(func.count(NotificationRecord.id)).where(
                NotificationRecord.notify_date == notify_date,
                NotificationRecord.type != SUMMARY_TYPE,
            )
        ).scalar_one()


def list_notifications(notify_date: Optional[date] = None) -> List[Dict[str, Any]]:
    with session_scope() as session:
        query = select(NotificationRecord).order_by(NotificationRecord.created_at.desc())
        if notify_date is not None:
            query = query.where(NotificationRecord.notify_date == notify_date)
        return [
            {
                "id": row.id,
                "title": row.title,
                "message": row.message,
                "type": row.type,
                "reference_id": row.reference_id,
                "notify_date": row.notify_date,
                "count": row.count,
            }
            for row in session.execute(query).scalars().all()
        ]


def run_daily_summary(evaluator: RecurrenceEvaluator, threshold: int = DEFAULT_SUMMARY_THRESHOLD) -> Dict[str, Any]:
    """Scan, then upsert the day's summary once today's notification count reaches threshold."""
    scan = scan_due_and_notify(evaluator)
    total = count_notifications_for(evaluator.today)
    summary_id = scan.summary_id
    if total >= threshold:
        summary_id = create_or_update_summary(evaluator.today, total)
    else:
        logger.info(f"Daily summary skipped: {total} notifications, threshold {threshold}")
    return {
        "date": evaluator.today.isoformat(),
        "due": scan.due,
        "created": len(scan.created),
        "total": total,
        "summary_id": summary_id,
    }
