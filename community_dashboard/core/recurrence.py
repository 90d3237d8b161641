"""
Recurrence rules for scheduled activities: decide whether a schedule is due on a given day.

Nothing in this module reads the clock. Callers pass ``today`` and the stored anchor
(the record's creation timestamp) explicitly, usually through one RecurrenceEvaluator
per pass so every consumer agrees on what is due.
"""
import logging
from calendar import monthrange
from collections import namedtuple
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

# Index matches date.weekday() (Monday == 0)
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_WEEKDAY_LOOKUP = {name.lower(): name for name in WEEKDAY_NAMES}


class Frequency:
    """Frequency values stored on schedule records."""
    DAILY = "daily"
    WEEKLY = "weekly"
    TWICE_WEEK = "twice_week"
    MONTH_TWICE = "month_twice"
    MONTHLY = "monthly"
    QUARTER = "quarter"
    YEARLY = "yearly"

    ALL = (DAILY, WEEKLY, TWICE_WEEK, MONTH_TWICE, MONTHLY, QUARTER, YEARLY)
    WEEKLY_LIKE = frozenset({WEEKLY, TWICE_WEEK})
    # No interval arithmetic exists for these; they only honour the days list.
    WITHOUT_INTERVAL_RULE = frozenset({DAILY, MONTHLY, YEARLY})


class Reason:
    """Why evaluate() reached its decision."""
    DAYS_MATCH = "days_match"
    DAYS_MISMATCH = "days_mismatch"
    WEEKLY_SLOT = "weekly_slot"
    OFF_SLOT = "off_slot"
    INTERVAL_MATCH = "interval_match"
    OFF_INTERVAL = "off_interval"
    BEFORE_ANCHOR = "before_anchor"
    DEFAULT_DUE = "default_due"
    NO_INTERVAL_RULE = "no_interval_rule"
    MISSING_ANCHOR = "missing_anchor"


class InvalidPolicyError(ValueError):
    """Raised when a schedule's recurrence policy cannot be stored as given."""


RecurrencePolicy = namedtuple(
    "RecurrencePolicy",
    [
        "frequency",  # Frequency value, unknown string, or None
        "days",       # tuple of weekday names, e.g. ("Monday", "Thursday")
        "anchor",     # date the interval arithmetic counts from, or None
    ],
    defaults=(None, (), None),
)

Evaluation = namedtuple("Evaluation", ["due", "reason"])


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def days_in_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def normalize_frequency(value: Any) -> Optional[str]:
    """Lower-case and strip a stored frequency; empty values mean no frequency."""
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


def normalize_days(days: Optional[Iterable[Any]], strict: bool = False) -> Tuple[str, ...]:
    """Canonicalise weekday names ("friday" -> "Friday"), dropping duplicates.

    With strict=True an unknown name raises InvalidPolicyError; otherwise it is logged and skipped.
    """
    if not days:
        return ()
    result: List[str] = []
    for raw in days:
        name = _WEEKDAY_LOOKUP.get(str(raw).strip().lower())
        if name is None:
            if strict:
                raise InvalidPolicyError(f"Unknown weekday name: {raw!r}")
            logger.warning(f"Ignoring unknown weekday name in schedule days: {raw!r}")
            continue
        if name not in result:
            result.append(name)
    return tuple(result)


def parse_anchor(value: Any, tz: Optional[tzinfo] = None) -> Optional[date]:
    """Convert a stored creation timestamp into the local calendar date it falls on.

    Accepts date, datetime, epoch milliseconds, {"seconds": ...} mappings and date strings.
    Naive datetimes are taken as UTC when tz is given (the DB stores naive UTC).
    Returns None when the value is missing or unparseable.
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, date):
            return value
        elif isinstance(value, Mapping):
            seconds = value.get("seconds", value.get("_seconds"))
            if seconds is None:
                return None
            dt = datetime.fromtimestamp(float(seconds), tz=timezone.utc)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        else:
            dt = dateutil_parser.parse(str(value))
    except (ValueError, OverflowError, OSError, TypeError) as e:
        logger.debug(f"Unparseable anchor {value!r}: {e}")
        return None

    if tz is not None:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        dt = dt.astimezone(tz)
    return dt.date()


def policy_from_record(record: Mapping[str, Any], tz: Optional[tzinfo] = None) -> RecurrencePolicy:
    """Build a policy from a schedule record (dict with frequency, days, createdAt/created_at)."""
    raw_anchor = record.get("created_at", record.get("createdAt"))
    raw_days = record.get("days")
    return RecurrencePolicy(
        frequency=normalize_frequency(record.get("frequency")),
        days=normalize_days(raw_days if isinstance(raw_days, (list, tuple)) else None),
        anchor=parse_anchor(raw_anchor, tz),
    )


def requires_anchor(policy: RecurrencePolicy) -> bool:
    """True when the policy measures elapsed time from its anchor."""
    if policy.frequency in (Frequency.MONTH_TWICE, Frequency.QUARTER):
        return True
    return policy.frequency in Frequency.WEEKLY_LIKE and not policy.days


def validate_policy(policy: RecurrencePolicy) -> RecurrencePolicy:
    """Reject policies that would never fire correctly. Called when a schedule is created or edited."""
    if policy.frequency is not None and policy.frequency not in Frequency.ALL:
        raise InvalidPolicyError(f"Unknown frequency: {policy.frequency!r}")
    normalize_days(policy.days, strict=True)
    if requires_anchor(policy) and policy.anchor is None:
        raise InvalidPolicyError(f"Frequency {policy.frequency!r} requires an anchor date")
    if policy.frequency in Frequency.WITHOUT_INTERVAL_RULE:
        logger.warning(
            f"Frequency {policy.frequency!r} has no interval rule; "
            f"it is due every day unless a days list restricts it"
        )
    return policy


def _filter_by_days(policy: RecurrencePolicy, today: date, reason: str) -> Evaluation:
    if policy.days:
        if weekday_name(today) in policy.days:
            return Evaluation(True, reason)
        return Evaluation(False, Reason.DAYS_MISMATCH)
    return Evaluation(True, reason)


def _evaluate_weekly(policy: RecurrencePolicy, today: date) -> Evaluation:
    if policy.anchor is None:
        return Evaluation(False, Reason.MISSING_ANCHOR)
    base = policy.anchor.weekday()
    second = (base + 3) % 7
    if today.weekday() in (base, second):
        return Evaluation(True, Reason.WEEKLY_SLOT)
    return Evaluation(False, Reason.OFF_SLOT)


def _evaluate_month_twice(policy: RecurrencePolicy, today: date) -> Evaluation:
    if policy.anchor is None:
        return Evaluation(False, Reason.MISSING_ANCHOR)
    days_diff = (today - policy.anchor).days
    if days_diff < 0:
        return Evaluation(False, Reason.BEFORE_ANCHOR)
    if days_diff % 14 != 0:
        return Evaluation(False, Reason.OFF_INTERVAL)
    return _filter_by_days(policy, today, Reason.INTERVAL_MATCH)


def _evaluate_quarter(policy: RecurrencePolicy, today: date) -> Evaluation:
    anchor = policy.anchor
    if anchor is None:
        return Evaluation(False, Reason.MISSING_ANCHOR)
    month_diff = (today.year - anchor.year) * 12 + (today.month - anchor.month)
    if month_diff < 0:
        return Evaluation(False, Reason.BEFORE_ANCHOR)
    if month_diff % 3 != 0:
        return Evaluation(False, Reason.OFF_INTERVAL)
    # Anchors on the 29th-31st fall back to the last day of shorter months
    target_day = min(anchor.day, days_in_month(today.year, today.month))
    if today.day != target_day:
        return Evaluation(False, Reason.OFF_INTERVAL)
    return _filter_by_days(policy, today, Reason.INTERVAL_MATCH)


def evaluate(policy: RecurrencePolicy, today: date) -> Evaluation:
    """Decide whether a policy is due on ``today``."""
    frequency = policy.frequency

    if frequency is None or frequency in Frequency.WEEKLY_LIKE:
        if policy.days:
            return _filter_by_days(policy, today, Reason.DAYS_MATCH)
        if frequency is None:
            return Evaluation(True, Reason.DEFAULT_DUE)
        return _evaluate_weekly(policy, today)

    if frequency == Frequency.MONTH_TWICE:
        return _evaluate_month_twice(policy, today)

    if frequency == Frequency.QUARTER:
        return _evaluate_quarter(policy, today)

    return _filter_by_days(policy, today, Reason.NO_INTERVAL_RULE)


def is_due(policy: RecurrencePolicy, today: date) -> bool:
    return evaluate(policy, today).due


class RecurrenceEvaluator:
    """Evaluates many schedules against one pinned ``today``.

    Build one per dashboard refresh, scan or summary run and hand it to every consumer.
    """

    def __init__(self, today: date, tz: Optional[tzinfo] = None):
        if isinstance(today, datetime):
            today = today.astimezone(tz).date() if tz is not None and today.tzinfo else today.date()
        self.today = today
        self.tz = tz
        self.logger = logging.getLogger(self.__class__.__name__)

    def evaluate(self, policy: RecurrencePolicy) -> Evaluation:
        result = evaluate(policy, self.today)
        if result.reason == Reason.MISSING_ANCHOR:
            self.logger.warning(f"Policy {policy} has no anchor; treating as not due on {self.today}")
        return result

    def is_due(self, policy: RecurrencePolicy) -> bool:
        return self.evaluate(policy).due

    def evaluate_record(self, record: Mapping[str, Any]) -> Evaluation:
        return self.evaluate(policy_from_record(record, self.tz))

    def due_items(self, records: Iterable[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
        """Return the records that are due today, preserving input order."""
        return [record for record in records if self.evaluate_record(record).due]
