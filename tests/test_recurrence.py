import unittest
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from community_dashboard.core.recurrence import (
    Evaluation,
    Frequency,
    InvalidPolicyError,
    Reason,
    RecurrenceEvaluator,
    RecurrencePolicy,
    evaluate,
    is_due,
    normalize_days,
    parse_anchor,
    policy_from_record,
    validate_policy,
)

ANCHOR = date(2024, 1, 1)  # Monday


class WeeklyTests(unittest.TestCase):
    def test_weekly_without_days_uses_anchor_weekday_and_plus_three(self):
        policy = RecurrencePolicy(Frequency.WEEKLY, (), ANCHOR)
        self.assertTrue(is_due(policy, date(2024, 1, 1)))
        self.assertTrue(is_due(policy, date(2024, 1, 4)))
        self.assertFalse(is_due(policy, date(2024, 1, 2)))
        self.assertFalse(is_due(policy, date(2024, 1, 3)))
        self.assertTrue(is_due(policy, date(2024, 1, 8)))
        self.assertTrue(is_due(policy, date(2024, 1, 11)))

    def test_twice_week_behaves_like_weekly(self):
        policy = RecurrencePolicy(Frequency.TWICE_WEEK, (), ANCHOR)
        for offset in range(14):
            day = ANCHOR + timedelta(days=offset)
            self.assertEqual(
                is_due(policy, day),
                is_due(RecurrencePolicy(Frequency.WEEKLY, (), ANCHOR), day),
                msg=day.isoformat(),
            )

    def test_weekly_slot_wraps_past_sunday(self):
        # Saturday anchor: second slot is Tuesday
        policy = RecurrencePolicy(Frequency.WEEKLY, (), date(2024, 1, 6))
        self.assertEqual(evaluate(policy, date(2024, 1, 9)), Evaluation(True, Reason.WEEKLY_SLOT))
        self.assertEqual(evaluate(policy, date(2024, 1, 10)), Evaluation(False, Reason.OFF_SLOT))

    def test_explicit_days_override_anchor(self):
        policy = RecurrencePolicy(Frequency.WEEKLY, ("Friday",), ANCHOR)
        fridays = [date(2024, 1, 5), date(2024, 1, 12), date(2024, 3, 1)]
        for day in fridays:
            self.assertEqual(evaluate(policy, day), Evaluation(True, Reason.DAYS_MATCH))
        for day in (date(2024, 1, 1), date(2024, 1, 4)):
            self.assertEqual(evaluate(policy, day), Evaluation(False, Reason.DAYS_MISMATCH))


class IntervalTests(unittest.TestCase):
    def test_month_twice_every_fourteen_days(self):
        policy = RecurrencePolicy(Frequency.MONTH_TWICE, (), ANCHOR)
        for day in (date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29)):
            self.assertTrue(is_due(policy, day), msg=day.isoformat())
        self.assertEqual(evaluate(policy, date(2024, 1, 8)), Evaluation(False, Reason.OFF_INTERVAL))

    def test_month_twice_before_anchor(self):
        policy = RecurrencePolicy(Frequency.MONTH_TWICE, (), ANCHOR)
        self.assertEqual(evaluate(policy, date(2023, 12, 18)), Evaluation(False, Reason.BEFORE_ANCHOR))

    def test_month_twice_applies_days_filter(self):
        policy = RecurrencePolicy(Frequency.MONTH_TWICE, ("Tuesday",), ANCHOR)
        self.assertEqual(evaluate(policy, date(2024, 1, 15)), Evaluation(False, Reason.DAYS_MISMATCH))

    def test_quarter_every_three_months(self):
        policy = RecurrencePolicy(Frequency.QUARTER, (), ANCHOR)
        for day in (date(2024, 1, 1), date(2024, 4, 1), date(2024, 7, 1)):
            self.assertEqual(evaluate(policy, day), Evaluation(True, Reason.INTERVAL_MATCH), msg=day.isoformat())
        self.assertFalse(is_due(policy, date(2024, 2, 1)))
        self.assertFalse(is_due(policy, date(2024, 4, 2)))

    def test_quarter_clamps_day_to_short_month(self):
        policy = RecurrencePolicy(Frequency.QUARTER, (), date(2024, 8, 31))
        self.assertTrue(is_due(policy, date(2024, 11, 30)))
        self.assertTrue(is_due(policy, date(2025, 2, 28)))
        self.assertFalse(is_due(policy, date(2025, 2, 27)))

    def test_quarter_before_anchor(self):
        policy = RecurrencePolicy(Frequency.QUARTER, (), ANCHOR)
        self.assertEqual(evaluate(policy, date(2023, 10, 1)), Evaluation(False, Reason.BEFORE_ANCHOR))


class FallThroughTests(unittest.TestCase):
    def test_no_frequency_no_days_is_due(self):
        self.assertEqual(evaluate(RecurrencePolicy(), date(2024, 5, 5)), Evaluation(True, Reason.DEFAULT_DUE))

    def test_no_frequency_with_days(self):
        policy = RecurrencePolicy(None, ("Sunday",), None)
        self.assertTrue(is_due(policy, date(2024, 5, 5)))
        self.assertFalse(is_due(policy, date(2024, 5, 6)))

    def test_daily_monthly_yearly_are_flagged(self):
        for frequency in (Frequency.DAILY, Frequency.MONTHLY, Frequency.YEARLY):
            policy = RecurrencePolicy(frequency, (), ANCHOR)
            self.assertEqual(evaluate(policy, date(2024, 6, 3)), Evaluation(True, Reason.NO_INTERVAL_RULE))
            restricted = RecurrencePolicy(frequency, ("Friday",), ANCHOR)
            self.assertFalse(is_due(restricted, date(2024, 6, 3)))

    def test_missing_anchor_is_not_due(self):
        for frequency in (Frequency.WEEKLY, Frequency.MONTH_TWICE, Frequency.QUARTER):
            policy = RecurrencePolicy(frequency, (), None)
            self.assertEqual(evaluate(policy, ANCHOR), Evaluation(False, Reason.MISSING_ANCHOR))


class ValidationTests(unittest.TestCase):
    def test_missing_anchor_rejected_at_creation(self):
        with self.assertRaises(InvalidPolicyError):
            validate_policy(RecurrencePolicy(Frequency.QUARTER, (), None))
        with self.assertRaises(InvalidPolicyError):
            validate_policy(RecurrencePolicy(Frequency.WEEKLY, (), None))

    def test_weekly_with_days_needs_no_anchor(self):
        policy = RecurrencePolicy(Frequency.WEEKLY, ("Monday",), None)
        self.assertIs(validate_policy(policy), policy)

    def test_unknown_frequency_and_weekday_rejected(self):
        with self.assertRaises(InvalidPolicyError):
            validate_policy(RecurrencePolicy("fortnightly", (), ANCHOR))
        with self.assertRaises(InvalidPolicyError):
            validate_policy(RecurrencePolicy(Frequency.WEEKLY, ("Funday",), ANCHOR))

    def test_invalid_policy_error_is_value_error(self):
        self.assertTrue(issubclass(InvalidPolicyError, ValueError))

    def test_frequency_without_interval_rule_warns(self):
        with self.assertLogs("community_dashboard.core.recurrence", level="WARNING"):
            validate_policy(RecurrencePolicy(Frequency.MONTHLY, (), ANCHOR))

    def test_normalize_days(self):
        self.assertEqual(normalize_days(["friday", " Monday ", "FRIDAY"]), ("Friday", "Monday"))
        self.assertEqual(normalize_days(None), ())
        self.assertEqual(normalize_days(["Funday", "Sunday"]), ("Sunday",))


class AnchorParsingTests(unittest.TestCase):
    def test_date_and_datetime(self):
        self.assertEqual(parse_anchor(date(2024, 1, 1)), date(2024, 1, 1))
        self.assertEqual(parse_anchor(datetime(2024, 1, 1, 10, 0)), date(2024, 1, 1))

    def test_naive_datetime_is_utc_when_zone_given(self):
        jakarta = ZoneInfo("Asia/Jakarta")
        self.assertEqual(parse_anchor(datetime(2024, 1, 1, 20, 0), jakarta), date(2024, 1, 2))

    def test_epoch_forms(self):
        self.assertEqual(parse_anchor({"seconds": 1704067200}), date(2024, 1, 1))
        self.assertEqual(parse_anchor(1704067200000), date(2024, 1, 1))

    def test_strings(self):
        self.assertEqual(parse_anchor("2024-01-01T10:00:00"), date(2024, 1, 1))
        self.assertEqual(parse_anchor("2024-01-01T23:30:00+00:00", ZoneInfo("Asia/Jakarta")), date(2024, 1, 2))

    def test_unparseable_is_none(self):
        self.assertIsNone(parse_anchor(None))
        self.assertIsNone(parse_anchor(""))
        self.assertIsNone(parse_anchor("not a date"))
        self.assertIsNone(parse_anchor({"nanos": 5}))

    def test_policy_from_record(self):
        policy = policy_from_record({"frequency": " Weekly ", "days": ["friday"], "createdAt": "2024-01-01"})
        self.assertEqual(policy, RecurrencePolicy("weekly", ("Friday",), date(2024, 1, 1)))


class EvaluatorTests(unittest.TestCase):
    def test_today_pinned_in_zone(self):
        now = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)
        evaluator = RecurrenceEvaluator(now, ZoneInfo("Asia/Jakarta"))
        self.assertEqual(evaluator.today, date(2024, 1, 2))

    def test_missing_anchor_logged(self):
        evaluator = RecurrenceEvaluator(ANCHOR)
        with self.assertLogs("RecurrenceEvaluator", level="WARNING"):
            result = evaluator.evaluate(RecurrencePolicy(Frequency.QUARTER))
        self.assertEqual(result, Evaluation(False, Reason.MISSING_ANCHOR))

    def test_due_items_preserves_order(self):
        records = [
            {"id": 1, "frequency": "weekly", "created_at": "2024-01-01"},
            {"id": 2, "frequency": "weekly", "days": ["Friday"], "created_at": "2024-01-01"},
            {"id": 3, "frequency": "quarter", "created_at": "2023-10-04"},
            {"id": 4},
        ]
        evaluator = RecurrenceEvaluator(date(2024, 1, 4))
        self.assertEqual([r["id"] for r in evaluator.due_items(records)], [1, 3, 4])
        self.assertTrue(evaluator.is_due(RecurrencePolicy(Frequency.WEEKLY, (), ANCHOR)))


if __name__ == "__main__":
    unittest.main()
