"""
Gregorian <-> tabular Hijri conversion through Julian Day Numbers, and the unified month grid.

The tabular calendar approximates lunar months as 29.5 days. Around month ends the
conversion can land one day off (a last day shows up as day 0 of the next month);
that is the accepted error of the method and is resolved for display only, by
display_hijri_day().
"""
import math
from calendar import monthrange
from collections import namedtuple
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

GREGORIAN_REFORM_JDN = 2299161
ISLAMIC_EPOCH_OFFSET = 1948439
LUNAR_MONTH_DAYS = 29.5

HIJRI_MONTHS = (
    "Muharram", "Safar", "Rabi al-Awwal", "Rabi al-Akhir", "Jumada al-Ula", "Jumada al-Akhirah",
    "Rajab", "Shaban", "Ramadan", "Shawwal", "Dhu al-Qadah", "Dhu al-Hijjah",
)
GREGORIAN_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAY_HEADERS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

GregorianDate = namedtuple("GregorianDate", ["year", "month", "day"])
HijriDate = namedtuple("HijriDate", ["year", "month", "day"])

CalendarCell = namedtuple(
    "CalendarCell",
    [
        "day",                # Gregorian day of month
        "iso",                # "YYYY-MM-DD"
        "hijri",              # HijriDate as computed (day may be 0 at month ends)
        "display_hijri_day",  # Hijri day shown in the grid
        "holiday",            # holiday name or None
    ],
    defaults=(None,),
)


def gregorian_to_jdn(year: int, month: int, day: int) -> int:
    """Proleptic Gregorian date to Julian Day Number."""
    a = (14 - month) // 12
    y = year + 4800 - a
    m = month + 12 * a - 3
    return day + (153 * m + 2) // 5 + 365 * y + y // 4 - y // 100 + y // 400 - 32045


def jdn_to_gregorian(jdn: int) -> GregorianDate:
    """Julian Day Number to calendar date.

    Days before the 1582 reform threshold come back in the Julian calendar.
    The classic constants (36524.25, 122.1, 365.25, 30.6001) are scaled to integers.
    """
    z = int(jdn)
    a = z
    if z >= GREGORIAN_REFORM_JDN:
        alpha = (4 * z - 7468865) // 146097
        a = z + 1 + alpha - alpha // 4
    b = a + 1524
    c = (20 * b - 2442) // 7305
    d = (1461 * c) // 4
    e = (10000 * (b - d)) // 306001
    day = b - d - (306001 * e) // 10000
    month = e - 1 if e < 14 else e - 13
    year = c - 4716 if month > 2 else c - 4715
    return GregorianDate(year, month, day)


def islamic_to_jdn(year: int, month: int, day: int) -> int:
    """Tabular Hijri date to Julian Day Number."""
    return (
        day
        + math.ceil(LUNAR_MONTH_DAYS * (month - 1))
        + (year - 1) * 354
        + (3 + 11 * year) // 30
        + ISLAMIC_EPOCH_OFFSET
    )


def _estimate_islamic_year(jdn: int) -> int:
    days = jdn + 0.5 - ISLAMIC_EPOCH_OFFSET
    return math.floor((30 * days + 10646) / 10631)


def jdn_to_islamic(jdn: int) -> HijriDate:
    """Julian Day Number to tabular Hijri date.

    The month comes from ceil(day_of_year / 29.5), measured from the middle of the day,
    so the last day of a month is reported as day 0 of the next one. islamic_to_jdn()
    maps the result back to the same JDN either way.
    """
    jdn = int(jdn)
    year = _estimate_islamic_year(jdn)
    # The year estimate can miss by one near year boundaries
    while jdn < islamic_to_jdn(year, 1, 1):
        year -= 1
    while jdn >= islamic_to_jdn(year + 1, 1, 1):
        year += 1

    day_of_year = jdn - islamic_to_jdn(year, 1, 1) + 1
    month = min(12, math.ceil((day_of_year + 0.5) / LUNAR_MONTH_DAYS))
    day = jdn - islamic_to_jdn(year, month, 1) + 1
    return HijriDate(year, month, day)


def gregorian_to_hijri(value: date) -> HijriDate:
    return jdn_to_islamic(gregorian_to_jdn(value.year, value.month, value.day))


def hijri_to_gregorian(year: int, month: int, day: int) -> date:
    g = jdn_to_gregorian(islamic_to_jdn(year, month, day))
    return date(g.year, g.month, g.day)


def hijri_month_name(month: int) -> str:
    return HIJRI_MONTHS[(month - 1) % 12]


def month_end_equivalent(hijri: HijriDate) -> HijriDate:
    """Rewrite a day-0 result as the last day of the previous month (same JDN)."""
    if hijri.day > 0:
        return hijri
    year, month = (hijri.year, hijri.month - 1) if hijri.month > 1 else (hijri.year - 1, 12)
    jdn = islamic_to_jdn(hijri.year, hijri.month, hijri.day)
    return HijriDate(year, month, jdn - islamic_to_jdn(year, month, 1) + 1)


def hijri_label(hijri: HijriDate) -> str:
    """Render like "19 Jumada al-Akhirah 1445"."""
    hijri = month_end_equivalent(hijri)
    return f"{hijri.day} {hijri_month_name(hijri.month)} {hijri.year}"


def display_hijri_day(hijri_day: int, week_hijri_days: Sequence[Optional[int]]) -> int:
    """Hijri day number to show in a grid cell.

    A computed day <= 0 is the tabular month-end artifact. If the same displayed week
    already shows a 29 the artifact is taken as day 30, otherwise as day 29. This can
    still be a day off when the month end sits on a week boundary.
    """
    if hijri_day > 0:
        return hijri_day
    return 30 if 29 in week_hijri_days else 29


def month_grid(
    year: int,
    month: int,
    holidays: Optional[Dict[str, str]] = None,
) -> List[List[Optional[CalendarCell]]]:
    """Sunday-first weeks for a Gregorian month; padding cells are None."""
    holidays = holidays or {}
    first_weekday = (date(year, month, 1).weekday() + 1) % 7  # Sunday == 0
    raw: List[Optional[Tuple[int, str, HijriDate]]] = [None] * first_weekday
    for day in range(1, monthrange(year, month)[1] + 1):
        iso = f"{year:04d}-{month:02d}-{day:02d}"
        raw.append((day, iso, jdn_to_islamic(gregorian_to_jdn(year, month, day))))
    while len(raw) % 7 != 0:
        raw.append(None)

    weeks: List[List[Optional[CalendarCell]]] = []
    for start in range(0, len(raw), 7):
        week = raw[start:start + 7]
        week_days = [item[2].day for item in week if item is not None]
        row: List[Optional[CalendarCell]] = []
        for item in week:
            if item is None:
                row.append(None)
                continue
            day, iso, hijri = item
            row.append(CalendarCell(
                day=day,
                iso=iso,
                hijri=hijri,
                display_hijri_day=display_hijri_day(hijri.day, week_days),
                holiday=holidays.get(iso),
            ))
        weeks.append(row)
    return weeks


def month_header(year: int, month: int, selected: Optional[date] = None) -> Tuple[str, str]:
    """Gregorian and Hijri header labels, e.g. ("Jan 2024", "Jumada al-Akhirah 1445").

    The Hijri part follows the selected day (first of the month when not given).
    """
    selected = selected or date(year, month, 1)
    hijri = month_end_equivalent(gregorian_to_hijri(selected))
    return f"{GREGORIAN_MONTHS[month - 1]} {year}", f"{hijri_month_name(hijri.month)} {hijri.year}"


def holidays_in_month(holidays: Dict[str, str], year: int, month: int) -> List[Tuple[str, str]]:
    """(iso, name) pairs of the holidays falling in the given month, sorted by date."""
    prefix = f"{year:04d}-{month:02d}-"
    return sorted((iso, name) for iso, name in holidays.items() if iso.startswith(prefix))
