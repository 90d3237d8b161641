import argparse
import logging
import sys
from datetime import date

from community_dashboard.core.config import Config, configured_location, configured_timezone, local_today, make_evaluator
from community_dashboard.core.geo import GeoPoint, alignment, distance_to_kaaba, qibla_bearing
from community_dashboard.core.hijri import WEEKDAY_HEADERS, gregorian_to_hijri, holidays_in_month, month_grid, month_header
from community_dashboard.core.recurrence import InvalidPolicyError


def setup_basic_logging(level=logging.INFO):
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:  # Only add handler if none exists
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        root_logger.addHandler(handler)
        root_logger.setLevel(level)
        logging.debug("Basic logging initialized")


def _iso_date(value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def _year_month(value):
    try:
        year, month = (int(part) for part in value.split("-"))
        date(year, month, 1)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}")
    return year, month


def _open_db(config):
    from community_dashboard.core.db import init_db
    init_db(config.data)


def cmd_serve(args, config):
    from community_dashboard.core.app import DashboardService
    service = DashboardService(config_path=args.config)
    service.run()
    return 0


def cmd_due(args, config):
    from community_dashboard.plugins.schedules.service import due_schedules
    _open_db(config)
    evaluator = make_evaluator(config.data, args.date)
    due = due_schedules(evaluator)
    print(f"{len(due)} schedules due on {evaluator.today.isoformat()}")
    for item in due:
        record = item.record
        print(f"  [{record['id']}] {record.get('time') or '--:--'} {record['activity_name']} ({item.evaluation.reason})")
    return 0


def cmd_scan(args, config):
    from community_dashboard.plugins.schedules.service import DEFAULT_SUMMARY_THRESHOLD, run_daily_summary, scan_due_and_notify
    _open_db(config)
    evaluator = make_evaluator(config.data, args.date)
    if args.summary:
        component = config.get_component_config("Schedules") or {}
        result = run_daily_summary(evaluator, int(component.get("threshold", DEFAULT_SUMMARY_THRESHOLD)))
        print(f"{result['created']} notifications created, {result['total']} today, summary: {result['summary_id'] or '-'}")
        return 0
    result = scan_due_and_notify(evaluator)
    print(f"{len(result.created)} notifications created, {len(result.skipped)} already present, summary: {result.summary_id or '-'}")
    return 0


def cmd_add_schedule(args, config):
    from community_dashboard.plugins.schedules.service import create_schedule
    _open_db(config)
    data = {
        "activity_name": args.name,
        "time": args.time,
        "frequency": args.frequency,
        "days": args.days or [],
        "location": args.location,
        "description": args.description,
    }
    try:
        record = create_schedule(data, configured_timezone(config.data))
    except InvalidPolicyError as e:
        print(f"Invalid schedule: {e}", file=sys.stderr)
        return 2
    print(f"Created schedule {record['id']}: {record['activity_name']}")
    return 0


def cmd_hijri(args, config):
    day = args.date or local_today(config.data)
    hijri = gregorian_to_hijri(day)
    if args.tabular:
        from community_dashboard.core.hijri import hijri_label
        label = hijri_label(hijri)
    else:
        from community_dashboard.plugins.prayer.service import hijri_label_for
        _open_db(config)
        label = hijri_label_for(day)
    print(f"{day.isoformat()} = {label} ({hijri.year}-{hijri.month:02d}-{hijri.day:02d})")
    return 0


def cmd_calendar(args, config):
    selected = args.selected or local_today(config.data)
    year, month = args.month or (selected.year, selected.month)
    if (selected.year, selected.month) != (year, month):
        selected = date(year, month, 1)
    holidays = {}
    if args.holidays:
        from community_dashboard.plugins.prayer.prayer_base import HolidayBackend
        component = dict(config.get_component_config("Prayer Times") or {})
        component.setdefault("cache_dir", (config.data.get("cache") or {}).get("directory"))
        holidays = HolidayBackend(component).get_holidays(local_today(config.data))

    gregorian_label, hijri_label = month_header(year, month, selected)
    print(f"{gregorian_label} / {hijri_label}")
    print(" ".join(f"{name:>7}" for name in WEEKDAY_HEADERS))
    for week in month_grid(year, month, holidays):
        cells = []
        for cell in week:
            if cell is None:
                cells.append(" " * 7)
                continue
            mark = "*" if cell.holiday else " "
            cells.append(f"{cell.day:>2}/{cell.display_hijri_day:<2}{mark} ")
        print(" ".join(cells))
    for iso, name in holidays_in_month(holidays, year, month):
        print(f"  {iso} {name}")
    return 0


def cmd_qibla(args, config):
    location = configured_location(config.data)
    origin = GeoPoint(
        args.lat if args.lat is not None else location["lat"],
        args.lon if args.lon is not None else location["lon"],
    )
    target = qibla_bearing(origin)
    print(f"Qibla bearing: {target:.1f} deg, distance to Kaaba: {distance_to_kaaba(origin):.0f} km")
    if args.heading is not None:
        result = alignment(args.heading, target)
        if result.aligned:
            print(f"Aligned (off by {result.delta:.1f} deg)")
        else:
            print(f"Turn {result.direction} {abs(result.delta):.1f} deg")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description='Community Dashboard')
    parser.add_argument('--config',
                        help='Path to config file (default: ~/.community_dashboard/config.yaml)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('serve', help='Run scheduled tasks and the API server')
    p.set_defaults(func=cmd_serve)

    p = sub.add_parser('due', help='List schedules due on a day')
    p.add_argument('--date', type=_iso_date)
    p.set_defaults(func=cmd_due)

    p = sub.add_parser('scan', help='Create notifications for due schedules')
    p.add_argument('--date', type=_iso_date)
    p.add_argument('--summary', action='store_true', help='Apply the daily summary threshold as well')
    p.set_defaults(func=cmd_scan)

    p = sub.add_parser('add-schedule', help='Create a recurring schedule')
    p.add_argument('name')
    p.add_argument('--time')
    p.add_argument('--frequency')
    p.add_argument('--days', nargs='*', metavar='WEEKDAY')
    p.add_argument('--location')
    p.add_argument('--description')
    p.set_defaults(func=cmd_add_schedule)

    p = sub.add_parser('hijri', help='Hijri date for a day')
    p.add_argument('--date', type=_iso_date)
    p.add_argument('--tabular', action='store_true', help='Skip stored API labels')
    p.set_defaults(func=cmd_hijri)

    p = sub.add_parser('calendar', help='Gregorian month with Hijri days')
    p.add_argument('--month', type=_year_month, help='YYYY-MM')
    p.add_argument('--selected', type=_iso_date)
    p.add_argument('--holidays', action='store_true', help='Fetch national holidays')
    p.set_defaults(func=cmd_calendar)

    p = sub.add_parser('qibla', help='Qibla bearing and distance')
    p.add_argument('--lat', type=float)
    p.add_argument('--lon', type=float)
    p.add_argument('--heading', type=float, help='Current compass heading in degrees')
    p.set_defaults(func=cmd_qibla)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_basic_logging(logging.DEBUG if args.verbose else logging.WARNING)
    if args.command == 'serve':
        return cmd_serve(args, None)
    config = Config(config_path=args.config)
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
