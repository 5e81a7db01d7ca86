from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

import pytz

from env import APP_TIMEZONE
from interfaces.productModels import DailyStat
from utils.analysis_utils import UNKNOWN_SCORE, as_utc

WINDOW_DAYS = 7
METRICS = ("nutrition_score", "eco_score", "risk_score", "calories")


def _timezone(tz):
    if tz is None:
        return pytz.timezone(APP_TIMEZONE)
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def trailing_days(now: datetime, tz=None, days: int = WINDOW_DAYS) -> List[date]:
    """The `days` local calendar dates ending today, oldest first."""
    today = as_utc(now).astimezone(_timezone(tz)).date()
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def _metric_value(record, metric: str) -> int:
    value = getattr(record, metric, None)
    # unknown values still count as a scan, they just add nothing
    if value is None or value == UNKNOWN_SCORE:
        return 0
    return int(value)


def build_daily_stats(records: Iterable, metric: str, now: Optional[datetime] = None, tz=None) -> List[DailyStat]:
    """
    Sum `metric` per local calendar day over the trailing 7 days.

    Always returns 7 buckets in ascending date order; days without scans have
    a total and count of zero. Records outside the window are ignored.
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric {metric!r}, expected one of {', '.join(METRICS)}")
    zone = _timezone(tz)
    now = now or datetime.now(tz=pytz.utc)
    buckets = {day: DailyStat(day=day) for day in trailing_days(now, zone)}

    for record in records:
        scanned = as_utc(record.time_scanned)
        if scanned is None:
            continue
        bucket = buckets.get(scanned.astimezone(zone).date())
        if bucket is None:
            continue
        bucket.total += _metric_value(record, metric)
        bucket.count += 1

    return [buckets[day] for day in sorted(buckets)]


def build_weekly_stats(records: Iterable, now: Optional[datetime] = None, tz=None) -> Dict[str, List[DailyStat]]:
    records = list(records)
    return {metric: build_daily_stats(records, metric, now=now, tz=tz) for metric in METRICS}
