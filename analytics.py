"""
Aggregates for the doctor dashboard and analytics page.

Both functions take plain record objects (anything with diagnosis,
patient_name and created_at attributes) so they run equally on ORM rows and
on test fixtures.
"""
from collections import Counter
from datetime import datetime, timezone

from extraction import NOT_FOUND


TREND_MONTHS = 6
TOP_DIAGNOSES = 5
RECENT_RECORDS = 5


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _same_month(value: datetime, now: datetime) -> bool:
    return value.year == now.year and value.month == now.month


def normalize_diagnosis(diagnosis):
    """Lower-cased, stripped diagnosis, or None if it carries no information."""
    if not diagnosis or not diagnosis.strip() or diagnosis == NOT_FOUND:
        return None
    return diagnosis.strip().lower()


def month_window(now: datetime, months: int = TREND_MONTHS) -> list:
    """(year, month) pairs for the last `months` months, oldest first."""
    window = []
    year, month = now.year, now.month
    for _ in range(months):
        window.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(window))


def compute_analytics(records, now: datetime = None) -> dict:
    """Summarize records for the analytics page.

    Returns total and current-month counts, the five most common diagnoses,
    the number of distinct diagnoses, a six-month trend ending with the
    current month, and the average records per month over that window.
    """
    now = _naive_utc(now or datetime.now(timezone.utc))
    records = list(records)
    created = [_naive_utc(r.created_at) for r in records if r.created_at]

    # Counter keeps first-seen order for equal counts
    diagnosis_count = Counter()
    for record in records:
        diagnosis = normalize_diagnosis(record.diagnosis)
        if diagnosis:
            diagnosis_count[diagnosis] += 1

    common = sorted(diagnosis_count.items(), key=lambda item: -item[1])[:TOP_DIAGNOSES]

    month_counts = Counter((c.year, c.month) for c in created)
    trends = [
        {
            'month': datetime(year, month, 1).strftime('%b %Y'),
            'count': month_counts.get((year, month), 0),
        }
        for year, month in month_window(now)
    ]

    total = len(records)
    return {
        'total_records': total,
        'this_month': sum(1 for c in created if _same_month(c, now)),
        'average_per_month': round(total / TREND_MONTHS) if total else 0,
        'unique_diagnoses': len(diagnosis_count),
        'common_diagnoses': [{'diagnosis': d, 'count': n} for d, n in common],
        'monthly_trends': trends,
    }


def dashboard_summary(records, now: datetime = None) -> dict:
    """Headline numbers for the doctor dashboard."""
    now = _naive_utc(now or datetime.now(timezone.utc))
    records = [r for r in records if r.created_at]
    records.sort(key=lambda r: _naive_utc(r.created_at), reverse=True)
    today = now.date()
    return {
        'total_records': len(records),
        'unique_patients': len({r.patient_name for r in records}),
        'today_records': sum(1 for r in records if _naive_utc(r.created_at).date() == today),
        'recent': records[:RECENT_RECORDS],
    }
