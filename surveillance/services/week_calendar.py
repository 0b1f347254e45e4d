"""
ISO-8601 week arithmetic for the surveillance engine.

Surveillance counts are published per ISO week, while report windows are
requested as inclusive calendar dates. This module converts between the two:

- iso_week_start / iso_week_end: date bounds of an ISO week
- format_week_key / parse_week_key: canonical "YYYY-Www" keys
- weeks_between: the authoritative expected week sequence of a window
- iso_years_between: ISO years overlapping a window (fetch scoping hint)
- nominal_week_count / has_previous_window / previous_window: window length
  helpers
- month/quarter helpers used by period pickers on week keys

ISO week 1 is the week containing the year's first Thursday, which is always
the week containing 4 January. Weeks start on Monday.

Week keys sort lexicographically in chronological order (4-digit years,
2-digit weeks), which the aggregation code relies on.
"""

import math
import re
from datetime import date, datetime, timedelta, MINYEAR, MAXYEAR
from typing import Any, Iterable, Iterator, List, Optional, Set, Tuple

import pandas as pd


# =============================================================================
# Constants
# =============================================================================

WEEK_KEY_PATTERN = re.compile(r"^(\d{4})-W(\d{2})$")
MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
QUARTER_KEY_PATTERN = re.compile(r"^(\d{4})-Q(\d)$")

MAX_ISO_WEEK: int = 53

ONE_WEEK = timedelta(weeks=1)

# Average number of ISO weeks per calendar month
WEEKS_PER_MONTH: float = 4.33

MONTH_NAMES: List[str] = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


# =============================================================================
# Date Parsing
# =============================================================================


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a caller-supplied date.

    Accepts date and datetime instances and ISO-8601 strings
    ("2024-01-01", "2024-01-01T00:00:00Z"). Anything else, including blank
    strings and numbers, yields None.

    Args:
        value: Raw date input.

    Returns:
        The calendar date, or None when unparseable.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    parsed = pd.to_datetime(value.strip(), format="ISO8601", errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


# =============================================================================
# ISO Week Bounds
# =============================================================================


def weeks_in_iso_year(year: int) -> int:
    """Return 52 or 53; 28 December always falls in the last ISO week."""
    return date(year, 12, 28).isocalendar()[1]


def is_valid_iso_week(year: int, week: int) -> bool:
    """
    Check that (year, week) names a real ISO week.

    Week 53 only exists in long ISO years. Years at the edges of the
    datetime range are rejected because their week bounds overflow.
    """
    if not (MINYEAR < year < MAXYEAR):
        return False
    if not (1 <= week <= MAX_ISO_WEEK):
        return False
    return week <= weeks_in_iso_year(year)


def iso_week_start(year: int, week: int) -> date:
    """
    Return the Monday of ISO week `week` of ISO year `year`.

    Example:
        >>> iso_week_start(2024, 1)
        datetime.date(2024, 1, 1)
        >>> iso_week_start(2021, 1)
        datetime.date(2021, 1, 4)
    """
    first_thursday_anchor = date(year, 1, 4)
    first_monday = first_thursday_anchor - timedelta(days=first_thursday_anchor.weekday())
    return first_monday + timedelta(weeks=week - 1)


def iso_week_end(year: int, week: int) -> date:
    """Return the Sunday of ISO week `week` of ISO year `year`."""
    return iso_week_start(year, week) + timedelta(days=6)


def week_overlaps(year: int, week: int, start: date, end: date) -> bool:
    """True when the ISO week shares at least one day with [start, end]."""
    return not (iso_week_end(year, week) < start or iso_week_start(year, week) > end)


# =============================================================================
# Week Keys
# =============================================================================


def format_week_key(year: int, week: int) -> str:
    """
    Format a canonical week key, zero-padding the week.

    Raises:
        ValueError: If week is outside 1..53.

    Example:
        >>> format_week_key(2024, 1)
        '2024-W01'
    """
    if not (1 <= week <= MAX_ISO_WEEK):
        raise ValueError(f"ISO week must be between 1 and {MAX_ISO_WEEK}, got {week}")
    return f"{year:04d}-W{week:02d}"


def parse_week_key(key: Any) -> Optional[Tuple[int, int]]:
    """
    Parse "YYYY-Www" into (year, week).

    Returns None for anything that does not match the pattern or whose week
    is outside 1..53; callers drop such input.
    """
    if not isinstance(key, str):
        return None

    match = WEEK_KEY_PATTERN.match(key)
    if not match:
        return None

    year = int(match.group(1))
    week = int(match.group(2))
    if not (1 <= week <= MAX_ISO_WEEK):
        return None

    return year, week


def week_key_for_date(day: date) -> str:
    """Week key of the ISO week containing `day`."""
    iso_year, iso_week, _ = day.isocalendar()
    return format_week_key(iso_year, iso_week)


# =============================================================================
# Calendar Walks
# =============================================================================


def _week_mondays(start: date, end: date) -> Iterator[date]:
    """
    Mondays of every ISO week overlapping [start, end].

    Stops without stepping past date.max, so windows ending in the last
    week of year 9999 are walked safely.
    """
    cursor = start - timedelta(days=start.weekday())
    while True:
        yield cursor
        if end - cursor < ONE_WEEK:
            return
        cursor += ONE_WEEK


def weeks_between(start: date, end: date) -> List[str]:
    """
    Expected week sequence for the inclusive window [start, end].

    Walks week by week from the Monday of start's ISO week until the cursor
    passes end. The result is chronological and free of duplicates, and it is
    independent of which weeks actually have data.

    Returns:
        List of week keys; empty when end < start.

    Example:
        >>> weeks_between(date(2024, 1, 3), date(2024, 1, 15))
        ['2024-W01', '2024-W02', '2024-W03']
    """
    if end < start:
        return []

    keys: List[str] = []
    seen: Set[str] = set()

    for monday in _week_mondays(start, end):
        key = week_key_for_date(monday)
        if key not in seen:
            seen.add(key)
            keys.append(key)

    return keys


def iso_years_between(start: date, end: date) -> Set[int]:
    """
    ISO years whose weeks overlap [start, end].

    Used only to scope the upstream fetch; rows are still re-checked against
    the exact window after parsing.
    """
    if end < start:
        return set()

    years = {monday.isocalendar()[0] for monday in _week_mondays(start, end)}
    years.add(end.isocalendar()[0])
    return years


def window_days(start: date, end: date) -> int:
    """Inclusive number of days in [start, end]."""
    return (end - start).days + 1


def nominal_week_count(start: date, end: date) -> Optional[int]:
    """
    Nominal window length in weeks: ceil(days / 7), at least 1.

    Returns None for an inverted window.
    """
    if end < start:
        return None
    return max(1, math.ceil(window_days(start, end) / 7))


def has_previous_window(start: date, end: date) -> bool:
    """True when the equal-length window before [start, end] fits after date.min."""
    return (start - date.min).days >= window_days(start, end)


def previous_window(start: date, end: date) -> Tuple[date, date]:
    """
    The window of identical length ending the day before start.

    Raises:
        ValueError: If that window would begin before date.min
            (see has_previous_window).

    Example:
        >>> previous_window(date(2024, 1, 8), date(2024, 1, 14))
        (datetime.date(2024, 1, 1), datetime.date(2024, 1, 7))
    """
    if not has_previous_window(start, end):
        raise ValueError(f"No comparison window precedes {start}..{end}")
    previous_end = start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=window_days(start, end) - 1)
    return previous_start, previous_end


def format_date_range(start: date, end: date) -> str:
    """Human-readable range label, e.g. '1 Jan 2024 - 28 Jan 2024'."""
    return f"{start.day} {start:%b %Y} - {end.day} {end:%b %Y}"


# =============================================================================
# Month / Quarter Helpers
# =============================================================================


def week_year(key: str) -> Optional[int]:
    """Year component of a week key, e.g. '2025-W01' -> 2025."""
    parsed = parse_week_key(key)
    return parsed[0] if parsed else None


def week_month(key: str) -> Optional[int]:
    """
    Approximate calendar month (1-12) of a week key.

    Weeks 1-4 map to January, 5-8 to February, and so on.
    """
    parsed = parse_week_key(key)
    if not parsed:
        return None
    return min(12, math.ceil(parsed[1] / WEEKS_PER_MONTH))


def week_quarter(key: str) -> Optional[int]:
    """Quarter of a week key: Q1 W1-13, Q2 W14-26, Q3 W27-39, Q4 W40+."""
    parsed = parse_week_key(key)
    if not parsed:
        return None

    week = parsed[1]
    if week <= 13:
        return 1
    if week <= 26:
        return 2
    if week <= 39:
        return 3
    return 4


def derive_available_months(week_keys: Iterable[str], year: int) -> List[str]:
    """Sorted month keys ('2025-01') covered by week keys of `year`."""
    months: Set[str] = set()
    for key in week_keys:
        if week_year(key) != year:
            continue
        month = week_month(key)
        if month is not None:
            months.add(f"{year:04d}-{month:02d}")
    return sorted(months)


def derive_available_quarters(week_keys: Iterable[str], year: int) -> List[str]:
    """Sorted quarter keys ('2025-Q1') covered by week keys of `year`."""
    quarters: Set[str] = set()
    for key in week_keys:
        if week_year(key) != year:
            continue
        quarter = week_quarter(key)
        if quarter is not None:
            quarters.add(f"{year:04d}-Q{quarter}")
    return sorted(quarters)


def filter_weeks_by_month(week_keys: Iterable[str], month_key: str) -> List[str]:
    """Week keys falling in a month key such as '2025-01'."""
    match = MONTH_KEY_PATTERN.match(month_key)
    if not match:
        return []

    target_year = int(match.group(1))
    target_month = int(match.group(2))
    return [
        key for key in week_keys
        if week_year(key) == target_year and week_month(key) == target_month
    ]


def filter_weeks_by_quarter(week_keys: Iterable[str], quarter_key: str) -> List[str]:
    """Week keys falling in a quarter key such as '2025-Q1'."""
    match = QUARTER_KEY_PATTERN.match(quarter_key)
    if not match:
        return []

    target_year = int(match.group(1))
    target_quarter = int(match.group(2))
    return [
        key for key in week_keys
        if week_year(key) == target_year and week_quarter(key) == target_quarter
    ]


def format_month_label(month_key: str) -> str:
    """'2025-01' -> 'January 2025'; unknown keys are returned unchanged."""
    match = MONTH_KEY_PATTERN.match(month_key)
    if not match:
        return month_key

    month = int(match.group(2))
    if not (1 <= month <= 12):
        return f"Unknown {match.group(1)}"
    return f"{MONTH_NAMES[month - 1]} {match.group(1)}"


def format_quarter_label(quarter_key: str) -> str:
    """'2025-Q1' -> 'Q1 2025'; unknown keys are returned unchanged."""
    match = QUARTER_KEY_PATTERN.match(quarter_key)
    if not match:
        return quarter_key
    return f"Q{match.group(2)} {match.group(1)}"
