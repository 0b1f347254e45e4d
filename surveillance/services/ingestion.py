"""
Raw Row Ingestion Service

This module normalizes loosely typed rows returned by the persistence
collaborator into immutable WeeklyRecord instances.

Raw rows are duck-typed: counts may be ints, numeric strings, None or garbage,
and the year/week/state columns may use either the engine's names or the
source table's names. Every row goes through normalize_row(), which returns an
explicit tagged result: either a WeeklyRecord or a DropReason.

Processing Steps (per row):
1. Parse (isoYear, isoWeek); drop as INVALID_WEEK if either is missing,
   non-numeric, or not a real ISO week.
2. Drop the pre-aggregated 'Total' pseudo-state as AGGREGATE_ROW. The upstream
   query may already exclude it, but it must never reach the totals.
3. Apply the state filter (explicit names, or no filter) as STATE_FILTERED.
4. Re-check that the ISO week overlaps [start, end]; the upstream fetch is
   year-scoped and therefore wider than the window (OUTSIDE_WINDOW).

Field Aliases:
- year: isoYear, full_year, year
- week: isoWeek, week
- state: state, states
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from surveillance.models.enums import DropReason
from surveillance.services.week_calendar import (
    format_week_key,
    is_valid_iso_week,
    iso_week_end,
    iso_week_start,
    iso_years_between,
    week_overlaps,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Filter value meaning "aggregate all states"
ALL_STATES: str = "All States"

# Name of the pre-aggregated pseudo-state present in the source table
AGGREGATE_STATE: str = "Total"

UNKNOWN_STATE: str = "Unknown"

YEAR_FIELDS: Tuple[str, ...] = ("isoYear", "full_year", "year")
WEEK_FIELDS: Tuple[str, ...] = ("isoWeek", "week")
STATE_FIELDS: Tuple[str, ...] = ("state", "states")

COUNT_FIELDS: Tuple[str, ...] = ("suspected", "confirmed", "deaths")


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class WeeklyRecord:
    """
    One validated (ISO week, state) observation.

    Attributes:
        iso_year: ISO week-numbering year.
        iso_week: ISO week number (1..53, valid for iso_year).
        state: Exact state name as reported.
        suspected: Suspected cases (>= 0).
        confirmed: Confirmed cases (>= 0).
        deaths: Deaths (>= 0).
    """
    iso_year: int
    iso_week: int
    state: str
    suspected: int = 0
    confirmed: int = 0
    deaths: int = 0

    @property
    def week_key(self) -> str:
        return format_week_key(self.iso_year, self.iso_week)

    @property
    def week_start(self) -> date:
        return iso_week_start(self.iso_year, self.iso_week)

    @property
    def week_end(self) -> date:
        return iso_week_end(self.iso_year, self.iso_week)


@dataclass(frozen=True)
class NormalizedRow:
    """
    Tagged result of normalizing one raw row.

    Exactly one of record / drop_reason is set.
    """
    record: Optional[WeeklyRecord] = None
    drop_reason: Optional[DropReason] = None

    @property
    def accepted(self) -> bool:
        return self.record is not None


# =============================================================================
# Coercion Helpers
# =============================================================================


def _to_number(value: Any) -> Optional[float]:
    """
    Coerce numbers and numeric-looking strings to a finite float.

    Returns None for None, blanks, booleans, NaN/inf and non-numeric input.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None

    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None

    if not math.isfinite(numeric):
        return None

    return numeric


def _to_whole_number(value: Any) -> Optional[int]:
    """Strict integer for year/week columns: 2, 2.0 and "2" pass, 1.5 does not."""
    numeric = _to_number(value)
    if numeric is None or numeric != int(numeric):
        return None
    return int(numeric)


def _to_count(value: Any) -> int:
    """Coerce a case count: missing/invalid -> 0, fractions round, negatives clamp to 0."""
    numeric = _to_number(value)
    if numeric is None:
        return 0
    return max(0, int(round(numeric)))


def _first_present(row: Mapping[str, Any], fields: Sequence[str]) -> Any:
    """Value of the first alias present with a non-None value."""
    for field_name in fields:
        value = row.get(field_name)
        if value is not None:
            return value
    return None


def _is_aggregate_state(state: str) -> bool:
    return state.strip().lower() == AGGREGATE_STATE.lower()


# =============================================================================
# State Filters
# =============================================================================


def resolve_state_filters(states: Optional[Iterable[Any]]) -> Optional[FrozenSet[str]]:
    """
    Resolve caller state filters to a set of exact state names.

    Blank entries and the "All States" sentinel are discarded. None means
    "no filter": either nothing was supplied or only the sentinel was.

    Example:
        >>> resolve_state_filters(["All States"]) is None
        True
        >>> sorted(resolve_state_filters([" Lagos ", "Ondo", ""]))
        ['Lagos', 'Ondo']
    """
    if states is None:
        return None

    if isinstance(states, str):
        states = [states]

    resolved = {
        str(s).strip()
        for s in states
        if s is not None and str(s).strip() and str(s).strip() != ALL_STATES
    }

    return frozenset(resolved) if resolved else None


def describe_state_filters(states: Optional[Iterable[Any]]) -> str:
    """
    Label for the geography covered by a filter.

    Returns "All States", the single state name, or a comma-joined sorted list.
    """
    resolved = resolve_state_filters(states)
    if resolved is None:
        return ALL_STATES
    return ", ".join(sorted(resolved))


def fetch_years(start: date, end: date) -> Set[int]:
    """ISO years to request from the persistence collaborator for [start, end]."""
    return iso_years_between(start, end)


# =============================================================================
# Normalization
# =============================================================================


def normalize_row(
    row: Mapping[str, Any],
    start: date,
    end: date,
    state_filter: Optional[FrozenSet[str]] = None
) -> NormalizedRow:
    """
    Normalize one raw row into a WeeklyRecord or an explicit drop reason.

    Args:
        row: Raw mapping from the persistence collaborator.
        start: Window start (inclusive).
        end: Window end (inclusive).
        state_filter: Resolved filter from resolve_state_filters (None = all).

    Returns:
        NormalizedRow with either record or drop_reason set.
    """
    year = _to_whole_number(_first_present(row, YEAR_FIELDS))
    week = _to_whole_number(_first_present(row, WEEK_FIELDS))

    if year is None or week is None or not is_valid_iso_week(year, week):
        return NormalizedRow(drop_reason=DropReason.INVALID_WEEK)

    raw_state = _first_present(row, STATE_FIELDS)
    state = str(raw_state).strip() if raw_state is not None else ""
    if not state:
        state = UNKNOWN_STATE

    if _is_aggregate_state(state):
        return NormalizedRow(drop_reason=DropReason.AGGREGATE_ROW)

    if state_filter is not None and state not in state_filter:
        return NormalizedRow(drop_reason=DropReason.STATE_FILTERED)

    if not week_overlaps(year, week, start, end):
        return NormalizedRow(drop_reason=DropReason.OUTSIDE_WINDOW)

    return NormalizedRow(record=WeeklyRecord(
        iso_year=year,
        iso_week=week,
        state=state,
        suspected=_to_count(row.get("suspected")),
        confirmed=_to_count(row.get("confirmed")),
        deaths=_to_count(row.get("deaths")),
    ))


def ingest_rows(
    rows: Iterable[Mapping[str, Any]],
    start: date,
    end: date,
    state_filters: Optional[Iterable[Any]] = None
) -> List[WeeklyRecord]:
    """
    Normalize all raw rows for a window, keeping only valid records.

    Dropped rows are never fatal; per-reason counts are logged at DEBUG.

    Args:
        rows: Raw rows (dicts or asyncpg Records).
        start: Window start (inclusive).
        end: Window end (inclusive).
        state_filters: Explicit state names, the "All States" sentinel, or None.

    Returns:
        Validated WeeklyRecord list in input order.
    """
    state_filter = resolve_state_filters(state_filters)
    records: List[WeeklyRecord] = []
    dropped: Counter = Counter()

    for row in rows:
        result = normalize_row(row, start, end, state_filter)
        if result.accepted:
            records.append(result.record)
        else:
            dropped[result.drop_reason] += 1

    if dropped:
        summary: Dict[str, int] = {reason.value: count for reason, count in sorted(dropped.items())}
        logger.debug(f"Dropped rows for {start}..{end}: {summary}")

    return records
