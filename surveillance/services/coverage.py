"""
Coverage Aggregation Service.

Builds the per-week and per-state totals of a window and reconciles the weeks
that actually have data against the calendar-complete expected sequence.

Outputs for a window [start, end]:
- weekly totals keyed by week key (all matching states summed)
- state totals keyed by state (all weeks in the window summed)
- per-state confirmed series: state -> chronologically sorted (week, confirmed)
- coverage report:
    totalWeeks       = len(weeks_between(start, end))
    availableWeeks   = distinct data weeks intersected with the expected weeks
    missingWeeks     = expected weeks without data, chronological
    coverageRatio    = available / total, None when total is 0

Degenerate windows (end before start, or an unparseable date) yield a neutral
empty aggregate rather than an exception. Caller-facing validation lives in
report_metrics.validate_report_range.

Every call allocates fresh frames and dicts; nothing is cached between calls.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from surveillance.models.schemas import CaseCounts, CoverageReport, StateTotal, WeeklyTotal
from surveillance.services.ingestion import COUNT_FIELDS, WeeklyRecord, ingest_rows
from surveillance.services.week_calendar import iso_week_end, iso_week_start, parse_date, parse_week_key, weeks_between

logger = logging.getLogger(__name__)


# Two-level table: state -> [(week_key, confirmed), ...] sorted by week
StateWeekSeries = Dict[str, List[Tuple[str, int]]]

RECORD_COLUMNS: List[str] = ["week_key", "state", *COUNT_FIELDS]


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class WindowAggregate:
    """
    Everything the signal detector and the summary need about one window.

    Attributes:
        start: Window start, None when the input was unparseable.
        end: Window end, None when the input was unparseable.
        records: Validated records inside the window.
        weekly_totals: Chronologically ordered WeeklyTotal list.
        state_totals: StateTotal list ordered by state name.
        state_series: Per-state confirmed series, each sorted by week.
        coverage: Coverage report for the window.
    """
    start: Optional[date] = None
    end: Optional[date] = None
    records: List[WeeklyRecord] = field(default_factory=list)
    weekly_totals: List[WeeklyTotal] = field(default_factory=list)
    state_totals: List[StateTotal] = field(default_factory=list)
    state_series: StateWeekSeries = field(default_factory=dict)
    coverage: CoverageReport = field(default_factory=CoverageReport)

    @property
    def totals(self) -> CaseCounts:
        """Grand totals across all weeks and states."""
        return CaseCounts(
            suspected=sum(w.suspected for w in self.weekly_totals),
            confirmed=sum(w.confirmed for w in self.weekly_totals),
            deaths=sum(w.deaths for w in self.weekly_totals),
        )

    @property
    def weeks_reported(self) -> int:
        return len(self.coverage.availableWeekLabels)


# =============================================================================
# Frame Helpers
# =============================================================================


def _records_frame(records: Iterable[WeeklyRecord]) -> pd.DataFrame:
    """One row per record with the week key materialized."""
    return pd.DataFrame(
        [
            {
                "week_key": r.week_key,
                "state": r.state,
                "suspected": r.suspected,
                "confirmed": r.confirmed,
                "deaths": r.deaths,
            }
            for r in records
        ],
        columns=RECORD_COLUMNS,
    )


def _weekly_totals(frame: pd.DataFrame) -> List[WeeklyTotal]:
    if frame.empty:
        return []

    grouped = frame.groupby("week_key", sort=True)[list(COUNT_FIELDS)].sum()

    totals: List[WeeklyTotal] = []
    for week_key, row in grouped.iterrows():
        year, week = parse_week_key(week_key)
        totals.append(WeeklyTotal(
            weekKey=week_key,
            weekStart=iso_week_start(year, week),
            weekEnd=iso_week_end(year, week),
            suspected=int(row["suspected"]),
            confirmed=int(row["confirmed"]),
            deaths=int(row["deaths"]),
        ))
    return totals


def _state_totals(frame: pd.DataFrame) -> List[StateTotal]:
    if frame.empty:
        return []

    grouped = frame.groupby("state", sort=True)[list(COUNT_FIELDS)].sum()

    return [
        StateTotal(
            state=state,
            suspected=int(row["suspected"]),
            confirmed=int(row["confirmed"]),
            deaths=int(row["deaths"]),
        )
        for state, row in grouped.iterrows()
    ]


def build_state_week_series(records: Iterable[WeeklyRecord]) -> StateWeekSeries:
    """
    Build the explicit state -> sorted weekly confirmed series table.

    Built in one grouped pass and sorted by (state, week) before any pairwise
    delta is taken.
    """
    frame = _records_frame(records)
    if frame.empty:
        return {}

    grouped = frame.groupby(["state", "week_key"], sort=True)["confirmed"].sum()

    series: StateWeekSeries = {}
    for (state, week_key), confirmed in grouped.items():
        series.setdefault(state, []).append((week_key, int(confirmed)))

    for state in series:
        series[state].sort(key=lambda item: item[0])

    return series


# =============================================================================
# Coverage
# =============================================================================


def build_coverage_report(
    expected_weeks: List[str],
    data_weeks: Iterable[str]
) -> CoverageReport:
    """
    Reconcile the weeks that have data against the expected sequence.

    Args:
        expected_weeks: Output of weeks_between for the window.
        data_weeks: Week keys present in the ingested data (any order, repeats ok).

    Returns:
        CoverageReport whose available/missing labels partition expected_weeks.
    """
    present = set(data_weeks)
    available = [week for week in expected_weeks if week in present]
    missing = [week for week in expected_weeks if week not in present]
    total = len(expected_weeks)

    return CoverageReport(
        availableWeekLabels=tuple(available),
        missingWeekLabels=tuple(missing),
        totalWeeks=total,
        coverageRatio=(len(available) / total) if total > 0 else None,
    )


def aggregate_window(
    start: Any,
    end: Any,
    state_filters: Optional[Iterable[Any]],
    rows: Iterable[Mapping[str, Any]]
) -> WindowAggregate:
    """
    Ingest and aggregate raw rows for one window.

    Args:
        start: Window start (date or ISO string).
        end: Window end (date or ISO string).
        state_filters: Explicit state names, "All States", or None.
        rows: Raw rows from the persistence collaborator.

    Returns:
        WindowAggregate; neutral and empty for a degenerate window.
    """
    start_date = parse_date(start)
    end_date = parse_date(end)

    if start_date is None or end_date is None or end_date < start_date:
        logger.debug(f"Degenerate window start={start!r} end={end!r}; returning empty aggregate")
        return WindowAggregate(start=start_date, end=end_date)

    records = ingest_rows(rows, start_date, end_date, state_filters)
    frame = _records_frame(records)

    weekly_totals = _weekly_totals(frame)
    expected_weeks = weeks_between(start_date, end_date)
    coverage = build_coverage_report(expected_weeks, (w.weekKey for w in weekly_totals))

    return WindowAggregate(
        start=start_date,
        end=end_date,
        records=records,
        weekly_totals=weekly_totals,
        state_totals=_state_totals(frame),
        state_series=build_state_week_series(records),
        coverage=coverage,
    )


def compute_coverage(
    start: Any,
    end: Any,
    state_filters: Optional[Iterable[Any]],
    rows: Iterable[Mapping[str, Any]]
) -> Tuple[CoverageReport, List[WeeklyTotal]]:
    """
    Coverage report and weekly totals for a window.

    Pure function of its inputs: identical inputs give identical output.

    Example:
        >>> report, weekly = compute_coverage(
        ...     "2024-01-01", "2024-01-07", None,
        ...     [{"isoYear": 2024, "isoWeek": 1, "state": "Lagos",
        ...       "suspected": 10, "confirmed": 2, "deaths": 0}],
        ... )
        >>> report.coverageRatio
        1.0
    """
    aggregate = aggregate_window(start, end, state_filters, rows)
    return aggregate.coverage, aggregate.weekly_totals
