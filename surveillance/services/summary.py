"""
Period Summary Service.

Compares a requested window with the immediately preceding window of equal
length in days:

    current:  [start, end]
    previous: [start - N days, start - 1 day]   where N = days in [start, end]

For each window the totals are summed from ingested records and averaged per
reported week using deltas.averaging_denominator. Deltas are period-over-period
percentage changes of the totals.

The two window aggregations share no mutable state; callers that fetch rows
per window can compute them independently and join here.
"""

import logging
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Tuple

from surveillance.core.exceptions import InvalidRangeError
from surveillance.models.schemas import PeriodSummary
from surveillance.services.coverage import WindowAggregate, aggregate_window
from surveillance.services.deltas import averaging_denominator, case_deltas, per_week_averages
from surveillance.services.ingestion import describe_state_filters
from surveillance.services.week_calendar import has_previous_window, parse_date, previous_window

logger = logging.getLogger(__name__)


def resolve_range(start: Any, end: Any) -> Tuple[date, date]:
    """
    Parse and order-check a window.

    Raises:
        InvalidRangeError: If either date is unparseable, end < start, or no
            equal-length comparison window fits before start.
    """
    start_date = parse_date(start)
    end_date = parse_date(end)

    if start_date is None or end_date is None:
        raise InvalidRangeError("startDate and endDate must be ISO-8601 dates")

    if end_date < start_date:
        raise InvalidRangeError("endDate must not be before startDate")

    if not has_previous_window(start_date, end_date):
        raise InvalidRangeError("No comparison window of equal length precedes startDate")

    return start_date, end_date


def summarize_windows(
    current: WindowAggregate,
    previous: WindowAggregate,
    state_filters: Optional[Iterable[Any]] = None
) -> PeriodSummary:
    """
    Join two window aggregates into a PeriodSummary.

    Args:
        current: Aggregate of the requested window.
        previous: Aggregate of the preceding window of equal length.
        state_filters: Filters used for both windows (for the state label).

    Returns:
        PeriodSummary with totals, averages and deltas.
    """
    totals = current.totals
    previous_totals = previous.totals

    current_denominator = averaging_denominator(current.weeks_reported, current.start, current.end)
    previous_denominator = averaging_denominator(previous.weeks_reported, previous.start, previous.end)

    return PeriodSummary(
        state=describe_state_filters(state_filters),
        periodStart=current.start,
        periodEnd=current.end,
        totals=totals,
        previousTotals=previous_totals,
        averages=per_week_averages(totals, current_denominator),
        previousAverages=per_week_averages(previous_totals, previous_denominator),
        deltas=case_deltas(totals, previous_totals),
        weeksReported=current.weeks_reported,
        previousWeeksReported=previous.weeks_reported,
        totalWeeks=current.coverage.totalWeeks,
    )


def compute_summary(
    start: Any,
    end: Any,
    state_filters: Optional[Iterable[Any]],
    rows: Iterable[Mapping[str, Any]],
    previous_rows: Optional[Iterable[Mapping[str, Any]]] = None
) -> PeriodSummary:
    """
    Summary of [start, end] against the preceding window of equal length.

    Args:
        start: Window start (date or ISO string).
        end: Window end (date or ISO string).
        state_filters: Explicit state names, "All States", or None.
        rows: Raw rows covering the current window (may be wider).
        previous_rows: Raw rows covering the previous window. Defaults to
            rows, which suits callers that fetched both windows' years at once.

    Returns:
        PeriodSummary for the window.

    Raises:
        InvalidRangeError: If the window is inverted or unparseable.
    """
    start_date, end_date = resolve_range(start, end)
    previous_start, previous_end = previous_window(start_date, end_date)

    rows = list(rows)
    if previous_rows is None:
        previous_rows = rows

    current = aggregate_window(start_date, end_date, state_filters, rows)
    previous = aggregate_window(previous_start, previous_end, state_filters, previous_rows)

    logger.debug(
        f"Summary {start_date}..{end_date}: weeks_reported={current.weeks_reported}, "
        f"previous_weeks_reported={previous.weeks_reported}"
    )

    return summarize_windows(current, previous, state_filters)
